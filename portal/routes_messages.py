"""
portal/routes_messages.py

Message threads between the agency and each client. Both sides post; client
users only ever read and write their own client's thread.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Path, Query

from portal.db import Database, get_database
from portal.dependencies import require_any_role
from portal.operations import create_message, list_scoped, mark_message_read
from portal.schemas import MessageCreateRequest, to_values
from portal.session import Session

router = APIRouter(
    prefix="/api/messages",
    tags=["messages"],
)


@router.get("")
def list_messages(
    client_id: Optional[str] = Query(None, alias="clientId"),
    session: Session = Depends(require_any_role()),
    db: Database = Depends(get_database),
) -> List[Dict[str, Any]]:
    filters = {"client_id": client_id} if client_id else {}
    return list_scoped(db, session, "messages", filters=filters)


@router.post("", status_code=201)
def post_message(
    request: MessageCreateRequest,
    session: Session = Depends(require_any_role()),
    db: Database = Depends(get_database),
) -> Dict[str, Any]:
    return create_message(db, session, to_values(request))


@router.patch("/{message_id}")
def mark_read(
    message_id: str = Path(..., description="Message ID"),
    session: Session = Depends(require_any_role()),
    db: Database = Depends(get_database),
) -> Dict[str, Any]:
    return mark_message_read(db, session, message_id)
