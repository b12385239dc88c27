"""
portal/routes_notifications.py

Notification endpoints.

A notification either belongs to one client or is global (no client_id). Client
users see their own plus global notifications and may only mark them read.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Path, Query

from portal.auth_context import get_session
from portal.db import Database, get_database
from portal.dependencies import require_agency, require_client
from portal.models import ALL_ROLES
from portal.operations import (
    create_notification,
    delete_owned,
    get_owned,
    list_scoped,
    mark_all_read,
    update_notification,
)
from portal.schemas import NotificationCreateRequest, NotificationUpdateRequest, to_values
from portal.session import Session

router = APIRouter(
    prefix="/api/notifications",
    tags=["notifications"],
)


@router.get("")
def list_notifications(
    client_id: Optional[str] = Query(None, alias="clientId"),
    is_read: Optional[bool] = Query(None, alias="isRead"),
    session: Optional[Session] = Depends(get_session),
    db: Database = Depends(get_database),
) -> List[Dict[str, Any]]:
    filters: Dict[str, Any] = {}
    if client_id:
        filters["client_id"] = client_id
    if is_read is not None:
        filters["is_read"] = is_read
    return list_scoped(db, session, "notifications", roles=ALL_ROLES, filters=filters, allow_global=True)


@router.post("", status_code=201)
def create(
    request: NotificationCreateRequest,
    session: Session = Depends(require_agency()),
    db: Database = Depends(get_database),
) -> Dict[str, Any]:
    return create_notification(db, session, to_values(request))


@router.post("/mark-all-read")
def read_all(
    session: Session = Depends(require_client()),
    db: Database = Depends(get_database),
) -> Dict[str, Any]:
    """Mark every unread notification visible to the caller's client as read."""
    return mark_all_read(db, session)


@router.get("/{notification_id}")
def get_notification(
    notification_id: str = Path(..., description="Notification ID"),
    session: Optional[Session] = Depends(get_session),
    db: Database = Depends(get_database),
) -> Dict[str, Any]:
    return get_owned(db, session, "notifications", notification_id, allow_global=True)


@router.put("/{notification_id}")
def update(
    request: NotificationUpdateRequest,
    notification_id: str = Path(..., description="Notification ID"),
    session: Optional[Session] = Depends(get_session),
    db: Database = Depends(get_database),
) -> Dict[str, Any]:
    return update_notification(db, session, notification_id, to_values(request, exclude_unset=True))


@router.delete("/{notification_id}")
def delete(
    notification_id: str = Path(..., description="Notification ID"),
    session: Session = Depends(require_agency()),
    db: Database = Depends(get_database),
) -> Dict[str, str]:
    delete_owned(db, session, "notifications", notification_id)
    return {"message": "Notification deleted successfully"}
