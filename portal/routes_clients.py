"""
portal/routes_clients.py

Client (tenant) administration for agency users, and the feature settings a
client user's portal reads to decide which sections to show.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Path, Query

from portal.db import Database, Search, get_database
from portal.dependencies import require, require_agency, require_client
from portal.errors import NotFound
from portal.features import get_client_features
from portal.models import AGENCY_ROLES, ClientStatus, Role
from portal.operations import delete_owned, get_owned, list_scoped, update_owned
from portal.schemas import ClientCreateRequest, ClientUpdateRequest, to_values
from portal.session import Session

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/clients",
    tags=["clients"],
)

settings_router = APIRouter(
    prefix="/api/client",
    tags=["clients"],
)


@router.get("")
def list_clients(
    status: Optional[ClientStatus] = Query(None),
    search: Optional[str] = Query(None, min_length=1, max_length=200),
    session: Session = Depends(require_agency()),
    db: Database = Depends(get_database),
) -> List[Dict[str, Any]]:
    filters = {"status": status.value} if status else {}
    return list_scoped(
        db, session, "clients", roles=AGENCY_ROLES, filters=filters,
        order_by=("name",),
        search=Search(("name", "company_name", "email"), search) if search else None,
    )


@router.post("", status_code=201)
def create_client(
    request: ClientCreateRequest,
    session: Session = Depends(require_agency()),
    db: Database = Depends(get_database),
) -> Dict[str, Any]:
    """Create a tenant. Every feature starts enabled unless switched off here."""
    with db.transaction() as store:
        client = store.create("clients", {**to_values(request), "status": ClientStatus.active.value})
    logger.info("[CLIENTS] Created client id=%s by user_id=%s", client["id"], session.user_id)
    return client


@router.get("/{client_id}")
def get_client(
    client_id: str = Path(..., description="Client ID"),
    session: Session = Depends(require_agency()),
    db: Database = Depends(get_database),
) -> Dict[str, Any]:
    return get_owned(db, session, "clients", client_id, roles=AGENCY_ROLES)


@router.put("/{client_id}")
def update_client(
    request: ClientUpdateRequest,
    client_id: str = Path(..., description="Client ID"),
    session: Session = Depends(require_agency()),
    db: Database = Depends(get_database),
) -> Dict[str, Any]:
    return update_owned(db, session, "clients", client_id, to_values(request, exclude_unset=True))


@router.delete("/{client_id}")
def delete_client(
    client_id: str = Path(..., description="Client ID"),
    session: Session = Depends(require(Role.AGENCY_ADMIN)),
    db: Database = Depends(get_database),
) -> Dict[str, bool]:
    """Delete a tenant with all of its users and content (agency admins only)."""
    delete_owned(db, session, "clients", client_id, roles={Role.AGENCY_ADMIN})
    return {"success": True}


@settings_router.get("/settings")
def client_settings(
    session: Session = Depends(require_client()),
    db: Database = Depends(get_database),
) -> Dict[str, Any]:
    """Feature flags for the caller's own client."""
    with db.transaction() as store:
        client = store.find("clients", session.tenant_id)
    if client is None:
        raise NotFound("Client not found")
    return {
        "client_id": client["id"],
        "name": client["name"],
        "features": get_client_features(client),
    }
