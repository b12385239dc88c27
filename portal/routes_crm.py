"""
portal/routes_crm.py

CRM endpoints (agency only): contacts, deals and notes.

A client has at most one primary contact. Setting a new primary clears the
previous one in the same transaction. Private notes are visible only to their
author and to agency admins.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Path, Query

from portal.db import Database, get_database
from portal.dependencies import require_agency
from portal.models import AGENCY_ROLES, DealStage
from portal.operations import (
    create_contact,
    create_note,
    create_owned,
    delete_note,
    delete_owned,
    get_owned,
    list_notes,
    list_scoped,
    set_primary_contact,
    update_contact,
    update_note,
    update_owned,
)
from portal.schemas import (
    ContactCreateRequest,
    ContactUpdateRequest,
    DealCreateRequest,
    DealUpdateRequest,
    NoteCreateRequest,
    NoteUpdateRequest,
    to_values,
)
from portal.session import Session

router = APIRouter(
    prefix="/api/crm/contacts",
    tags=["crm"],
)

deals_router = APIRouter(
    prefix="/api/crm/deals",
    tags=["crm"],
)

notes_router = APIRouter(
    prefix="/api/crm/notes",
    tags=["crm"],
)


@router.get("")
def list_contacts(
    client_id: str = Query(..., alias="clientId", min_length=1),
    session: Session = Depends(require_agency()),
    db: Database = Depends(get_database),
) -> List[Dict[str, Any]]:
    """Contacts of one client, primary contact first."""
    return list_scoped(
        db, session, "contacts", roles=AGENCY_ROLES,
        filters={"client_id": client_id},
        order_by=("-is_primary", "-created_at"),
    )


@router.post("", status_code=201)
def create(
    request: ContactCreateRequest,
    session: Session = Depends(require_agency()),
    db: Database = Depends(get_database),
) -> Dict[str, Any]:
    return create_contact(db, session, to_values(request))


@router.put("/{contact_id}")
def update(
    request: ContactUpdateRequest,
    contact_id: str = Path(..., description="Contact ID"),
    session: Session = Depends(require_agency()),
    db: Database = Depends(get_database),
) -> Dict[str, Any]:
    return update_contact(db, session, contact_id, to_values(request, exclude_unset=True))


@router.post("/{contact_id}/primary")
def make_primary(
    contact_id: str = Path(..., description="Contact ID"),
    session: Session = Depends(require_agency()),
    db: Database = Depends(get_database),
) -> Dict[str, Any]:
    """Make this contact the client's only primary contact."""
    return set_primary_contact(db, session, contact_id)


@router.delete("/{contact_id}")
def delete(
    contact_id: str = Path(..., description="Contact ID"),
    session: Session = Depends(require_agency()),
    db: Database = Depends(get_database),
) -> Dict[str, str]:
    delete_owned(db, session, "contacts", contact_id)
    return {"message": "Contact deleted successfully"}


# ---------------------------------------------------------
# Deals
# ---------------------------------------------------------
@deals_router.get("")
def list_deals(
    client_id: Optional[str] = Query(None, alias="clientId"),
    stage: Optional[DealStage] = Query(None),
    session: Session = Depends(require_agency()),
    db: Database = Depends(get_database),
) -> List[Dict[str, Any]]:
    """Pipeline, most recently touched deal first."""
    filters: Dict[str, Any] = {}
    if client_id:
        filters["client_id"] = client_id
    if stage:
        filters["stage"] = stage.value
    return list_scoped(db, session, "deals", roles=AGENCY_ROLES, filters=filters, order_by=("-updated_at",))


@deals_router.post("", status_code=201)
def create_deal(
    request: DealCreateRequest,
    session: Session = Depends(require_agency()),
    db: Database = Depends(get_database),
) -> Dict[str, Any]:
    return create_owned(db, session, "deals", to_values(request))


@deals_router.get("/{deal_id}")
def get_deal(
    deal_id: str = Path(..., description="Deal ID"),
    session: Session = Depends(require_agency()),
    db: Database = Depends(get_database),
) -> Dict[str, Any]:
    return get_owned(db, session, "deals", deal_id, roles=AGENCY_ROLES)


@deals_router.put("/{deal_id}")
def update_deal(
    request: DealUpdateRequest,
    deal_id: str = Path(..., description="Deal ID"),
    session: Session = Depends(require_agency()),
    db: Database = Depends(get_database),
) -> Dict[str, Any]:
    return update_owned(db, session, "deals", deal_id, to_values(request, exclude_unset=True))


@deals_router.delete("/{deal_id}")
def delete_deal(
    deal_id: str = Path(..., description="Deal ID"),
    session: Session = Depends(require_agency()),
    db: Database = Depends(get_database),
) -> Dict[str, bool]:
    delete_owned(db, session, "deals", deal_id)
    return {"success": True}


# ---------------------------------------------------------
# Notes
# ---------------------------------------------------------
@notes_router.get("")
def get_notes(
    client_id: str = Query(..., alias="clientId", min_length=1),
    session: Session = Depends(require_agency()),
    db: Database = Depends(get_database),
) -> List[Dict[str, Any]]:
    return list_notes(db, session, client_id)


@notes_router.post("", status_code=201)
def add_note(
    request: NoteCreateRequest,
    session: Session = Depends(require_agency()),
    db: Database = Depends(get_database),
) -> Dict[str, Any]:
    """The caller becomes the note's author."""
    return create_note(db, session, to_values(request))


@notes_router.put("/{note_id}")
def edit_note(
    request: NoteUpdateRequest,
    note_id: str = Path(..., description="Note ID"),
    session: Session = Depends(require_agency()),
    db: Database = Depends(get_database),
) -> Dict[str, Any]:
    return update_note(db, session, note_id, to_values(request, exclude_unset=True))


@notes_router.delete("/{note_id}")
def remove_note(
    note_id: str = Path(..., description="Note ID"),
    session: Session = Depends(require_agency()),
    db: Database = Depends(get_database),
) -> Dict[str, bool]:
    delete_note(db, session, note_id)
    return {"success": True}
