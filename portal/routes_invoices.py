"""
portal/routes_invoices.py

Invoice endpoints. Agency users issue invoices; client users read their own.
Invoice numbers are unique across the agency (409 on reuse).
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Path, Query

from portal.auth_context import get_session
from portal.db import Between, Database, get_database, to_iso
from portal.dependencies import require_agency, require_any_role
from portal.models import InvoiceStatus
from portal.operations import create_owned, get_owned, list_scoped
from portal.schemas import InvoiceCreateRequest, to_values
from portal.session import Session

router = APIRouter(
    prefix="/api/invoices",
    tags=["invoices"],
)


@router.get("")
def list_invoices(
    client_id: Optional[str] = Query(None, alias="clientId"),
    status: Optional[InvoiceStatus] = Query(None),
    due_after: Optional[datetime] = Query(None, alias="dueAfter"),
    due_before: Optional[datetime] = Query(None, alias="dueBefore"),
    session: Session = Depends(require_any_role()),
    db: Database = Depends(get_database),
) -> List[Dict[str, Any]]:
    filters: Dict[str, Any] = {}
    if client_id:
        filters["client_id"] = client_id
    if status:
        filters["status"] = status.value
    if due_after or due_before:
        filters["due_date"] = Between(
            to_iso(due_after) if due_after else None,
            to_iso(due_before) if due_before else None,
        )
    return list_scoped(db, session, "invoices", filters=filters, order_by=("-due_date",))


@router.post("", status_code=201)
def create_invoice(
    request: InvoiceCreateRequest,
    session: Session = Depends(require_agency()),
    db: Database = Depends(get_database),
) -> Dict[str, Any]:
    return create_owned(db, session, "invoices", to_values(request))


@router.get("/{invoice_id}")
def get_invoice(
    invoice_id: str = Path(..., description="Invoice ID"),
    session: Optional[Session] = Depends(get_session),
    db: Database = Depends(get_database),
) -> Dict[str, Any]:
    return get_owned(db, session, "invoices", invoice_id)
