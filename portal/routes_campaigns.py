"""
portal/routes_campaigns.py

Email campaign endpoints. Agency users build campaigns for a client and send them
for review; client users see their own campaigns and approve or reject those in
review. Creation honours the client's campaigns feature flag.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Path, Query

from portal.auth_context import get_session
from portal.db import Database, get_database
from portal.dependencies import require_agency, require_any_role
from portal.models import CampaignStatus
from portal.operations import create_owned, delete_owned, get_owned, list_scoped, update_campaign
from portal.schemas import CampaignCreateRequest, CampaignUpdateRequest, to_values
from portal.session import Session

router = APIRouter(
    prefix="/api/campaigns",
    tags=["campaigns"],
)


@router.get("")
def list_campaigns(
    client_id: Optional[str] = Query(None, alias="clientId"),
    type: Optional[str] = Query(None, max_length=20),
    status: Optional[CampaignStatus] = Query(None),
    session: Session = Depends(require_any_role()),
    db: Database = Depends(get_database),
) -> List[Dict[str, Any]]:
    filters: Dict[str, Any] = {}
    if client_id:
        filters["client_id"] = client_id
    if type:
        filters["type"] = type
    if status:
        filters["status"] = status.value
    return list_scoped(db, session, "campaigns", filters=filters)


@router.post("", status_code=201)
def create_campaign(
    request: CampaignCreateRequest,
    session: Session = Depends(require_agency()),
    db: Database = Depends(get_database),
) -> Dict[str, Any]:
    return create_owned(db, session, "campaigns", to_values(request))


@router.get("/{campaign_id}")
def get_campaign(
    campaign_id: str = Path(..., description="Campaign ID"),
    session: Optional[Session] = Depends(get_session),
    db: Database = Depends(get_database),
) -> Dict[str, Any]:
    return get_owned(db, session, "campaigns", campaign_id)


@router.put("/{campaign_id}")
def update(
    request: CampaignUpdateRequest,
    campaign_id: str = Path(..., description="Campaign ID"),
    session: Session = Depends(require_any_role()),
    db: Database = Depends(get_database),
) -> Dict[str, Any]:
    """
    Agency users may change any field. Client users send only
    `status` (APPROVED or REJECTED) and, when rejecting, `rejectionReason`.
    """
    return update_campaign(db, session, campaign_id, to_values(request, exclude_unset=True))


@router.delete("/{campaign_id}")
def delete(
    campaign_id: str = Path(..., description="Campaign ID"),
    session: Session = Depends(require_agency()),
    db: Database = Depends(get_database),
) -> Dict[str, bool]:
    delete_owned(db, session, "campaigns", campaign_id)
    return {"success": True}
