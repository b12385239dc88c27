"""
portal/routes_social.py

Social media post endpoints: agency drafting, client review, scheduled publishing.

Security guarantees:
- Only agency users create, edit or delete posts; client users review their own client's posts
- Review (single or bulk) is tenant-scoped and all-or-nothing
- The publish sweep only ever publishes approved posts whose schedule has passed,
  and a client-triggered sweep never touches another client's posts
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Path, Query

from portal.auth_context import get_session
from portal.db import Database, get_database
from portal.dependencies import require_agency, require_any_role, require_client
from portal.models import ALL_ROLES, PostStatus
from portal.operations import (
    bulk_transition,
    create_social_post,
    delete_owned,
    get_owned,
    list_scoped,
    publish_scheduled,
    review_social_post,
    update_social_post,
)
from portal.schemas import BulkActionRequest, ReviewRequest, SocialPostCreateRequest, SocialPostUpdateRequest, to_values
from portal.session import Session

router = APIRouter(
    prefix="/api/social-media",
    tags=["social-media"],
)


@router.get("")
def list_posts(
    client_id: Optional[str] = Query(None, alias="clientId"),
    status: Optional[PostStatus] = Query(None),
    platform: Optional[str] = Query(None, max_length=40),
    session: Optional[Session] = Depends(get_session),
    db: Database = Depends(get_database),
) -> List[Dict[str, Any]]:
    filters: Dict[str, Any] = {}
    if client_id:
        filters["client_id"] = client_id
    if status:
        filters["status"] = status.value
    if platform:
        filters["platform"] = platform
    return list_scoped(db, session, "social_posts", roles=ALL_ROLES, filters=filters)


@router.post("", status_code=201)
def create_post(
    request: SocialPostCreateRequest,
    session: Session = Depends(require_agency()),
    db: Database = Depends(get_database),
) -> Dict[str, Any]:
    """Create a post; images, video and link must suit the platform's content style."""
    return create_social_post(db, session, to_values(request))


@router.post("/bulk")
def bulk_review(
    request: BulkActionRequest,
    session: Session = Depends(require_client()),
    db: Database = Depends(get_database),
) -> Dict[str, Any]:
    """Approve or reject several posts; any foreign or missing id rejects the whole batch."""
    return bulk_transition(
        db, session, "social_posts", request.ids, request.action,
        rejection_reason=request.rejection_reason,
    )


# Registered for both verbs: schedulers hit it with GET, the dashboard with POST.
# Declared before "/{post_id}" so the GET form is not captured as a post id.
@router.api_route("/publish-scheduled", methods=["GET", "POST"])
def publish_due_posts(
    session: Session = Depends(require_any_role()),
    db: Database = Depends(get_database),
) -> Dict[str, Any]:
    """
    Publish every approved post whose scheduled time has passed.

    Safe to call repeatedly: a post is published at most once and keeps the
    timestamp of the sweep that published it.
    """
    return publish_scheduled(db, session)


@router.get("/{post_id}")
def get_post(
    post_id: str = Path(..., description="Social post ID"),
    session: Optional[Session] = Depends(get_session),
    db: Database = Depends(get_database),
) -> Dict[str, Any]:
    return get_owned(db, session, "social_posts", post_id)


@router.post("/{post_id}/review")
def review_post(
    request: ReviewRequest,
    post_id: str = Path(..., description="Social post ID"),
    session: Session = Depends(require_client()),
    db: Database = Depends(get_database),
) -> Dict[str, Any]:
    """
    Approve or reject one post that is pending review.

    Rejecting requires `rejectionReason`.
    """
    return review_social_post(db, session, post_id, request.action, request.rejection_reason)


@router.put("/{post_id}")
def update_post(
    request: SocialPostUpdateRequest,
    post_id: str = Path(..., description="Social post ID"),
    session: Session = Depends(require_agency()),
    db: Database = Depends(get_database),
) -> Dict[str, Any]:
    return update_social_post(db, session, post_id, to_values(request, exclude_unset=True))


@router.delete("/{post_id}")
def delete_post(
    post_id: str = Path(..., description="Social post ID"),
    session: Session = Depends(require_agency()),
    db: Database = Depends(get_database),
) -> Dict[str, str]:
    delete_owned(db, session, "social_posts", post_id)
    return {"message": "Post deleted successfully"}
