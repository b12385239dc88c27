"""
portal/routes_blogs.py

Blog post endpoints.

Security guarantees:
- Agency users create, edit and delete posts for any client
- Client users read their own client's posts and review them (bulk approve/reject)
- Client sessions never see or touch another client's posts (403)
- Bulk review is all-or-nothing across the requested ids
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Path, Query

from portal.auth_context import get_session
from portal.db import Database, Search, get_database
from portal.dependencies import require_agency, require_client
from portal.models import ALL_ROLES, EDITABLE_POST_STATUSES, PostStatus
from portal.operations import bulk_transition, create_owned, delete_owned, get_owned, list_scoped, update_owned
from portal.schemas import BlogCreateRequest, BlogUpdateRequest, BulkActionRequest, to_values
from portal.session import Session
from portal.slugs import unique_slug

router = APIRouter(
    prefix="/api/blogs",
    tags=["blogs"],
)


@router.get("")
def list_posts(
    client_id: Optional[str] = Query(None, alias="clientId"),
    status: Optional[PostStatus] = Query(None),
    search: Optional[str] = Query(None, min_length=1, max_length=200),
    session: Optional[Session] = Depends(get_session),
    db: Database = Depends(get_database),
) -> List[Dict[str, Any]]:
    """
    List blog posts, newest first.

    Client users only ever get their own client's posts; `clientId` is only
    honoured for agency users.
    """
    filters: Dict[str, Any] = {}
    if client_id:
        filters["client_id"] = client_id
    if status:
        filters["status"] = status.value
    return list_scoped(
        db, session, "blog_posts", roles=ALL_ROLES, filters=filters,
        search=Search(("title", "content", "excerpt"), search) if search else None,
    )


@router.post("", status_code=201)
def create_post(
    request: BlogCreateRequest,
    session: Session = Depends(require_agency()),
    db: Database = Depends(get_database),
) -> Dict[str, Any]:
    """Create a post for a client; the slug is derived from the title and made unique."""
    values = to_values(request)

    def _with_slug(existing, store):
        return {**values, "slug": unique_slug(store, request.title)}

    return create_owned(db, session, "blog_posts", _with_slug)


@router.post("/bulk")
def bulk_review(
    request: BulkActionRequest,
    session: Session = Depends(require_client()),
    db: Database = Depends(get_database),
) -> Dict[str, Any]:
    """
    Approve or reject several posts at once.

    Every id must belong to the caller's client, otherwise nothing changes and
    the response is 403 ("Some posts not found or unauthorized").
    """
    return bulk_transition(
        db, session, "blog_posts", request.ids, request.action,
        rejection_reason=request.rejection_reason,
    )


@router.get("/{post_id}")
def get_post(
    post_id: str = Path(..., description="Blog post ID"),
    session: Optional[Session] = Depends(get_session),
    db: Database = Depends(get_database),
) -> Dict[str, Any]:
    return get_owned(db, session, "blog_posts", post_id)


@router.put("/{post_id}")
def update_post(
    request: BlogUpdateRequest,
    post_id: str = Path(..., description="Blog post ID"),
    session: Session = Depends(require_agency()),
    db: Database = Depends(get_database),
) -> Dict[str, Any]:
    """
    Edit a post while it is still a draft or was rejected.

    A changed title regenerates the slug; resubmitting for review clears the
    previous rejection reason.
    """
    values = to_values(request, exclude_unset=True)

    def _prepare(existing, store):
        data = dict(values)
        if request.title != existing["title"]:
            data["slug"] = unique_slug(store, request.title, exclude_id=existing["id"])
        if data.get("status") == PostStatus.pending_review.value:
            data["rejection_reason"] = None
        return data

    return update_owned(
        db, session, "blog_posts", post_id, _prepare,
        editable_statuses=EDITABLE_POST_STATUSES,
    )


@router.delete("/{post_id}")
def delete_post(
    post_id: str = Path(..., description="Blog post ID"),
    session: Session = Depends(require_agency()),
    db: Database = Depends(get_database),
) -> Dict[str, str]:
    delete_owned(db, session, "blog_posts", post_id, deletable_statuses=EDITABLE_POST_STATUSES)
    return {"message": "Post deleted successfully"}
