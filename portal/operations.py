"""
portal/operations.py

Tenant-scoped resource operations.

Every operation receives the Database and the acting Session explicitly, runs the
Authorization Guard before touching persistence, and then verifies tenant
ownership of any resource whose id came from the caller.

Security guarantees:
- Client sessions only ever read or mutate rows of their own tenant
- Bulk transitions are all-or-nothing: count mismatch rejects the whole request
- Multi-row changes (bulk, primary flag, sweep) run inside one transaction
- Postconditions are re-verified before commit; violations roll back
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from portal.authz import check_resource_tenant, enforce
from portal.db import Database, In, Lte, Ne, NullOr, Search, Store, to_iso, utc_now
from portal.errors import Conflict, Forbidden, Internal, InvalidArgument, NotFound
from portal.features import TABLE_FEATURES, require_feature
from portal.models import AGENCY_ROLES, ALL_ROLES, CLIENT_ROLES, CampaignStatus, PostStatus, Role
from portal.session import Session
from portal.social_config import encode_images, validate_social_content
from portal.tenant import assert_rows_scoped, tenant_filter

logger = logging.getLogger(__name__)

Roles = Iterable[Union[Role, str]]
Values = Union[Mapping[str, Any], Callable[[Dict[str, Any], Store], Mapping[str, Any]]]


# Human-readable names for NotFound messages
LABELS: Dict[str, str] = {
    "clients": "Client",
    "blog_posts": "Post",
    "social_posts": "Post",
    "contacts": "Contact",
    "notifications": "Notification",
    "invoices": "Invoice",
    "projects": "Project",
    "campaigns": "Campaign",
    "messages": "Message",
    "deals": "Deal",
    "notes": "Note",
}


# ============================================================================
# Bulk transition table
# ============================================================================

def _approve(rejection_reason: Optional[str]) -> Dict[str, Any]:
    return {"status": PostStatus.approved.value, "rejection_reason": None}


def _reject(rejection_reason: Optional[str]) -> Dict[str, Any]:
    values: Dict[str, Any] = {"status": PostStatus.rejected.value}
    if rejection_reason:
        values["rejection_reason"] = rejection_reason
    return values


# table -> action -> builder of the column values to write
BULK_TRANSITIONS: Dict[str, Dict[str, Callable[[Optional[str]], Dict[str, Any]]]] = {
    "blog_posts": {"approve": _approve, "reject": _reject},
    "social_posts": {"approve": _approve, "reject": _reject},
}

# Published content is terminal; reviews cannot pull it back
TERMINAL_STATUSES = frozenset({PostStatus.published.value})


def _requires_tenant_scope(roles: Roles) -> bool:
    return frozenset(Role(r) for r in roles) <= CLIENT_ROLES


def _label(table: str) -> str:
    return LABELS.get(table, "Resource")


def _load_owned(
    store: Store,
    session: Session,
    table: str,
    row_id: str,
    allow_global: bool = False,
) -> Dict[str, Any]:
    row = store.find(table, row_id)
    if row is None:
        raise NotFound(f"{_label(table)} not found")
    # A client row is its own tenant
    tenant_id = row["id"] if table == "clients" else row.get("client_id")
    check_resource_tenant(session, tenant_id, allow_global=allow_global)
    return row


# ============================================================================
# Single-resource operations
# ============================================================================

def get_owned(
    db: Database,
    session: Optional[Session],
    table: str,
    row_id: str,
    roles: Roles = ALL_ROLES,
    allow_global: bool = False,
) -> Dict[str, Any]:
    """
    Guard, load by id, verify ownership, return the row.

    Raises:
        Unauthenticated: No session
        Forbidden: Role not permitted, or row belongs to another tenant
        NotFound: No row with this id
    """
    session = enforce(session, roles)
    with db.transaction() as store:
        return _load_owned(store, session, table, row_id, allow_global=allow_global)


def list_scoped(
    db: Database,
    session: Optional[Session],
    table: str,
    roles: Roles = ALL_ROLES,
    filters: Optional[Mapping[str, Any]] = None,
    order_by: Sequence[str] = ("-created_at",),
    search: Optional[Search] = None,
    allow_global: bool = False,
) -> List[Dict[str, Any]]:
    """
    List rows visible to the session.

    Client sessions always get their own tenant forced into the filter (plus
    global rows when `allow_global`); agency sessions may filter by any tenant.
    """
    session = enforce(session, roles)
    scoped = tenant_filter(session, filters)
    if allow_global and session.is_client:
        scoped["client_id"] = NullOr(session.tenant_id)

    with db.transaction() as store:
        rows = store.find_many(table, scoped, order_by=order_by, search=search)

    assert_rows_scoped(rows, session, label=f"list {table}", allow_global=allow_global)
    return rows


def create_owned(
    db: Database,
    session: Optional[Session],
    table: str,
    values: Values,
    roles: Roles = AGENCY_ROLES,
) -> Dict[str, Any]:
    """
    Create a tenant-owned row.

    Client sessions can only create inside their own tenant (client_id is forced);
    agency sessions must name an existing client. Content tables honour the
    client's feature flags.
    """
    session = enforce(session, roles)
    with db.transaction() as store:
        data = dict(values(None, store) if callable(values) else values)
        if session.is_client:
            data["client_id"] = session.tenant_id
        client_id = data.get("client_id")
        if not client_id:
            raise InvalidArgument("client_id is required")

        client = store.find("clients", client_id)
        if client is None:
            raise NotFound("Client not found")
        if table in TABLE_FEATURES:
            require_feature(client, TABLE_FEATURES[table])

        row = store.create(table, data)

    logger.info("[OPS] Created %s id=%s client_id=%s by user_id=%s", table, row["id"], client_id, session.user_id)
    return row


def update_owned(
    db: Database,
    session: Optional[Session],
    table: str,
    row_id: str,
    values: Values,
    roles: Roles = AGENCY_ROLES,
    editable_statuses: Optional[Iterable[str]] = None,
    allow_global: bool = False,
) -> Dict[str, Any]:
    """
    Guard, load, verify ownership, optionally gate on status, update, re-read.

    `values` may be a callable receiving the current row and the Store, for
    updates that depend on existing state (e.g. slug regeneration).

    Raises:
        InvalidArgument: If the row's status is not in `editable_statuses`
    """
    session = enforce(session, roles)
    with db.transaction() as store:
        existing = _load_owned(store, session, table, row_id, allow_global=allow_global)

        if editable_statuses is not None and existing.get("status") not in set(editable_statuses):
            allowed = " or ".join(sorted(editable_statuses))
            raise InvalidArgument(f"{_label(table)} can only be edited when in {allowed} status")

        data = dict(values(existing, store) if callable(values) else values)
        data.pop("id", None)
        if session.is_client:
            # Clients can never move a row to another tenant
            data.pop("client_id", None)
        if data:
            store.update(table, row_id, data)
        return store.find(table, row_id)


def delete_owned(
    db: Database,
    session: Optional[Session],
    table: str,
    row_id: str,
    roles: Roles = AGENCY_ROLES,
    deletable_statuses: Optional[Iterable[str]] = None,
) -> None:
    """Guard, load, verify ownership, optionally gate on status, delete."""
    session = enforce(session, roles)
    with db.transaction() as store:
        existing = _load_owned(store, session, table, row_id)

        if deletable_statuses is not None and existing.get("status") not in set(deletable_statuses):
            allowed = " or ".join(sorted(deletable_statuses))
            raise InvalidArgument(f"{_label(table)} can only be deleted when in {allowed} status")

        store.delete(table, row_id)

    logger.info("[OPS] Deleted %s id=%s by user_id=%s", table, row_id, session.user_id)


# ============================================================================
# Bulk status transition
# ============================================================================

def _normalize_ids(ids: Any) -> List[str]:
    if not isinstance(ids, (list, tuple, set, frozenset)) or not ids:
        raise InvalidArgument("ids array is required")
    if not all(isinstance(i, str) and i for i in ids):
        raise InvalidArgument("ids must be non-empty strings")
    # Collapse duplicates, keep request order
    return list(dict.fromkeys(ids))


def bulk_transition(
    db: Database,
    session: Optional[Session],
    table: str,
    ids: Any,
    action: Any,
    rejection_reason: Optional[str] = None,
    roles: Roles = CLIENT_ROLES,
) -> Dict[str, Any]:
    """
    Apply one review action to a set of rows, all or nothing.

    Process:
    1. Guard (client roles act inside their own tenant only)
    2. Validate ids (non-empty) and action (known for this table)
    3. Load rows with id in ids AND inside the caller's tenant scope
    4. Reject with Forbidden unless every requested id was found in scope
    5. Reject with Conflict if any row is already in a terminal state
    6. One UPDATE over the same predicate; its row count must equal |ids|

    Forbidden deliberately does not distinguish "missing" from "another tenant's".

    Raises:
        InvalidArgument: Empty ids or unknown action
        Forbidden: Some ids not found or not in scope
        Conflict: A row is already published
        Internal: The batch update touched a different number of rows
    """
    session = enforce(session, roles, tenant_scope_required=_requires_tenant_scope(roles))

    transitions = BULK_TRANSITIONS.get(table)
    if transitions is None:
        raise InvalidArgument(f"Bulk actions are not supported for {table}")
    unique_ids = _normalize_ids(ids)
    if action not in transitions:
        raise InvalidArgument(f"action must be one of: {', '.join(sorted(transitions))}")

    values = transitions[action](rejection_reason)
    scope = tenant_filter(session, {"id": In(unique_ids)})

    with db.transaction() as store:
        rows = store.find_many(table, scope)
        if len(rows) != len(unique_ids):
            logger.info(
                "[BULK] Rejected %s on %s: requested=%d, in_scope=%d, user_id=%s, tenant=%s",
                action, table, len(unique_ids), len(rows), session.user_id, session.tenant_id,
            )
            raise Forbidden("Some posts not found or unauthorized")
        assert_rows_scoped(rows, session, label=f"bulk {table}")

        terminal = [r["id"] for r in rows if r.get("status") in TERMINAL_STATUSES]
        if terminal:
            raise Conflict(f"{len(terminal)} post(s) already published and cannot be changed")

        updated = store.update_many(
            table,
            {**scope, "status": Ne(PostStatus.published.value)},
            values,
        )
        if updated != len(unique_ids):
            logger.error(
                "[BULK] Partial update on %s: expected=%d, updated=%d (rolled back)",
                table, len(unique_ids), updated,
            )
            raise Internal("Failed to perform bulk action")

    verb = "Approved" if action == "approve" else "Rejected"
    logger.info("[BULK] %s %d row(s) in %s by user_id=%s", verb, updated, table, session.user_id)
    return {
        "success": True,
        "action": action,
        "count": updated,
        "ids": unique_ids,
        "message": f"{verb} {updated} post(s)",
    }


# ============================================================================
# Primary-flag exclusivity
# ============================================================================

def _make_primary(store: Store, client_id: str, contact_id: str) -> None:
    """Clear siblings first, then set the contact, then re-verify exactly one primary."""
    store.update_many(
        "contacts",
        {"client_id": client_id, "id": Ne(contact_id), "is_primary": True},
        {"is_primary": False},
    )
    store.update("contacts", contact_id, {"is_primary": True})

    primaries = store.count("contacts", {"client_id": client_id, "is_primary": True})
    if primaries != 1:
        logger.warning("[CONTACTS] Primary invariant violated: client_id=%s, primaries=%d", client_id, primaries)
        raise Conflict("Primary contact changed concurrently, please retry")


def set_primary_contact(db: Database, session: Optional[Session], contact_id: str) -> Dict[str, Any]:
    """Make one contact the tenant's only primary contact."""
    session = enforce(session, AGENCY_ROLES)
    with db.transaction() as store:
        contact = _load_owned(store, session, "contacts", contact_id)
        _make_primary(store, contact["client_id"], contact_id)
        return store.find("contacts", contact_id)


def create_contact(db: Database, session: Optional[Session], values: Mapping[str, Any]) -> Dict[str, Any]:
    """Create a contact; `is_primary=True` demotes the tenant's current primary in the same transaction."""
    session = enforce(session, AGENCY_ROLES)
    data = dict(values)
    make_primary = bool(data.pop("is_primary", False))
    client_id = data.get("client_id")
    if not client_id:
        raise InvalidArgument("client_id is required")

    with db.transaction() as store:
        if store.find("clients", client_id) is None:
            raise NotFound("Client not found")
        contact = store.create("contacts", {**data, "is_primary": False})
        if make_primary:
            _make_primary(store, client_id, contact["id"])
        return store.find("contacts", contact["id"])


def update_contact(
    db: Database,
    session: Optional[Session],
    contact_id: str,
    values: Mapping[str, Any],
) -> Dict[str, Any]:
    session = enforce(session, AGENCY_ROLES)
    data = dict(values)
    data.pop("client_id", None)
    data.pop("id", None)
    primary = data.pop("is_primary", None)

    with db.transaction() as store:
        contact = _load_owned(store, session, "contacts", contact_id)
        if data:
            store.update("contacts", contact_id, data)
        if primary is True:
            _make_primary(store, contact["client_id"], contact_id)
        elif primary is False:
            store.update("contacts", contact_id, {"is_primary": False})
        return store.find("contacts", contact_id)


# ============================================================================
# Scheduled publish sweep
# ============================================================================

def publish_scheduled(
    db: Database,
    session: Optional[Session],
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Publish every approved social post whose schedule has passed.

    `now` is materialized once so every post published by this sweep gets the same
    `published_at`. The `published_at IS NULL` predicate is part of both the select
    and the update, which makes repeated or overlapping sweeps safe. Client sessions
    only sweep their own tenant.
    """
    session = enforce(session, ALL_ROLES)
    stamp = to_iso(now or utc_now())
    predicate = tenant_filter(session, {
        "status": PostStatus.approved.value,
        "scheduled_at": Lte(stamp),
        "published_at": None,
    })

    with db.transaction() as store:
        due = store.find_many("social_posts", predicate, order_by=("scheduled_at",))
        if not due:
            logger.debug("[SWEEP] No posts to publish at %s", stamp)
            return {"message": "No posts to publish", "count": 0, "post_ids": [], "published_at": stamp}

        due_ids = [row["id"] for row in due]
        # Only ids this UPDATE changed; rows an overlapping sweep already
        # published no longer match the predicate
        changed = set(store.update_returning_ids(
            "social_posts",
            {**predicate, "id": In(due_ids)},
            {"status": PostStatus.published.value, "published_at": stamp},
        ))
        post_ids = [post_id for post_id in due_ids if post_id in changed]

    count = len(post_ids)
    if count != len(due_ids):
        logger.info("[SWEEP] %d due post(s) were published by another sweep", len(due_ids) - count)
    logger.info("[SWEEP] Published %d post(s) at %s", count, stamp)
    return {
        "message": f"Successfully published {count} post(s)" if count else "No posts to publish",
        "count": count,
        "post_ids": post_ids,
        "published_at": stamp,
    }


# ============================================================================
# Single social post review
# ============================================================================

def review_social_post(
    db: Database,
    session: Optional[Session],
    post_id: str,
    action: Any,
    rejection_reason: Optional[str] = None,
) -> Dict[str, Any]:
    session = enforce(session, CLIENT_ROLES, tenant_scope_required=True)
    if action not in ("approve", "reject"):
        raise InvalidArgument('Action must be either "approve" or "reject"')

    with db.transaction() as store:
        post = _load_owned(store, session, "social_posts", post_id)
        if post["status"] != PostStatus.pending_review.value:
            raise InvalidArgument("Post must be in pending_review status to be approved or rejected")
        if action == "reject" and not rejection_reason:
            raise InvalidArgument("Rejection reason is required")

        values = _approve(None) if action == "approve" else _reject(rejection_reason)
        store.update("social_posts", post_id, values)
        return store.find("social_posts", post_id)


# ============================================================================
# Notifications
# ============================================================================

def create_notification(db: Database, session: Optional[Session], values: Mapping[str, Any]) -> Dict[str, Any]:
    """Create a notification for one client, or for every client when client_id is empty."""
    session = enforce(session, AGENCY_ROLES)
    data = dict(values)
    data["client_id"] = data.get("client_id") or None
    data.pop("is_read", None)

    with db.transaction() as store:
        if data["client_id"] is not None and store.find("clients", data["client_id"]) is None:
            raise NotFound("Client not found")
        row = store.create("notifications", data)

    logger.info("[NOTIFY] Created notification id=%s client_id=%s", row["id"], row["client_id"] or "*")
    return row


def mark_all_read(
    db: Database,
    session: Optional[Session],
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Mark the tenant's unread notifications, plus global ones, as read."""
    session = enforce(session, CLIENT_ROLES)
    if not session.tenant_id:
        return {"success": True, "count": 0}

    stamp = to_iso(now or utc_now())
    with db.transaction() as store:
        count = store.update_many(
            "notifications",
            {"client_id": NullOr(session.tenant_id), "is_read": False},
            {"is_read": True, "read_at": stamp},
        )

    logger.info("[NOTIFY] Marked %d notification(s) read for client_id=%s", count, session.tenant_id)
    return {"success": True, "count": count}


def update_notification(
    db: Database,
    session: Optional[Session],
    notification_id: str,
    values: Mapping[str, Any],
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Client users may only mark a notification as read; agency users may edit
    title, text, tenant and read state.
    """
    session = enforce(session, ALL_ROLES)
    stamp = to_iso(now or utc_now())

    with db.transaction() as store:
        _load_owned(store, session, "notifications", notification_id, allow_global=True)

        if session.is_client:
            if "is_read" not in values:
                raise InvalidArgument("Clients can only mark notifications as read")
            data: Dict[str, Any] = {"is_read": True, "read_at": stamp}
        else:
            data = {k: values[k] for k in ("title", "text") if k in values}
            if "client_id" in values:
                # Empty moves the notification to every client
                data["client_id"] = values["client_id"] or None
                if data["client_id"] is not None and store.find("clients", data["client_id"]) is None:
                    raise NotFound("Client not found")
            if "is_read" in values:
                data["is_read"] = bool(values["is_read"])
                data["read_at"] = stamp if values["is_read"] else None

        if data:
            store.update("notifications", notification_id, data)
        return store.find("notifications", notification_id)


# ============================================================================
# Social posts
# ============================================================================

def _social_values(data: Dict[str, Any]) -> Dict[str, Any]:
    if "images" in data:
        data["images"] = encode_images(data["images"])
    if data.get("status") == PostStatus.pending_review.value:
        data["rejection_reason"] = None
    return data


def create_social_post(db: Database, session: Optional[Session], values: Mapping[str, Any]) -> Dict[str, Any]:
    """Validate against the platform's content-style rules, then create for the named client."""
    session = enforce(session, AGENCY_ROLES)
    data = dict(values)
    if not data.get("platform") or not data.get("content_style") or not data.get("client_id"):
        raise InvalidArgument("Platform, content style, and client ID are required")
    validate_social_content(
        data["platform"], data["content_style"], data.get("caption"),
        data.get("images"), data.get("video_url"), data.get("link"),
    )
    return create_owned(db, session, "social_posts", _social_values(data))


def update_social_post(
    db: Database,
    session: Optional[Session],
    post_id: str,
    values: Mapping[str, Any],
) -> Dict[str, Any]:
    """
    Partial edit by the agency. The merged post must still satisfy its content
    style; resubmitting for review clears the previous rejection reason.
    """

    def _merge(existing: Dict[str, Any], store: Store) -> Dict[str, Any]:
        data = dict(values)
        merged = {**existing, **data}
        validate_social_content(
            merged["platform"], merged["content_style"], merged.get("caption"),
            merged.get("images"), merged.get("video_url"), merged.get("link"),
        )
        return _social_values(data)

    return update_owned(db, session, "social_posts", post_id, _merge)


# ============================================================================
# Campaigns
# ============================================================================

# Statuses a client may move a campaign to while it awaits their review
CLIENT_CAMPAIGN_DECISIONS = frozenset({CampaignStatus.APPROVED.value, CampaignStatus.REJECTED.value})


def update_campaign(
    db: Database,
    session: Optional[Session],
    campaign_id: str,
    values: Mapping[str, Any],
) -> Dict[str, Any]:
    """
    Agency users edit any field. Client users can only approve or reject one of
    their own campaigns that is in review; rejecting needs a reason.
    """
    session = enforce(session, ALL_ROLES)
    if not session.is_client:
        return update_owned(db, session, "campaigns", campaign_id, values)

    status = values.get("status")
    if status not in CLIENT_CAMPAIGN_DECISIONS:
        raise InvalidArgument("Clients can only approve or reject a campaign")
    reason = (values.get("rejection_reason") or "").strip()
    if status == CampaignStatus.REJECTED.value and not reason:
        raise InvalidArgument("Rejection reason is required when rejecting a campaign")

    data = {"status": status, "rejection_reason": reason or None}
    return update_owned(
        db, session, "campaigns", campaign_id, data,
        roles=CLIENT_ROLES,
        editable_statuses={CampaignStatus.REVIEW.value},
    )


# ============================================================================
# Messages
# ============================================================================

def create_message(db: Database, session: Optional[Session], values: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Post a message to a client's thread. Client users always write to their own
    client; agency users name the client.
    """
    session = enforce(session, ALL_ROLES)
    content = (values.get("content") or "").strip()
    if not content:
        raise InvalidArgument("Message content is required")
    data = {"client_id": values.get("client_id"), "content": content, "sender_id": session.user_id}
    return create_owned(db, session, "messages", data, roles=ALL_ROLES)


def mark_message_read(
    db: Database,
    session: Optional[Session],
    message_id: str,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    stamp = to_iso(now or utc_now())
    return update_owned(
        db, session, "messages", message_id,
        {"is_read": True, "read_at": stamp},
        roles=ALL_ROLES,
    )


# ============================================================================
# CRM notes
# ============================================================================

def _can_see_note(session: Session, note: Mapping[str, Any]) -> bool:
    # Private notes belong to their author; agency admins see everything
    return not note.get("is_private") or note.get("user_id") == session.user_id or session.role == Role.AGENCY_ADMIN


def _load_note(store: Store, session: Session, note_id: str) -> Dict[str, Any]:
    note = _load_owned(store, session, "notes", note_id)
    if not _can_see_note(session, note):
        logger.info("[NOTES] Private note denied: note_id=%s, user_id=%s", note_id, session.user_id)
        raise Forbidden("Unauthorized")
    return note


def list_notes(db: Database, session: Optional[Session], client_id: str) -> List[Dict[str, Any]]:
    rows = list_scoped(db, session, "notes", roles=AGENCY_ROLES, filters={"client_id": client_id})
    return [note for note in rows if _can_see_note(session, note)]


def create_note(db: Database, session: Optional[Session], values: Mapping[str, Any]) -> Dict[str, Any]:
    session = enforce(session, AGENCY_ROLES)
    return create_owned(db, session, "notes", {**values, "user_id": session.user_id})


def update_note(
    db: Database,
    session: Optional[Session],
    note_id: str,
    values: Mapping[str, Any],
) -> Dict[str, Any]:
    session = enforce(session, AGENCY_ROLES)
    data = {k: values[k] for k in ("title", "content", "is_private") if k in values}
    with db.transaction() as store:
        _load_note(store, session, note_id)
        if data:
            store.update("notes", note_id, data)
        return store.find("notes", note_id)


def delete_note(db: Database, session: Optional[Session], note_id: str) -> None:
    session = enforce(session, AGENCY_ROLES)
    with db.transaction() as store:
        _load_note(store, session, note_id)
        store.delete("notes", note_id)
    logger.info("[OPS] Deleted notes id=%s by user_id=%s", note_id, session.user_id)
