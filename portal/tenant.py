"""
portal/tenant.py

Tenant guardrails (defense in depth).

The operations already filter every client-session query by `client_id`. These
helpers re-check the rows that come back before they reach a response, so a
missing filter surfaces as a server error instead of a cross-tenant leak.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Mapping, Optional

from portal.errors import Internal
from portal.session import Session

logger = logging.getLogger(__name__)


def tenant_filter(session: Session, filters: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
    """
    Return `filters` with the session's tenant forced in for client sessions.

    A caller-supplied `client_id` is overwritten, never trusted. Agency sessions
    keep whatever tenant filter the caller asked for (or none).
    """
    scoped = dict(filters or {})
    if session.is_client:
        scoped["client_id"] = session.tenant_id
    return scoped


def assert_rows_scoped(
    rows: Iterable[Mapping[str, Any]],
    session: Session,
    label: str = "",
    allow_global: bool = False,
) -> None:
    """
    Guardrail: every row must belong to the client session's tenant.

    Args:
        rows: Rows about to be returned or mutated
        session: Acting session (agency sessions are not checked)
        label: Identifier for logging (e.g., operation name)
        allow_global: Rows with a NULL client_id are acceptable

    Raises:
        Internal: If any row belongs to another tenant
    """
    if session.is_agency:
        return

    mismatches = []
    for i, row in enumerate(rows):
        row_tenant = row.get("client_id")
        if row_tenant is None and allow_global:
            continue
        if row_tenant != session.tenant_id:
            mismatches.append({"index": i, "expected": session.tenant_id, "found": row_tenant})

    if mismatches:
        logger.error(
            "[TENANT] Tenant isolation violation%s: %d row(s) with mismatched client_id, first=%s",
            f" in {label}" if label else "", len(mismatches), mismatches[:3],
        )
        raise Internal("Tenant isolation violation detected - this is a server error")
