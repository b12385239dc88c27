"""
portal/authz.py

Authorization Guard: single source of truth for role and tenant checks.

Two disjoint role families exist:
- agency roles (AGENCY_ADMIN, AGENCY_STAFF): cross-tenant, administrative
- client roles (CLIENT_ADMIN, CLIENT_USER): exactly one tenant, fixed by the session

The coarse check (`authorize` / `enforce`) runs before any persistence access.
The per-resource check (`check_resource_tenant`) runs after the resource is loaded,
whenever the resource id came from the caller.

Pure Python logic - no FastAPI imports, no database access.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import AbstractSet, Iterable, Optional, Type

from portal.errors import Forbidden, PortalError, Unauthenticated
from portal.models import Role
from portal.session import Session

logger = logging.getLogger(__name__)


# ============================================================================
# Decision
# ============================================================================

@dataclass(frozen=True)
class Decision:
    """Outcome of a guard evaluation: Allow, or Deny with an error class and reason."""
    allowed: bool
    error: Optional[Type[PortalError]] = None
    reason: Optional[str] = None

    def raise_for_denial(self) -> None:
        if not self.allowed:
            raise self.error(self.reason)


ALLOW = Decision(allowed=True)


def deny(error: Type[PortalError], reason: str) -> Decision:
    return Decision(allowed=False, error=error, reason=reason)


def _normalize_roles(roles: Iterable[Role | str]) -> AbstractSet[Role]:
    return frozenset(Role(r) for r in roles)


# ============================================================================
# Coarse guard
# ============================================================================

def authorize(
    session: Optional[Session],
    required_roles: Iterable[Role | str],
    tenant_scope_required: bool = False,
    requested_tenant_id: Optional[str] = None,
) -> Decision:
    """
    Evaluate a session against a required role set and optional tenant scope.

    Args:
        session: The acting session, or None when the request carries no valid credentials
        required_roles: Roles permitted to perform the operation
        tenant_scope_required: The operation acts within exactly one tenant
        requested_tenant_id: Tenant named by the request (path/query/body), if any

    Returns:
        ALLOW, or a Deny decision carrying Unauthenticated/Forbidden and a reason
    """
    if session is None:
        return deny(Unauthenticated, "Unauthorized")

    if session.role not in _normalize_roles(required_roles):
        return deny(Forbidden, "Unauthorized")

    if tenant_scope_required:
        if not session.tenant_id:
            return deny(Forbidden, "No client associated")
        if requested_tenant_id is not None and str(requested_tenant_id) != session.tenant_id:
            return deny(Forbidden, "Unauthorized")

    return ALLOW


def enforce(
    session: Optional[Session],
    required_roles: Iterable[Role | str],
    tenant_scope_required: bool = False,
    requested_tenant_id: Optional[str] = None,
) -> Session:
    """
    Raise on denial, otherwise hand the session back to the caller.

    This is the main authorization gate. Use it at the top of every operation.
    """
    decision = authorize(session, required_roles, tenant_scope_required, requested_tenant_id)
    if not decision.allowed:
        if session is None:
            logger.info("[AUTHZ] Unauthenticated access attempt")
        else:
            logger.info(
                "[AUTHZ] Denied: user_id=%s, role=%s, tenant=%s, reason=%s",
                session.user_id, session.role.value, session.tenant_id, decision.reason,
            )
        decision.raise_for_denial()
    return session


# ============================================================================
# Per-resource tenant check
# ============================================================================

def check_resource_tenant(
    session: Session,
    resource_tenant_id: Optional[str],
    allow_global: bool = False,
) -> None:
    """
    Verify that a loaded resource belongs to the session's tenant.

    Agency sessions bypass tenant scoping. For client sessions the resource's
    tenant must equal the session's; a resource without a tenant is only visible
    when `allow_global` is set (global notifications).

    Raises:
        Forbidden: If the resource belongs to another tenant
    """
    if session.is_agency:
        return

    if resource_tenant_id is None and allow_global:
        return

    if resource_tenant_id != session.tenant_id:
        logger.info(
            "[AUTHZ] Cross-tenant access blocked: user_id=%s, tenant=%s, resource_tenant=%s",
            session.user_id, session.tenant_id, resource_tenant_id,
        )
        raise Forbidden("Unauthorized")
