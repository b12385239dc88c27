"""
portal/dependencies.py

Composable guard policies for FastAPI routes.

Usage:
    @router.post("/api/blogs", dependencies=[Depends(require_agency())])
    def create_post(...): ...

    @router.get("/api/notifications")
    def notifications(session: Session = Depends(require(*CLIENT_ROLES, tenant_scope=True,
                                                          tenant_from=query_tenant("clientId")))):
        ...

Route-level policies reject early (before any handler code runs). Operations in
`portal.operations` enforce again with the same guard, so a handler that forgets
its dependency is still covered.
"""

from __future__ import annotations

from typing import Callable, Iterable, Optional, Union

from fastapi import Depends, Request

from portal.auth_context import get_session
from portal.authz import enforce
from portal.models import AGENCY_ROLES, ALL_ROLES, CLIENT_ROLES, Role
from portal.session import Session

TenantExtractor = Callable[[Request], Optional[str]]


def query_tenant(param: str = "clientId") -> TenantExtractor:
    """Read the requested tenant from a query parameter."""
    def _extract(request: Request) -> Optional[str]:
        return request.query_params.get(param)
    return _extract


class Policy:
    """
    Role set + optional tenant scope + tenant extraction, checked as one unit.

    A policy is reusable across routes; `require()` turns it into a dependency.
    """

    def __init__(
        self,
        roles: Iterable[Union[Role, str]],
        tenant_scope: bool = False,
        tenant_from: Optional[TenantExtractor] = None,
    ):
        self.roles = frozenset(Role(r) for r in roles)
        self.tenant_scope = tenant_scope
        self.tenant_from = tenant_from

    def check(self, session: Optional[Session], request: Optional[Request] = None) -> Session:
        requested_tenant = None
        if self.tenant_from is not None and request is not None:
            requested_tenant = self.tenant_from(request)
        return enforce(session, self.roles, self.tenant_scope, requested_tenant)


def require(
    *roles: Union[Role, str],
    tenant_scope: bool = False,
    tenant_from: Optional[TenantExtractor] = None,
) -> Callable:
    """
    Build a FastAPI dependency that resolves the session and enforces a policy.

    Args:
        *roles: Roles permitted (defaults to every role)
        tenant_scope: Caller must act inside exactly one tenant
        tenant_from: Extracts the requested tenant id from the request

    Returns:
        Dependency resolving to the authorized Session
    """
    policy = Policy(roles or ALL_ROLES, tenant_scope=tenant_scope, tenant_from=tenant_from)

    def dependency(request: Request, session: Optional[Session] = Depends(get_session)) -> Session:
        return policy.check(session, request)

    return dependency


def require_agency() -> Callable:
    """Agency staff only (cross-tenant administration)."""
    return require(*AGENCY_ROLES)


def require_client() -> Callable:
    """Client users only, always inside their own tenant (a foreign `clientId` is 403)."""
    return require(*CLIENT_ROLES, tenant_scope=True, tenant_from=query_tenant())


def require_any_role() -> Callable:
    """Any authenticated user."""
    return require(*ALL_ROLES)
