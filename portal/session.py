"""
portal/session.py

Request session as a tagged union.

An agency session never carries a tenant; a client session always does. Code that
needs the tenant asks for ``session.tenant_id`` and gets ``None`` for agency users,
which keeps "forgot to check the tenant" bugs out of the client branch.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union

from portal.models import AGENCY_ROLES, CLIENT_ROLES, Role

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AgencySession:
    user_id: str
    role: Role

    @property
    def tenant_id(self) -> None:
        return None

    @property
    def is_agency(self) -> bool:
        return True

    @property
    def is_client(self) -> bool:
        return False


@dataclass(frozen=True)
class ClientSession:
    user_id: str
    role: Role
    tenant_id: str

    @property
    def is_agency(self) -> bool:
        return False

    @property
    def is_client(self) -> bool:
        return True


Session = Union[AgencySession, ClientSession]


def session_from_claims(claims: Mapping[str, Any]) -> Optional[Session]:
    """
    Build a session from a user row or decoded token claims.

    Expects ``id`` (or ``sub``), ``role`` and, for client roles, ``client_id``.
    Returns None for unknown roles or a client role without a tenant; the guard
    then treats the request as unauthenticated.
    """
    user_id = claims.get("id") or claims.get("sub")
    if not user_id:
        return None

    try:
        role = Role(claims.get("role"))
    except ValueError:
        logger.warning("[SESSION] Unknown role for user_id=%s: %r", user_id, claims.get("role"))
        return None

    if role in AGENCY_ROLES:
        return AgencySession(user_id=str(user_id), role=role)

    if role in CLIENT_ROLES:
        tenant_id = claims.get("client_id")
        if not tenant_id:
            logger.warning("[SESSION] Client role without client_id: user_id=%s", user_id)
            return None
        return ClientSession(user_id=str(user_id), role=role, tenant_id=str(tenant_id))

    return None
