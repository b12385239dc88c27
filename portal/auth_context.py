"""
portal/auth_context.py

Session provider for FastAPI dependency injection.

Contains:
- create_access_token / verify_token: JWT minting and verification (PyJWT)
- load_session: bearer token -> Session using the users table as source of truth
- get_session: FastAPI dependency resolving the optional Session for a request

A missing, invalid or expired token, an unknown user, or an inactive user all
resolve to "no session". The guard turns that into 401, so this module never
decides authorization on its own.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Dict, Optional

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from portal.config import ACCESS_TOKEN_MINUTES, ALGORITHM, IS_DEV, SECRET_KEY
from portal.db import Database, get_database, utc_now
from portal.session import Session, session_from_claims

logger = logging.getLogger(__name__)

# Optional bearer: absence is answered by the guard with 401, not by FastAPI
security = HTTPBearer(auto_error=False)


# ---------------------------------------------------------
# JWT
# ---------------------------------------------------------
def create_access_token(data: Dict[str, Any], minutes: Optional[int] = None) -> str:
    """Sign `data` (must include `sub`) with an expiry."""
    to_encode = dict(data)
    now = utc_now()
    to_encode.update({
        "iat": now,
        "exp": now + timedelta(minutes=minutes if minutes is not None else ACCESS_TOKEN_MINUTES),
    })
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def verify_token(token: str) -> Optional[Dict[str, Any]]:
    """Decode a JWT access token; None when expired or invalid."""
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError:
        logger.info("[AUTH] Token expired")
    except jwt.InvalidTokenError:
        logger.info("[AUTH] Invalid token")
    return None


# ---------------------------------------------------------
# Session resolution
# ---------------------------------------------------------
def load_session(db: Database, token: Optional[str]) -> Optional[Session]:
    """
    Resolve a bearer token into a Session.

    Process:
    1. Verify JWT signature and expiration
    2. Extract user id from `sub`
    3. Fetch the user row (role, client_id, is_active come from the database,
       never from the token)
    4. Build the tagged Session
    """
    if not token:
        return None

    payload = verify_token(token)
    if not payload:
        return None

    user_id = payload.get("sub")
    if not user_id:
        logger.info("[AUTH] Missing sub in token payload")
        return None

    with db.transaction() as store:
        user = store.find("users", str(user_id))

    if user is None:
        logger.info("[AUTH] User not found: user_id=%s", user_id)
        return None

    if not user["is_active"]:
        logger.info("[AUTH] Inactive user attempted access: user_id=%s", user_id)
        return None

    session = session_from_claims(user)
    if session is not None and IS_DEV:
        logger.debug(
            "[AUTH] Authenticated: user_id=%s, role=%s, tenant=%s",
            session.user_id, session.role.value, session.tenant_id,
        )
    return session


def get_session(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Database = Depends(get_database),
) -> Optional[Session]:
    """
    FastAPI dependency returning the request's Session, or None.

    Usage:
        @router.get("/api/blogs/{post_id}")
        def get_post(post_id: str, session=Depends(get_session), db=Depends(get_database)):
            return get_owned(db, session, "blog_posts", post_id)
    """
    token = credentials.credentials if credentials else None
    return load_session(db, token)
