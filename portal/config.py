# portal/config.py
# Environment-aware configuration for the agency portal backend

import logging
import os
from typing import Literal

logger = logging.getLogger(__name__)

# Environment detection
ENV: Literal["dev", "staging", "prod"] = os.environ.get("ENV", "dev")  # type: ignore
IS_DEV = (ENV == "dev")
IS_STAGING = (ENV == "staging")
IS_PROD = (ENV == "prod")

# JWT and session configuration
SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-change-in-production")
ALGORITHM = "HS256"

# Token lifetime
ACCESS_TOKEN_MINUTES = int(os.environ.get("ACCESS_TOKEN_MINUTES", "60"))

# Database configuration
# DATABASE_URL takes precedence (managed Postgres in staging/prod)
# Falls back to SQLite for local development
DATABASE_URL = os.environ.get("DATABASE_URL", "").strip()
DATABASE_PATH = os.environ.get("DATABASE_PATH", "portal.db")

# Database type detection
IS_POSTGRES = DATABASE_URL.startswith(("postgres://", "postgresql://"))

# Logging
LOG_LEVEL = os.environ.get("LOG_LEVEL", "DEBUG" if IS_DEV else "INFO").upper()

# CORS origins (expand for staging/prod)
CORS_ORIGINS = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]

if IS_STAGING or IS_PROD:
    extra_origins = os.environ.get("CORS_ORIGINS", "")
    if extra_origins:
        CORS_ORIGINS.extend(o.strip() for o in extra_origins.split(",") if o.strip())


def configure_logging() -> None:
    """Install a root handler once; repeated calls are no-ops."""
    root = logging.getLogger()
    if root.handlers:
        root.setLevel(LOG_LEVEL)
        return
    logging.basicConfig(
        level=LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    logger.info("[CONFIG] Environment: %s", ENV)
    logger.info("[CONFIG] Database: %s", "PostgreSQL" if IS_POSTGRES else "SQLite (local dev)")
    logger.info("[CONFIG] Access token: %s minutes", ACCESS_TOKEN_MINUTES)
