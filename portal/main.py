# ---------------------------------------------------------
# portal/main.py
# Agency / client portal backend
#
# Run: uvicorn portal.main:app --reload (from repo root)
#
# - FastAPI + SQLAlchemy (SQLite in dev, PostgreSQL in staging/prod)
# - /api/clients        : tenant administration (agency)
# - /api/blogs          : blog posts, bulk approve/reject
# - /api/social-media   : social posts, review, scheduled publishing
# - /api/campaigns      : email campaigns, client approval
# - /api/crm/contacts   : contacts with a single primary contact per client
# - /api/crm/deals      : sales pipeline
# - /api/crm/notes      : shared and private account notes
# - /api/messages       : agency / client message threads
# - /api/notifications  : per-client and global notifications
# - /api/invoices       : invoices
# - /api/projects       : projects
# ---------------------------------------------------------

from __future__ import annotations

import logging
from typing import Dict

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from portal import (
    routes_blogs,
    routes_campaigns,
    routes_clients,
    routes_crm,
    routes_invoices,
    routes_messages,
    routes_notifications,
    routes_projects,
    routes_social,
)
from portal.config import CORS_ORIGINS, IS_PROD, configure_logging
from portal.errors import PortalError

configure_logging()
logger = logging.getLogger(__name__)

# ---------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------
app = FastAPI(title="Agency Portal Backend", version="0.1")

# CORS configuration from config module
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS if IS_PROD else ["*"],  # Restrict origins in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------
# Error rendering
# ---------------------------------------------------------
@app.exception_handler(PortalError)
def handle_portal_error(request: Request, exc: PortalError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("[API] %s %s -> %d: %s", request.method, request.url.path, exc.status_code, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_body(include_details=not IS_PROD))


@app.exception_handler(RequestValidationError)
def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    body = {"error": "Invalid request"}
    if not IS_PROD:
        body["details"] = "; ".join(
            f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg')}" for err in exc.errors()
        )
    return JSONResponse(status_code=400, content=body)


@app.exception_handler(Exception)
def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("[API] Unhandled error on %s %s", request.method, request.url.path)
    body = {"error": "Internal server error"}
    if not IS_PROD:
        body["details"] = str(exc)
    return JSONResponse(status_code=500, content=body)


# ---------------------------------------------------------
# Routes
# ---------------------------------------------------------
@app.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}


app.include_router(routes_clients.router)
app.include_router(routes_clients.settings_router)
app.include_router(routes_blogs.router)
app.include_router(routes_social.router)
app.include_router(routes_campaigns.router)
app.include_router(routes_crm.router)
app.include_router(routes_crm.deals_router)
app.include_router(routes_crm.notes_router)
app.include_router(routes_messages.router)
app.include_router(routes_notifications.router)
app.include_router(routes_invoices.router)
app.include_router(routes_projects.router)
