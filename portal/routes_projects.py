"""
portal/routes_projects.py

Project endpoints. Agency users manage projects; client users read their own.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Path, Query

from portal.auth_context import get_session
from portal.db import Database, get_database
from portal.dependencies import require_agency
from portal.operations import create_owned, delete_owned, get_owned, list_scoped, update_owned
from portal.schemas import ProjectCreateRequest, ProjectUpdateRequest, to_values
from portal.session import Session

router = APIRouter(
    prefix="/api/projects",
    tags=["projects"],
)


@router.get("")
def list_projects(
    client_id: Optional[str] = Query(None, alias="clientId"),
    session: Optional[Session] = Depends(get_session),
    db: Database = Depends(get_database),
) -> List[Dict[str, Any]]:
    filters = {"client_id": client_id} if client_id else {}
    return list_scoped(db, session, "projects", filters=filters)


@router.post("", status_code=201)
def create_project(
    request: ProjectCreateRequest,
    session: Session = Depends(require_agency()),
    db: Database = Depends(get_database),
) -> Dict[str, Any]:
    return create_owned(db, session, "projects", to_values(request))


@router.get("/{project_id}")
def get_project(
    project_id: str = Path(..., description="Project ID"),
    session: Optional[Session] = Depends(get_session),
    db: Database = Depends(get_database),
) -> Dict[str, Any]:
    return get_owned(db, session, "projects", project_id)


@router.put("/{project_id}")
def update_project(
    request: ProjectUpdateRequest,
    project_id: str = Path(..., description="Project ID"),
    session: Session = Depends(require_agency()),
    db: Database = Depends(get_database),
) -> Dict[str, Any]:
    return update_owned(db, session, "projects", project_id, to_values(request, exclude_unset=True))


@router.delete("/{project_id}")
def delete_project(
    project_id: str = Path(..., description="Project ID"),
    session: Session = Depends(require_agency()),
    db: Database = Depends(get_database),
) -> Dict[str, str]:
    delete_owned(db, session, "projects", project_id)
    return {"message": "Project deleted successfully"}
