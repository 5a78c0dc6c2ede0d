from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile
from fastapi.responses import FileResponse, JSONResponse
from pydantic import BaseModel, ConfigDict

from persistence.paths import project_upload_dir, upload_url_to_path
from persistence.projects import ProjectRecord
from persistence.repositories import AsyncProjectRepository
from persistence.users import UserRecord
from settings import Settings

from .auth_endpoints import get_current_user, get_settings_dep
from .uploads import delete_upload, delete_upload_dir, require_zip, save_upload

router = APIRouter(prefix="/api/v1/projects", tags=["projects"])
logger = logging.getLogger(__name__)


class ProjectCreateBody(BaseModel):
    # Clients may attach extra metadata (framework, modelType, ...); it is stored as sent.
    model_config = ConfigDict(extra="allow")

    title: str | None = None
    description: str | None = None
    tags: list[Any] | str | None = None
    status: str | None = None


class ProjectUpdateBody(BaseModel):
    title: str | None = None
    description: str | None = None
    tags: list[Any] | str | None = None
    status: str | None = None
    ec2PublicIP: str | None = None


def get_projects(request: Request) -> AsyncProjectRepository:
    return request.app.state.projects


def _project_response(project: ProjectRecord, *, status_code: int = 200) -> JSONResponse:
    return JSONResponse({"success": True, "project": project.to_doc()}, status_code=status_code)


async def _owned_or_404(projects: AsyncProjectRepository, project_id: str, user: UserRecord) -> ProjectRecord:
    # AuthorizationError from the repository becomes a 403 in the app handlers.
    project = await projects.get_owned(project_id, user.id)
    if project is None:
        raise HTTPException(status_code=404, detail="Project not found")
    return project


@router.get("")
async def list_projects(
    status: Optional[str] = None,
    tag: Optional[str] = None,
    sort: str = "createdAt",
    order: str = "desc",
    user: UserRecord = Depends(get_current_user),
    projects: AsyncProjectRepository = Depends(get_projects),
) -> JSONResponse:
    records = await projects.list_for_owner(user.id, status=status, tag=tag, sort=sort, order=order)
    logger.info("Projects retrieved: user=%s count=%d", user.id, len(records))
    return JSONResponse({"success": True, "count": len(records), "projects": [p.to_doc() for p in records]})


@router.post("")
async def create_project(
    body: ProjectCreateBody,
    user: UserRecord = Depends(get_current_user),
    projects: AsyncProjectRepository = Depends(get_projects),
) -> JSONResponse:
    logger.info("Creating new project: user=%s", user.id)
    project = await projects.create(user.id, **body.model_dump(exclude_none=True))
    return _project_response(project, status_code=201)


@router.get("/{project_id}")
async def get_project(
    project_id: str,
    user: UserRecord = Depends(get_current_user),
    projects: AsyncProjectRepository = Depends(get_projects),
) -> JSONResponse:
    project = await _owned_or_404(projects, project_id, user)
    return _project_response(project)


@router.put("/{project_id}")
async def update_project(
    project_id: str,
    body: ProjectUpdateBody,
    user: UserRecord = Depends(get_current_user),
    projects: AsyncProjectRepository = Depends(get_projects),
) -> JSONResponse:
    logger.info("Updating project: %s user=%s", project_id, user.id)
    updates: dict[str, Any] = {}
    for field in ("title", "description", "tags", "status"):
        value = getattr(body, field)
        if value:
            updates[field] = value
    if body.ec2PublicIP:
        updates["deployedIP"] = body.ec2PublicIP

    updated = await projects.update_owned(project_id, user.id, updates)
    if updated is None:
        raise HTTPException(status_code=404, detail="Project not found")
    return _project_response(updated)


@router.delete("/{project_id}")
async def delete_project(
    project_id: str,
    user: UserRecord = Depends(get_current_user),
    settings: Settings = Depends(get_settings_dep),
    projects: AsyncProjectRepository = Depends(get_projects),
) -> JSONResponse:
    logger.info("Deleting project: %s user=%s", project_id, user.id)
    removed = await projects.delete_owned(project_id, user.id)
    if removed is None:
        raise HTTPException(status_code=404, detail="Project not found")

    await delete_upload(settings.uploads_dir, removed.zipFilePath)
    await delete_upload_dir(project_upload_dir(settings.uploads_dir, user.id, removed.id))
    return JSONResponse({"success": True, "message": "Project deleted successfully"})


@router.post("/{project_id}/upload")
async def upload_project_zip(
    project_id: str,
    projectZip: UploadFile | None = File(None),
    file: UploadFile | None = File(None),
    user: UserRecord = Depends(get_current_user),
    settings: Settings = Depends(get_settings_dep),
    projects: AsyncProjectRepository = Depends(get_projects),
) -> JSONResponse:
    logger.info("Uploading project zip file: %s user=%s", project_id, user.id)
    await _owned_or_404(projects, project_id, user)

    upload = projectZip or file
    if upload is None:
        logger.warning("No file uploaded: %s", project_id)
        raise HTTPException(status_code=400, detail="Please upload a file")
    require_zip(upload)

    dest = project_upload_dir(settings.uploads_dir, user.id, project_id)
    filename = await save_upload(upload, dest, prefix="project", max_bytes=settings.max_project_upload_bytes)
    url_path = f"/uploads/{dest.parent.name}/{dest.name}/{filename}"

    updated, previous = await projects.attach_zip(project_id, user.id, url_path)
    if updated is None:
        # Project vanished between the ownership check and the write.
        await delete_upload(settings.uploads_dir, url_path)
        raise HTTPException(status_code=404, detail="Project not found")

    if previous and previous != url_path:
        await delete_upload(settings.uploads_dir, previous)
    logger.info("Project zip file uploaded: %s", project_id)
    return _project_response(updated)


@router.get("/{project_id}/download")
async def download_project_zip(
    project_id: str,
    user: UserRecord = Depends(get_current_user),
    settings: Settings = Depends(get_settings_dep),
    projects: AsyncProjectRepository = Depends(get_projects),
):
    project = await _owned_or_404(projects, project_id, user)
    if not project.zipFilePath:
        logger.warning("No zip file found for project: %s", project_id)
        raise HTTPException(status_code=404, detail="No zip file found for this project")

    path = upload_url_to_path(settings.uploads_dir, project.zipFilePath)
    if path is None or not path.is_file():
        logger.warning("File not found for project: %s", project_id)
        raise HTTPException(status_code=404, detail="File not found")

    logger.info("Project zip file downloaded: %s", project_id)
    return FileResponse(path, media_type="application/zip", filename=path.name)
