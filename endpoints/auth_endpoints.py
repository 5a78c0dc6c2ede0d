# auth_endpoints.py
from __future__ import annotations

import logging
import time
from typing import Any

import jwt
from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from persistence.errors import AuthorizationError
from persistence.paths import profile_upload_dir
from persistence.repositories import AsyncUserRepository
from persistence.users import UserRecord
from settings import Settings

from .uploads import delete_upload, require_image, save_upload

router = APIRouter(prefix="/api/v1/users", tags=["users"])
logger = logging.getLogger(__name__)


# -------------------------------------------------------------------
# Request bodies
# -------------------------------------------------------------------
class RegisterBody(BaseModel):
    name: str = ""
    email: str = Field(min_length=3)
    password: str = Field(min_length=6)


class LoginBody(BaseModel):
    email: str | None = None
    password: str | None = None


class UpdateDetailsBody(BaseModel):
    name: str | None = None
    bio: str | None = None


class UpdatePasswordBody(BaseModel):
    currentPassword: str
    newPassword: str = Field(min_length=6)


# -------------------------------------------------------------------
# Dependencies
# -------------------------------------------------------------------
def get_settings_dep(request: Request) -> Settings:
    return request.app.state.settings


def get_users(request: Request) -> AsyncUserRepository:
    return request.app.state.users


def _mask_token(token: str, *, head: int = 16, tail: int = 8) -> str:
    if not token:
        return ""
    if len(token) <= head + tail + 3:
        return token
    return f"{token[:head]}...{token[-tail:]}"


def issue_access_token(settings: Settings, user_id: str) -> str:
    now = int(time.time())
    payload = {
        "sub": user_id,
        "iat": now,
        "exp": now + settings.jwt_expire_seconds,
    }
    token = jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_alg)
    logger.debug("ISSUED JWT for user=%s (masked): %s", user_id, _mask_token(token))
    return token


def _bearer_token(request: Request) -> str | None:
    auth = request.headers.get("Authorization")
    if not auth or not auth.lower().startswith("bearer "):
        return None
    token = auth.split(" ", 1)[1].strip()
    return token or None


async def get_current_user(
    request: Request,
    settings: Settings = Depends(get_settings_dep),
    users: AsyncUserRepository = Depends(get_users),
) -> UserRecord:
    token = _bearer_token(request)
    if not token:
        logger.warning("Authentication failed: No token provided (%s %s)", request.method, request.url.path)
        raise HTTPException(status_code=401, detail="Not authorized to access this route")

    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_alg],
            options={"require": ["exp", "sub"]},
        )
    except jwt.PyJWTError as e:
        logger.info("Authentication failed: jwt decode failed: %r", e)
        raise HTTPException(status_code=401, detail="Not authorized to access this route") from e

    user_id = payload.get("sub")
    if not isinstance(user_id, str) or not user_id:
        raise HTTPException(status_code=401, detail="Not authorized to access this route")

    user = await users.get(user_id)
    if user is None:
        logger.warning("Authentication failed: User not found: %s", user_id)
        raise HTTPException(status_code=404, detail="User not found")
    return user


def _user_response(user: UserRecord, *, status_code: int = 200, **extra: Any) -> JSONResponse:
    return JSONResponse({"success": True, **extra, "user": user.public()}, status_code=status_code)


# -------------------------------------------------------------------
# Routes
# -------------------------------------------------------------------
@router.post("/register")
async def register(
    body: RegisterBody,
    settings: Settings = Depends(get_settings_dep),
    users: AsyncUserRepository = Depends(get_users),
) -> JSONResponse:
    logger.info("Registration attempt: %s", body.email)
    # ConflictError (duplicate email) is mapped to 400 by the app handlers.
    user = await users.register(name=body.name, email=body.email, password=body.password)
    token = issue_access_token(settings, user.id)
    return _user_response(user, status_code=201, token=token)


@router.post("/login")
async def login(
    body: LoginBody,
    settings: Settings = Depends(get_settings_dep),
    users: AsyncUserRepository = Depends(get_users),
) -> JSONResponse:
    logger.info("Login attempt: %s", body.email)
    if not body.email or not body.password:
        logger.warning("Login failed - Missing email or password")
        raise HTTPException(status_code=400, detail="Please provide email and password")

    user = await users.authenticate(body.email, body.password)
    if user is None:
        raise HTTPException(status_code=401, detail="Invalid credentials")

    token = issue_access_token(settings, user.id)
    logger.info("User logged in: %s", user.id)
    return _user_response(user, token=token)


@router.get("/me")
async def me(user: UserRecord = Depends(get_current_user)) -> JSONResponse:
    return _user_response(user)


@router.put("/update")
async def update_details(
    body: UpdateDetailsBody,
    user: UserRecord = Depends(get_current_user),
    users: AsyncUserRepository = Depends(get_users),
) -> JSONResponse:
    logger.info("Updating user details: %s", user.id)
    updated = await users.update_details(user.id, name=body.name, bio=body.bio)
    if updated is None:
        raise HTTPException(status_code=404, detail="User not found")
    return _user_response(updated)


@router.put("/update-password")
async def update_password(
    body: UpdatePasswordBody,
    user: UserRecord = Depends(get_current_user),
    settings: Settings = Depends(get_settings_dep),
    users: AsyncUserRepository = Depends(get_users),
) -> JSONResponse:
    logger.info("Password update attempt: %s", user.id)
    try:
        updated = await users.change_password(user.id, body.currentPassword, body.newPassword)
    except AuthorizationError as e:
        logger.warning("Password update failed - Current password incorrect: %s", user.id)
        raise HTTPException(status_code=401, detail=str(e)) from e
    if updated is None:
        raise HTTPException(status_code=404, detail="User not found")

    token = issue_access_token(settings, user.id)
    return JSONResponse({"success": True, "message": "Password updated successfully", "token": token})


@router.put("/update-profile-pic")
async def update_profile_pic(
    profilePic: UploadFile = File(...),
    user: UserRecord = Depends(get_current_user),
    settings: Settings = Depends(get_settings_dep),
    users: AsyncUserRepository = Depends(get_users),
) -> JSONResponse:
    logger.info("Updating profile picture: %s", user.id)
    require_image(profilePic)

    dest = profile_upload_dir(settings.uploads_dir, user.id)
    filename = await save_upload(profilePic, dest, prefix="profile", max_bytes=settings.max_profile_upload_bytes)
    url_path = f"/uploads/{dest.parent.name}/profiles/{filename}"

    updated, previous = await users.set_profile_pic(user.id, url_path)
    if updated is None:
        await delete_upload(settings.uploads_dir, url_path)
        raise HTTPException(status_code=500, detail="Failed to update profile picture")

    # Old picture goes only after the new path is durably stored.
    if previous and previous != url_path:
        await delete_upload(settings.uploads_dir, previous)
    logger.info("Profile picture updated: %s", user.id)
    return _user_response(updated)
