from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from persistence.users import DEFAULT_PROFILE_PIC


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    # Storage
    data_dir: Path
    uploads_dir: Path

    # JWT
    jwt_secret: str
    jwt_alg: str
    jwt_expire_seconds: int

    # Debug
    debug_log_requests: bool

    # Uploads
    max_project_upload_bytes: int = 50 * 1024 * 1024
    max_profile_upload_bytes: int = 5 * 1024 * 1024
    default_profile_pic: str = DEFAULT_PROFILE_PIC

    # CORS
    cors_origins: tuple[str, ...] = ("*",)


def get_settings() -> Settings:
    data_dir = Path(os.getenv("DATA_DIR", "data/db")).resolve()
    uploads_dir = Path(os.getenv("UPLOADS_DIR", "uploads")).resolve()

    # NOTE: default is insecure; set JWT_SECRET in production
    jwt_secret = os.getenv("JWT_SECRET", "dev-only-super-secret")
    jwt_alg = os.getenv("JWT_ALG", "HS256")
    jwt_expire_seconds = _env_int("JWT_EXPIRE_SECONDS", 30 * 24 * 60 * 60)

    debug_log_requests = _env_bool("DEBUG_LOG_REQUESTS", True)

    cors_origins = tuple(o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()) or ("*",)

    return Settings(
        data_dir=data_dir,
        uploads_dir=uploads_dir,
        jwt_secret=jwt_secret,
        jwt_alg=jwt_alg,
        jwt_expire_seconds=jwt_expire_seconds,
        debug_log_requests=debug_log_requests,
        max_project_upload_bytes=_env_int("MAX_PROJECT_UPLOAD_BYTES", 50 * 1024 * 1024),
        max_profile_upload_bytes=_env_int("MAX_PROFILE_UPLOAD_BYTES", 5 * 1024 * 1024),
        default_profile_pic=os.getenv("DEFAULT_PROFILE_PIC", "").strip() or DEFAULT_PROFILE_PIC,
        cors_origins=cors_origins,
    )
