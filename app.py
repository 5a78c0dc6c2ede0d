from __future__ import annotations

import logging
import time

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from dotenv import load_dotenv

from persistence import (
    PROJECTS,
    USERS,
    AsyncProjectRepository,
    AsyncUserRepository,
    AuthorizationError,
    JsonDocumentStore,
    StorageFault,
    ValidationError,
)
from persistence.paths import ensure_dir
from settings import Settings, get_settings

logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"


def _fail(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse({"success": False, "message": message, **extra}, status_code=status_code)


def _install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        message = exc.detail if isinstance(exc.detail, str) else "Request failed"
        if exc.status_code == 404 and message == "Not Found":
            message = "Route not found"
        return _fail(exc.status_code, message)

    @app.exception_handler(RequestValidationError)
    async def request_validation_error(request: Request, exc: RequestValidationError):
        return _fail(400, "Invalid request", errors=jsonable_encoder(exc.errors()))

    @app.exception_handler(ValidationError)
    async def domain_validation_error(request: Request, exc: ValidationError):
        return _fail(400, str(exc))

    @app.exception_handler(AuthorizationError)
    async def authorization_error(request: Request, exc: AuthorizationError):
        return _fail(403, str(exc))

    @app.exception_handler(StorageFault)
    async def storage_fault(request: Request, exc: StorageFault):
        logger.error("Storage fault on %s %s: %s", request.method, request.url.path, exc)
        return _fail(500, "Server error")


def create_app(settings: Settings | None = None) -> FastAPI:
    load_dotenv("local.env")
    settings = settings or get_settings()

    from endpoints.auth_endpoints import router as users_router
    from endpoints.project_endpoints import router as projects_router

    store = JsonDocumentStore(settings.data_dir, collections=(USERS, PROJECTS))
    ensure_dir(settings.uploads_dir)

    app = FastAPI(
        title="Project Host API",
        version=API_VERSION,
        docs_url="/api-docs",
    )
    app.state.settings = settings
    app.state.store = store
    app.state.users = AsyncUserRepository(store, default_profile_pic=settings.default_profile_pic)
    app.state.projects = AsyncProjectRepository(store)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if settings.debug_log_requests:

        @app.middleware("http")
        async def log_requests(request: Request, call_next):
            start = time.perf_counter()
            response = await call_next(request)
            duration_ms = int((time.perf_counter() - start) * 1000)
            message = "%s %s %s - %dms"
            args = (request.method, request.url.path, response.status_code, duration_ms)
            if response.status_code >= 500:
                logger.error(message, *args)
            elif response.status_code >= 400:
                logger.warning(message, *args)
            else:
                logger.info(message, *args)
            return response

    _install_error_handlers(app)

    @app.get("/")
    async def root():
        return PlainTextResponse("Project Host API is running...")

    @app.get("/api/v1")
    async def api_info():
        return JSONResponse(
            {
                "message": "Welcome to the Project Host API",
                "endpoints": [{"users": "/api/v1/users", "projects": "/api/v1/projects"}],
                "documentation": "/api-docs",
                "version": API_VERSION,
                "database": "JSON File DB",
            }
        )

    app.include_router(users_router)
    app.include_router(projects_router)

    app.mount("/uploads", StaticFiles(directory=settings.uploads_dir), name="uploads")

    return app
