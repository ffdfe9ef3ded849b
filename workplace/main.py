from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from workplace import db
from workplace.config import AppInfo, get_settings
from workplace.core.logging import get_logger, setup_logging
from workplace.core.runtime_state import set_cleanup_sweep_active
import workplace.models  # registers the tables
from workplace.routers import get_api_router
from workplace.services.cleanup import sweep_orphaned_images_once
from workplace.utils.errors import error_response

logger = get_logger(__name__)
scheduler: AsyncIOScheduler | None = None
ALLOWED_CREATE_ENV = {"dev", "local", "test"}


def _configure_middlewares(fastapi_app: FastAPI) -> None:
    runtime_settings = get_settings()
    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=runtime_settings.CORS_ALLOW_ORIGINS,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "If-Match", "X-User-Id", "X-User-Name"],
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    global scheduler
    settings = get_settings()
    setup_logging(settings.LOG_LEVEL, settings.app_env)
    logger.info("Application startup", extra={"env": settings.app_env, "lock_backend": settings.LOCK_BACKEND})
    db.init_engine()
    env_lower = settings.app_env.lower()
    if settings.ALLOW_DB_CREATE_ALL and env_lower in ALLOWED_CREATE_ENV:
        logger.warning(
            "Running Base.metadata.create_all() because app_env=%s and ALLOW_DB_CREATE_ALL=True",
            settings.app_env,
        )
        db.create_all()
    else:
        logger.info(
            "Skipping create_all(); use Alembic migrations. app_env=%s, ALLOW_DB_CREATE_ALL=%s",
            settings.app_env,
            settings.ALLOW_DB_CREATE_ALL,
        )

    # Enable CLEANUP_SWEEP_ENABLED on one replica only.
    set_cleanup_sweep_active(False)
    if settings.CLEANUP_SWEEP_ENABLED:
        scheduler = AsyncIOScheduler()
        scheduler.start()
        scheduler.add_job(
            sweep_orphaned_images_once,
            "interval",
            minutes=settings.CLEANUP_SWEEP_MINUTES,
            id="sweep-orphaned-images",
            replace_existing=True,
        )
        set_cleanup_sweep_active(True)
    try:
        yield
    finally:
        if scheduler:
            scheduler.shutdown(wait=False)
            scheduler = None
        set_cleanup_sweep_active(False)
        db.close_engine()
        logger.info("Application shutdown", extra={"env": settings.app_env})


def create_app() -> FastAPI:
    app_info = AppInfo()
    fastapi_app = FastAPI(title=app_info.name, version=app_info.version, lifespan=lifespan)
    _configure_middlewares(fastapi_app)
    fastapi_app.include_router(get_api_router())

    @fastapi_app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled exception", exc_info=exc)
        payload = error_response("INTERNAL_SERVER_ERROR", "An unexpected error occurred.")
        return JSONResponse(status_code=500, content=payload)

    @fastapi_app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        detail = exc.detail
        if isinstance(detail, dict) and "error" in detail:
            content: dict[str, Any] = detail
        else:
            content = error_response("HTTP_ERROR", str(detail))
        return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))

    return fastapi_app


app = create_app()

__all__ = ["app", "create_app"]
