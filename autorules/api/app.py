"""HTTP API: rule CRUD, manual execution, email triggers, history and templates."""

import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from autorules.api.routes import executions, rules, templates, triggers
from autorules.core.config import get_settings
from autorules.core.errors import AutomationError, RuleNotFoundError, TemplateNotFoundError
from autorules.core.logging import get_logger, setup_logging
from autorules.engine.service import AutomationService, create_service
from autorules.messaging.rule_updates import RuleUpdateSubscriber
from autorules.storage.redis_client import close_redis_pool, get_redis, init_redis_pool

logger = get_logger(__name__)


def _envelope(status_code: int, message: str, data: Any = None) -> JSONResponse:
    content = {"code": status_code, "message": message, "data": data}
    return JSONResponse(status_code=status_code, content=content)


def register_error_handlers(app: FastAPI, expose_errors: bool = False) -> None:
    """Render every error as the standard envelope with ``code`` set to the HTTP status."""

    @app.exception_handler(HTTPException)
    async def http_error(request: Request, exc: HTTPException) -> JSONResponse:
        if isinstance(exc.detail, str):
            return _envelope(exc.status_code, exc.detail)
        return _envelope(exc.status_code, "HTTP error", exc.detail)

    @app.exception_handler(RequestValidationError)
    async def request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = [
            {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
            for err in exc.errors()
        ]
        return _envelope(422, "Validation error", errors)

    @app.exception_handler(AutomationError)
    async def automation_error(request: Request, exc: AutomationError) -> JSONResponse:
        not_found = isinstance(exc, (RuleNotFoundError, TemplateNotFoundError))
        return _envelope(404 if not_found else 400, exc.message, exc.to_dict())

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception) -> JSONResponse:
        logger.error("Unhandled exception", exc_info=exc, path=request.url.path, method=request.method)
        return _envelope(500, "Internal server error", str(exc) if expose_errors else None)


def create_app(service: AutomationService | None = None) -> FastAPI:
    """Create and configure FastAPI application.

    Args:
        service: Pre-built service; when omitted one is created against
            Redis during startup
    """
    settings = get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        setup_logging()
        logger.info("Starting application", app_name=settings.app_name, version=settings.app_version)

        owns_redis = service is None
        listener = None
        if owns_redis:
            await init_redis_pool()
            logger.info("Redis connection pool initialized")
            # Schedules normally fire from the worker process only
            app.state.service = create_service(get_redis(), run_scheduler=settings.api_scheduler_enabled)
        else:
            app.state.service = service

        await app.state.service.start()
        if owns_redis:
            subscriber = RuleUpdateSubscriber(get_redis(), app.state.service.apply_rule_change)
            listener = asyncio.create_task(subscriber.run(), name="autorules-rule-updates")

        yield

        logger.info("Shutting down application")
        if listener is not None:
            listener.cancel()
            await asyncio.gather(listener, return_exceptions=True)
        await app.state.service.stop()
        if owns_redis:
            await close_redis_pool()
            logger.info("Redis connection pool closed")

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Automation rule execution engine",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    for module in (rules, executions, triggers, templates):
        app.include_router(module.router, prefix="/api/v1")

    register_error_handlers(app, expose_errors=settings.debug)

    @app.get("/health")
    async def health_check(request: Request) -> dict:
        current = request.app.state.service
        return {
            "status": "ok",
            "version": settings.app_version,
            "dispatcher_running": current.dispatcher.is_running,
            "queued_executions": current.dispatcher.pending,
            "scheduler_enabled": current.runs_scheduler,
            "scheduled_rules": len(current.scheduler.scheduled_ids),
        }

    @app.get("/metrics")
    async def metrics() -> Response:
        """Prometheus scrape endpoint."""
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    return app


# Application instance for uvicorn
app = create_app()
