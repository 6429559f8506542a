from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from image_splitter import __version__
from image_splitter.config import AppConfig, validate_config
from image_splitter.core import SplitService
from image_splitter.logging import JsonLogger
from image_splitter.settings import get_settings, prepare_config
from image_splitter.tracker import RunTracker

from .routers import health, split
from .utils import run_sync


def create_app(
    config: AppConfig | None = None,
    *,
    service: SplitService | None = None,
    logger: JsonLogger | None = None,
    validate: bool = True,
) -> FastAPI:
    if config is None:
        config = prepare_config(get_settings())
    if validate:
        validate_config(config)

    logger = logger or JsonLogger()
    app = FastAPI(title="Image Splitter", version=__version__)
    app.state.config = config
    app.state.service = service or SplitService(config)
    app.state.tracker = RunTracker()
    app.state.logger = logger

    app.include_router(health.router)
    app.include_router(split.router)

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        detail = "Method not allowed" if exc.status_code == 405 else exc.detail
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def _invalid_body(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": "Invalid JSON"})

    @app.on_event("startup")
    async def _startup() -> None:  # pragma: no cover - FastAPI lifecycle
        if config.server.auth_enabled:
            logger.print_info("basic authentication enabled")
        else:
            logger.print_info("basic authentication disabled")
        logger.print_info(
            "starting server",
            {"addr": f"{config.server.host}:{config.server.port}", "strategy": config.runtime.strategy},
        )

    @app.on_event("shutdown")
    async def _shutdown() -> None:  # pragma: no cover - FastAPI lifecycle
        tracker: RunTracker = app.state.tracker
        logger.print_info("completing background tasks", {"active": str(tracker.active)})
        drained = await run_sync(tracker.wait_idle, config.server.shutdown_grace_s)
        if not drained:
            logger.print_error("shutdown grace period elapsed with runs still in flight")
        logger.print_info("stopped server")

    return app


__all__ = ["create_app"]
