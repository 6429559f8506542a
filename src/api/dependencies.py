"""FastAPI dependency providers for application services."""

from __future__ import annotations

import secrets

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from image_splitter.config import AppConfig
from image_splitter.core import SplitService
from image_splitter.logging import JsonLogger
from image_splitter.tracker import RunTracker

_basic = HTTPBasic(auto_error=False)

UNAUTHORIZED_HEADERS = {"WWW-Authenticate": 'Basic realm="Restricted"'}


def get_config(request: Request) -> AppConfig:
    config = getattr(request.app.state, "config", None)
    if config is None:
        raise HTTPException(status_code=503, detail="CONFIG_UNAVAILABLE")
    return config


def get_service(request: Request) -> SplitService:
    service = getattr(request.app.state, "service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="SERVICE_UNAVAILABLE")
    return service


def get_tracker(request: Request) -> RunTracker:
    tracker = getattr(request.app.state, "tracker", None)
    if tracker is None:
        raise HTTPException(status_code=503, detail="TRACKER_UNAVAILABLE")
    return tracker


def get_logger(request: Request) -> JsonLogger:
    logger = getattr(request.app.state, "logger", None)
    if logger is None:
        raise HTTPException(status_code=503, detail="LOGGER_UNAVAILABLE")
    return logger


def require_credentials(
    credentials: HTTPBasicCredentials | None = Depends(_basic),
    config: AppConfig = Depends(get_config),
) -> None:
    if not config.server.auth_enabled:
        return
    if credentials is None:
        raise HTTPException(status_code=401, detail="Unauthorized", headers=UNAUTHORIZED_HEADERS)
    username_match = secrets.compare_digest(
        credentials.username.encode("utf-8"), config.server.username.encode("utf-8")
    )
    password_match = secrets.compare_digest(
        credentials.password.encode("utf-8"), config.server.password.encode("utf-8")
    )
    if not (username_match and password_match):
        raise HTTPException(status_code=401, detail="Unauthorized", headers=UNAUTHORIZED_HEADERS)


__all__ = ["get_config", "get_service", "get_tracker", "get_logger", "require_credentials"]
