from __future__ import annotations

from fastapi import APIRouter

from api.schemas import HealthStatus
from image_splitter import __version__

router = APIRouter(tags=["health"])


@router.get("/health", summary="Health check")
def health() -> HealthStatus:
    return HealthStatus(status="ok", version=__version__)


__all__ = ["router"]
