"""Split oversized remote images into bounded-height chunks and bundle them."""

from .config import AppConfig, RunSettings, load_config
from .core import SplitService
from .errors import (
    ArchiveError,
    FetchError,
    InvalidRequestError,
    PlanError,
    ProbeError,
    RenderError,
    SplitError,
)
from .models import ProcessingResult, SplitRequest

__version__ = "1.0.0"

__all__ = [
    "AppConfig",
    "RunSettings",
    "load_config",
    "SplitService",
    "SplitRequest",
    "ProcessingResult",
    "SplitError",
    "InvalidRequestError",
    "FetchError",
    "ProbeError",
    "PlanError",
    "RenderError",
    "ArchiveError",
]
