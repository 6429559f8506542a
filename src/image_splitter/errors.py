from __future__ import annotations


class SplitError(RuntimeError):
    """Base error for everything the splitter raises on purpose."""

    code = "SPLIT_FAILED"

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        if code is not None:
            self.code = code


class ConfigError(SplitError):
    code = "CONFIG_INVALID"


class InvalidRequestError(SplitError):
    code = "INVALID_REQUEST"


class FetchError(SplitError):
    code = "FETCH_FAILED"


class ProbeError(SplitError):
    code = "PROBE_FAILED"


class PlanError(SplitError):
    code = "PLAN_FAILED"


class RenderError(SplitError):
    code = "RENDER_FAILED"


class ArchiveError(SplitError):
    code = "ARCHIVE_FAILED"


__all__ = [
    "SplitError",
    "ConfigError",
    "InvalidRequestError",
    "FetchError",
    "ProbeError",
    "PlanError",
    "RenderError",
    "ArchiveError",
]
