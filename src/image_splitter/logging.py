from __future__ import annotations

import json
import logging
import sys
import threading
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, TextIO


@dataclass(slots=True)
class StageTimings:
    fetch_ms: float = 0.0
    probe_ms: float = 0.0
    plan_ms: float = 0.0
    render_ms: float = 0.0
    archive_ms: float = 0.0


@dataclass(slots=True)
class RunLogEntry:
    run_id: str
    source: str
    status: str
    strategy: str
    chunk_count: int
    error_code: str | None
    timings: StageTimings
    output_dir: str
    archive: str | None = None
    chunks: list[str] = field(default_factory=list)
    error_message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["timings"] = asdict(self.timings)
        return payload


class RunLogger:
    """Appends one JSON line per run to the audit log under the storage root."""

    _lock = threading.Lock()

    def __init__(self, log_file: Path) -> None:
        self._log_file = log_file

    def append(self, entry: RunLogEntry) -> None:
        self._log_file.parent.mkdir(parents=True, exist_ok=True)
        line = json.dumps(entry.to_dict(), ensure_ascii=False)
        with self._lock:
            with self._log_file.open("a", encoding="utf-8") as handle:
                handle.write(line + "\n")


HOST_LOGGER_NAME = "image_splitter.host"

_LEVEL_NAMES = {logging.CRITICAL: "FATAL"}


class JsonFormatter(logging.Formatter):
    """Render records as ``{level, time, message, properties, trace}`` JSON lines."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "level": _LEVEL_NAMES.get(record.levelno, record.levelname),
            "time": datetime.fromtimestamp(record.created, timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
            "message": record.getMessage(),
        }
        properties = getattr(record, "properties", None)
        if properties:
            payload["properties"] = properties
        if record.stack_info:
            payload["trace"] = record.stack_info
        return json.dumps(payload, ensure_ascii=False)


class JsonLogger:
    """Host logger for the HTTP service and ``serve``; one JSON object per line."""

    def __init__(self, out: TextIO | None = None, level: int = logging.INFO) -> None:
        self._logger = logging.getLogger(HOST_LOGGER_NAME)
        self._logger.setLevel(level)
        self._logger.propagate = False
        if self._logger.hasHandlers():
            self._logger.handlers.clear()
        handler = logging.StreamHandler(out if out is not None else sys.stdout)
        handler.setFormatter(JsonFormatter())
        self._logger.addHandler(handler)

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    def print_info(self, message: str, properties: dict[str, str] | None = None) -> None:
        self._logger.info(message, extra={"properties": properties})

    def print_error(self, error: BaseException | str, properties: dict[str, str] | None = None) -> None:
        self._logger.error(str(error), extra={"properties": properties}, stack_info=True, stacklevel=2)

    def print_fatal(self, error: BaseException | str, properties: dict[str, str] | None = None) -> None:
        self._logger.critical(str(error), extra={"properties": properties}, stack_info=True, stacklevel=2)
        raise SystemExit(1)


__all__ = ["StageTimings", "RunLogEntry", "RunLogger", "JsonFormatter", "JsonLogger"]
