from __future__ import annotations

import re
import secrets
import shutil
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

from .detection import ImageFormat
from .errors import SplitError


PREFIX_RE = re.compile(r"^[A-Za-z0-9_]+$")
ORIGINAL_STEM = "original_image"


@dataclass(frozen=True, slots=True)
class RunPaths:
    run_id: str
    storage_root: Path
    base_dir: Path

    def source_file(self, image_format: ImageFormat) -> Path:
        return self.base_dir / f"{ORIGINAL_STEM}{image_format.extension}"

    def chunk_file(self, file_name: str) -> Path:
        return self.base_dir / file_name

    def archive_file(self, prefix: str) -> Path:
        return self.base_dir / f"{prefix}.zip"


def generate_run_id(now: float | None = None) -> str:
    seconds = int(now if now is not None else time.time())
    return f"{seconds}-{secrets.token_hex(4)}"


def ensure_run_paths(storage_root: Path, run_id: str) -> RunPaths:
    base = storage_root / run_id
    try:
        base.mkdir(parents=True, exist_ok=False, mode=0o755)
    except OSError as exc:
        raise SplitError(f"failed to create output directory: {exc}", code="STORAGE_FAILED") from exc
    return RunPaths(run_id=run_id, storage_root=storage_root, base_dir=base)


def relative_to_root(path: Path, storage_root: Path) -> str:
    """Path of an artifact as exposed to callers, relative to the storage root."""

    absolute = path.resolve()
    root = storage_root.resolve()
    return absolute.relative_to(root).as_posix()


def is_valid_prefix(value: str) -> bool:
    return bool(PREFIX_RE.fullmatch(value))


def build_source_url(url_host: str, url: str) -> str:
    """Join a caller-supplied path onto the trusted base host, never replacing it."""

    return url_host + url


def is_absolute_url(url: str) -> bool:
    return url.startswith(("http://", "https://"))


def remove_tree(path: Path) -> None:
    if path.exists():
        shutil.rmtree(path)


def iter_run_dirs(storage_root: Path) -> Iterator[Path]:
    if not storage_root.exists():
        return
    for path in sorted(storage_root.iterdir(), key=lambda p: p.stat().st_mtime):
        if path.is_dir() and not path.name.startswith(("_", ".")):
            yield path
