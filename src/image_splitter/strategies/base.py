from __future__ import annotations

from pathlib import Path
from typing import Protocol, Sequence

from ..models import ChunkSpec, ImageDimensions, ImageSource


class Strategy(Protocol):
    """Capability set shared by the in-process and external-tool pipelines."""

    name: str
    message_suffix: str

    def fetch(self, url: str, destination: Path) -> None:  # pragma: no cover - interface
        ...

    def probe(self, source: ImageSource) -> ImageDimensions:  # pragma: no cover - interface
        ...

    def render(
        self, source: ImageSource, chunks: Sequence[ChunkSpec], output_dir: Path
    ) -> list[Path]:  # pragma: no cover - interface
        ...

    def archive(self, files: Sequence[Path], destination: Path) -> Path:  # pragma: no cover - interface
        ...


def discard_partial(path: Path) -> None:
    """Drop whatever a failed download left behind at *path*."""

    if path.is_file():
        path.unlink(missing_ok=True)


__all__ = ["Strategy", "discard_partial"]
