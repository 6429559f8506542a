"""Domain models for image splitting runs."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from .detection import ImageFormat


@dataclass(frozen=True, slots=True)
class ImageSource:
    """A fetched source image inside a run directory."""

    url: str
    local_path: Path
    format: ImageFormat


@dataclass(frozen=True, slots=True)
class ImageDimensions:
    width: int
    height: int


@dataclass(frozen=True, slots=True)
class ChunkSpec:
    """One planned vertical slice of the source image."""

    index: int
    start_y: int
    end_y: int
    x_offset: int
    out_width: int
    file_name: str

    @property
    def height(self) -> int:
        return self.end_y - self.start_y

    @property
    def box(self) -> tuple[int, int, int, int]:
        return (self.x_offset, self.start_y, self.x_offset + self.out_width, self.end_y)


@dataclass(frozen=True, slots=True)
class ChunkResult:
    spec: ChunkSpec
    absolute_path: Path
    relative_path: str


@dataclass(frozen=True, slots=True)
class ArchiveResult:
    absolute_path: Path
    relative_path: str


@dataclass(slots=True)
class SplitRequest:
    """Caller input for a single run, before the base host is applied."""

    url: str
    images_prefix: str
    width: int = 0
    max_images: int = 0
    create_zip: bool = False


@dataclass(slots=True)
class ProcessingResult:
    """Aggregated outcome returned to the caller of a successful run."""

    message: str
    run_id: str
    chunks: list[ChunkResult] = field(default_factory=list)
    archive: ArchiveResult | None = None
    status: Literal["success"] = "success"

    @property
    def zip_url(self) -> str:
        return self.archive.relative_path if self.archive else ""

    @property
    def images(self) -> list[str]:
        return [chunk.relative_path for chunk in self.chunks]

    def to_response(self) -> dict[str, object]:
        return {
            "status": self.status,
            "message": self.message,
            "zipUrl": self.zip_url,
            "images": self.images,
        }


__all__ = [
    "ImageSource",
    "ImageDimensions",
    "ChunkSpec",
    "ChunkResult",
    "ArchiveResult",
    "SplitRequest",
    "ProcessingResult",
]
