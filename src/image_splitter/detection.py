from __future__ import annotations

from enum import Enum


class ImageFormat(str, Enum):
    JPEG = "jpeg"
    PNG = "png"

    @property
    def extension(self) -> str:
        return ".png" if self is ImageFormat.PNG else ".jpg"

    @property
    def pillow_format(self) -> str:
        return self.name


def detect_format(url: str) -> ImageFormat:
    """Pick the source format from the URL suffix; anything but ``.png`` is JPEG."""

    if url.lower().endswith(".png"):
        return ImageFormat.PNG
    return ImageFormat.JPEG


__all__ = ["ImageFormat", "detect_format"]
