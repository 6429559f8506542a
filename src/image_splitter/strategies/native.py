from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Sequence
from zipfile import ZIP_DEFLATED, ZipFile

import requests
from PIL import Image

from ..detection import ImageFormat
from ..errors import ArchiveError, FetchError, ProbeError, RenderError
from ..models import ChunkSpec, ImageDimensions, ImageSource
from .base import discard_partial

DOWNLOAD_CHUNK_BYTES = 64 * 1024

_DECODE_ERRORS = (OSError, ValueError, Image.DecompressionBombError)


def convert_to_rgb(image: Image.Image, background_color: str = "white") -> Image.Image:
    """Flatten *image* onto an RGB canvas so it can be stored as JPEG."""

    if image.mode in ("RGB", "L"):
        return image
    if image.mode == "P" and "transparency" in image.info:
        image = image.convert("RGBA")
    if image.mode in ("RGBA", "LA"):
        background = Image.new("RGB", image.size, background_color)
        background.paste(image, mask=image.getchannel("A"))
        return background
    return image.convert("RGB")


class NativeStrategy:
    """Pure-Python pipeline: requests for transfer, Pillow for pixels, zipfile for bundling."""

    name = "native"
    message_suffix = ""

    def __init__(self, *, timeout_s: int = 60, jpeg_quality: int = 90, max_image_pixels: int = 0) -> None:
        self._timeout_s = timeout_s
        self._jpeg_quality = jpeg_quality
        # Process-wide Pillow limit; 0 means no limit.
        Image.MAX_IMAGE_PIXELS = max_image_pixels or None

    def fetch(self, url: str, destination: Path) -> None:
        try:
            response = requests.get(url, stream=True, timeout=self._timeout_s)
        except requests.RequestException as exc:
            raise FetchError(f"failed to download image: {exc}") from exc
        try:
            if not 200 <= response.status_code < 300:
                raise FetchError(f"failed to download image: HTTP {response.status_code} for {url}")
            with destination.open("wb") as handle:
                for block in response.iter_content(chunk_size=DOWNLOAD_CHUNK_BYTES):
                    if block:
                        handle.write(block)
        except (requests.RequestException, OSError) as exc:
            discard_partial(destination)
            raise FetchError(f"failed to save image: {exc}") from exc
        finally:
            response.close()

    def probe(self, source: ImageSource) -> ImageDimensions:
        try:
            with Image.open(source.local_path) as image:
                width, height = image.size
        except _DECODE_ERRORS as exc:
            raise ProbeError(f"failed to decode image: {exc}") from exc
        return ImageDimensions(width=width, height=height)

    def render(self, source: ImageSource, chunks: Sequence[ChunkSpec], output_dir: Path) -> list[Path]:
        try:
            image = Image.open(source.local_path)
            image.load()
        except _DECODE_ERRORS as exc:
            raise RenderError(f"failed to decode image: {exc}") from exc

        paths: list[Path] = []
        with image:
            for spec in chunks:
                output_path = output_dir / spec.file_name
                self.render_chunk(image, spec, output_path, source.format)
                paths.append(output_path)
        return paths

    def render_chunk(
        self, image: Image.Image, spec: ChunkSpec, output_path: Path, image_format: ImageFormat
    ) -> None:
        chunk = image.crop(spec.box)
        try:
            if image_format is ImageFormat.PNG:
                chunk.save(output_path, format=image_format.pillow_format)
            else:
                convert_to_rgb(chunk).save(output_path, format="JPEG", quality=self._jpeg_quality)
        except (OSError, ValueError) as exc:
            raise RenderError(f"failed to save split image {spec.file_name}: {exc}") from exc

    def archive(self, files: Sequence[Path], destination: Path) -> Path:
        tmp_path: Path | None = None
        try:
            with tempfile.NamedTemporaryFile(
                delete=False, dir=destination.parent, prefix=f".{destination.stem}-", suffix=".part"
            ) as handle:
                tmp_path = Path(handle.name)
                with ZipFile(handle, "w", compression=ZIP_DEFLATED) as archive:
                    for file_path in files:
                        archive.write(file_path, arcname=file_path.name)
            os.replace(tmp_path, destination)
        except (OSError, ValueError) as exc:
            if tmp_path is not None:
                tmp_path.unlink(missing_ok=True)
            raise ArchiveError(f"failed to create zip file: {exc}") from exc
        return destination


__all__ = ["NativeStrategy", "convert_to_rgb"]
