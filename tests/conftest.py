from __future__ import annotations

import io
from pathlib import Path

import pytest
from PIL import Image

from image_splitter.config import AppConfig, RuntimeConfig


def make_image_bytes(width: int, height: int, fmt: str = "JPEG") -> bytes:
    """Vertical gradient so every row differs from its neighbours."""

    mode = "RGBA" if fmt == "PNG" else "RGB"
    image = Image.new(mode, (width, height))
    for y in range(height):
        shade = y % 256
        for x in range(width):
            pixel = (shade, (x * 7) % 256, 128)
            image.putpixel((x, y), pixel + (255,) if mode == "RGBA" else pixel)
    buffer = io.BytesIO()
    image.save(buffer, format=fmt)
    return buffer.getvalue()


def build_config(storage_root: Path, **runtime_overrides: object) -> AppConfig:
    runtime = RuntimeConfig(
        storage_root=storage_root,
        url_host="https://images.example.com/",
        max_chunk_height=50,
    )
    for key, value in runtime_overrides.items():
        setattr(runtime, key, value)
    return AppConfig(runtime=runtime)


@pytest.fixture
def storage_root(tmp_path: Path) -> Path:
    root = tmp_path / "storage"
    root.mkdir()
    return root
