from __future__ import annotations

from .errors import PlanError
from .models import ChunkSpec


def chunk_number(index: int) -> str:
    """Two-digit padding below 10 only: ``01``..``09``, ``10``, ``100``."""

    if index < 10:
        return f"0{index}"
    return str(index)


def chunk_file_name(prefix: str, index: int) -> str:
    return f"{prefix}_{chunk_number(index)}.jpg"


def chunk_count(height: int, max_chunk_height: int) -> int:
    if max_chunk_height <= 0:
        raise PlanError(f"max chunk height must be positive, got {max_chunk_height}")
    return (height + max_chunk_height - 1) // max_chunk_height


def crop_offset(width: int, out_width: int, anchor: str = "left") -> int:
    # Left edge unless centering was explicitly configured.
    if anchor == "center":
        return (width - out_width) // 2
    if anchor != "left":
        raise PlanError(f"Unknown crop anchor: {anchor}")
    return 0


def plan_chunks(
    width: int,
    height: int,
    max_chunk_height: int,
    prefix: str,
    *,
    max_width: int = 0,
    max_chunks: int = 0,
    crop_anchor: str = "left",
) -> list[ChunkSpec]:
    count = chunk_count(height, max_chunk_height)
    if max_chunks > 0 and count > max_chunks:
        count = max_chunks

    out_width = width
    x_offset = 0
    if 0 < max_width < width:
        out_width = max_width
        x_offset = crop_offset(width, max_width, crop_anchor)

    chunks: list[ChunkSpec] = []
    for position in range(count):
        start_y = position * max_chunk_height
        end_y = min(start_y + max_chunk_height, height)
        index = position + 1
        chunks.append(
            ChunkSpec(
                index=index,
                start_y=start_y,
                end_y=end_y,
                x_offset=x_offset,
                out_width=out_width,
                file_name=chunk_file_name(prefix, index),
            )
        )
    return chunks


__all__ = ["chunk_number", "chunk_file_name", "chunk_count", "crop_offset", "plan_chunks"]
