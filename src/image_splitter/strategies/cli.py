from __future__ import annotations

import re
import subprocess
from pathlib import Path
from typing import Sequence

from ..config import TOOLCHAINS, ToolsConfig
from ..errors import ArchiveError, ConfigError, FetchError, ProbeError, RenderError, SplitError
from ..models import ChunkSpec, ImageDimensions, ImageSource
from .base import discard_partial

_DIGITS_RE = re.compile(r"\d+", re.ASCII)


def _parse_dimension(token: str, label: str) -> int:
    if not _DIGITS_RE.fullmatch(token):
        raise ProbeError(f"failed to parse image {label}: {token!r}")
    return int(token)


def parse_vipsheader_output(output: str) -> ImageDimensions:
    """Parse ``"<name>: <W>x<H> uchar, 3 bands, srgb, jpegload"``."""

    text = output.strip()
    _, sep, rest = text.partition(":")
    tokens = rest.split()
    if not sep or not tokens:
        raise ProbeError(f"unexpected output format from vipsheader: {text!r}")
    dimensions = tokens[0].split("x")
    if len(dimensions) != 2:
        raise ProbeError(f"unexpected dimension format from vipsheader: {tokens[0]!r}")
    return ImageDimensions(
        width=_parse_dimension(dimensions[0], "width"),
        height=_parse_dimension(dimensions[1], "height"),
    )


def parse_identify_output(output: str) -> ImageDimensions:
    """Parse ``"<W> <H>"`` as printed by ``identify -format "%w %h"``."""

    tokens = output.split()
    if len(tokens) != 2:
        raise ProbeError(f"unexpected output from identify command: {output.strip()!r}")
    return ImageDimensions(
        width=_parse_dimension(tokens[0], "width"),
        height=_parse_dimension(tokens[1], "height"),
    )


class CLIStrategy:
    """Pipeline that shells out to curl, vips or ImageMagick, and zip."""

    name = "cli"
    message_suffix = " using CLI tools"

    def __init__(self, tools: ToolsConfig | None = None) -> None:
        self._tools = tools or ToolsConfig()
        if self._tools.toolchain not in TOOLCHAINS:
            raise ConfigError(f"Unknown toolchain: {self._tools.toolchain}")

    @property
    def toolchain(self) -> str:
        return self._tools.toolchain

    def fetch(self, url: str, destination: Path) -> None:
        args = [
            self._tools.curl,
            "--silent",
            "--show-error",
            "--fail",
            "--output",
            str(destination),
            url,
        ]
        try:
            self._run(args, FetchError, "failed to download image with curl")
        except FetchError:
            discard_partial(destination)
            raise
        if not destination.is_file():
            raise FetchError(f"failed to verify downloaded file: {destination} does not exist")
        if destination.stat().st_size == 0:
            discard_partial(destination)
            raise FetchError("downloaded file is empty")

    def probe(self, source: ImageSource) -> ImageDimensions:
        if self._tools.toolchain == "imagemagick":
            args = [self._tools.identify, "-format", "%w %h", str(source.local_path)]
            output = self._run(args, ProbeError, "failed to get image dimensions")
            return parse_identify_output(output)
        args = [self._tools.vipsheader, str(source.local_path)]
        output = self._run(args, ProbeError, "failed to get image dimensions")
        return parse_vipsheader_output(output)

    def render(self, source: ImageSource, chunks: Sequence[ChunkSpec], output_dir: Path) -> list[Path]:
        paths: list[Path] = []
        for spec in chunks:
            output_path = output_dir / spec.file_name
            args = self.crop_command(source.local_path, output_path, spec)
            self._run(args, RenderError, f"failed to split image into {spec.file_name}")
            paths.append(output_path)
        return paths

    def crop_command(self, source: Path, output_path: Path, spec: ChunkSpec) -> list[str]:
        if self._tools.toolchain == "imagemagick":
            geometry = f"{spec.out_width}x{spec.height}+{spec.x_offset}+{spec.start_y}"
            return [self._tools.convert, str(source), "-crop", geometry, "+repage", str(output_path)]
        return [
            self._tools.vips,
            "crop",
            str(source),
            str(output_path),
            str(spec.x_offset),
            str(spec.start_y),
            str(spec.out_width),
            str(spec.height),
        ]

    def archive(self, files: Sequence[Path], destination: Path) -> Path:
        args = [self._tools.zip, "-j", str(destination)]
        args.extend(str(path.resolve()) for path in files)
        self._run(args, ArchiveError, "failed to create zip file")
        return destination

    def _run(self, args: list[str], error_cls: type[SplitError], action: str) -> str:
        try:
            completed = subprocess.run(
                args, capture_output=True, text=True, timeout=self._tools.timeout_s
            )
        except FileNotFoundError as exc:
            raise error_cls(f"{action}: {args[0]} is not installed") from exc
        except subprocess.TimeoutExpired as exc:
            raise error_cls(f"{action}: {args[0]} timed out after {self._tools.timeout_s}s") from exc
        if completed.returncode != 0:
            output = (completed.stdout or "") + (completed.stderr or "")
            raise error_cls(f"{action}: exit status {completed.returncode} - {output.strip()}")
        return completed.stdout or ""


__all__ = ["CLIStrategy", "parse_identify_output", "parse_vipsheader_output"]
