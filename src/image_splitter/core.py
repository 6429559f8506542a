from __future__ import annotations

import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, TypeVar

from .config import AppConfig, RunSettings
from .detection import detect_format
from .errors import InvalidRequestError, SplitError
from .logging import RunLogEntry, RunLogger, StageTimings
from .models import (
    ArchiveResult,
    ChunkResult,
    ChunkSpec,
    ImageDimensions,
    ImageSource,
    ProcessingResult,
    SplitRequest,
)
from .planner import plan_chunks
from .strategies import Strategy, get_strategy
from .utils import (
    RunPaths,
    build_source_url,
    ensure_run_paths,
    generate_run_id,
    is_valid_prefix,
    relative_to_root,
    remove_tree,
)

T = TypeVar("T")


def validate_request(request: SplitRequest) -> None:
    if not request.url:
        raise InvalidRequestError("URL is required")
    if request.max_images < 0:
        raise InvalidRequestError("max_images must be a positive integer")
    if not request.images_prefix:
        raise InvalidRequestError("images_prefix is required")
    if not is_valid_prefix(request.images_prefix):
        raise InvalidRequestError("images_prefix contains invalid characters")


@dataclass(slots=True)
class _RunContext:
    run_id: str
    run_paths: RunPaths
    source_url: str
    timings: StageTimings = field(default_factory=StageTimings)
    chunks: list[ChunkResult] = field(default_factory=list)


class SplitService:
    def __init__(
        self,
        config: AppConfig,
        *,
        strategy: Strategy | None = None,
        settings: RunSettings | None = None,
    ) -> None:
        self._config = config
        self._settings = settings or RunSettings.from_config(config)
        self._strategy = strategy or get_strategy(config)
        self._run_logger = RunLogger(self._settings.storage_root / config.runtime.run_log)

    @property
    def strategy(self) -> Strategy:
        return self._strategy

    @property
    def settings(self) -> RunSettings:
        return self._settings

    def handle(self, request: SplitRequest) -> ProcessingResult:
        validate_request(request)
        source_url = build_source_url(self._config.runtime.url_host, request.url)
        return self.run(
            source_url,
            request.images_prefix,
            max_width=request.width,
            max_chunks=request.max_images,
            create_zip=request.create_zip,
        )

    def run(
        self,
        source_url: str,
        prefix: str,
        *,
        max_width: int = 0,
        max_chunks: int = 0,
        create_zip: bool = False,
    ) -> ProcessingResult:
        validate_request(
            SplitRequest(url=source_url, images_prefix=prefix, width=max_width, max_images=max_chunks)
        )
        run_id = generate_run_id()
        root = self._settings.storage_root
        context = _RunContext(
            run_id=run_id,
            run_paths=RunPaths(run_id=run_id, storage_root=root, base_dir=root / run_id),
            source_url=source_url,
        )
        try:
            context.run_paths = ensure_run_paths(root, run_id)
        except SplitError as exc:
            # Never remove a directory this run did not create.
            self._log_failure(context, exc)
            raise
        run_paths = context.run_paths
        try:
            result = self._run_internal(context, prefix, max_width, max_chunks, create_zip)
        except SplitError as exc:
            self._log_failure(context, exc)
            if not self._settings.keep_failed_runs:
                remove_tree(run_paths.base_dir)
            raise
        self._log_success(context, result)
        return result

    def _run_internal(
        self,
        context: _RunContext,
        prefix: str,
        max_width: int,
        max_chunks: int,
        create_zip: bool,
    ) -> ProcessingResult:
        source, context.timings.fetch_ms = _timed(self._fetch, context)
        dimensions, context.timings.probe_ms = _timed(self._strategy.probe, source)
        chunks, context.timings.plan_ms = _timed(
            self._plan, dimensions, prefix, max_width, max_chunks
        )
        context.chunks, context.timings.render_ms = _timed(self._render, source, chunks, context)

        archive: ArchiveResult | None = None
        if create_zip:
            archive, context.timings.archive_ms = _timed(self._archive, prefix, context)

        message = f"Successfully split image into {len(context.chunks)} parts"
        if archive is not None:
            message += " and created zip file"
        message += self._strategy.message_suffix
        return ProcessingResult(
            message=message,
            run_id=context.run_id,
            chunks=list(context.chunks),
            archive=archive,
        )

    def _fetch(self, context: _RunContext) -> ImageSource:
        image_format = detect_format(context.source_url)
        local_path = context.run_paths.source_file(image_format)
        self._strategy.fetch(context.source_url, local_path)
        return ImageSource(url=context.source_url, local_path=local_path, format=image_format)

    def _plan(
        self, dimensions: ImageDimensions, prefix: str, max_width: int, max_chunks: int
    ) -> list[ChunkSpec]:
        return plan_chunks(
            dimensions.width,
            dimensions.height,
            self._settings.max_chunk_height,
            prefix,
            max_width=max_width,
            max_chunks=max_chunks,
            crop_anchor=self._settings.crop_anchor,
        )

    def _render(
        self, source: ImageSource, chunks: list[ChunkSpec], context: _RunContext
    ) -> list[ChunkResult]:
        paths = self._strategy.render(source, chunks, context.run_paths.base_dir)
        return [
            self._chunk_result(spec, path)
            for spec, path in zip(chunks, paths)
        ]

    def _chunk_result(self, spec: ChunkSpec, path: Path) -> ChunkResult:
        absolute = path.resolve()
        return ChunkResult(
            spec=spec,
            absolute_path=absolute,
            relative_path=relative_to_root(absolute, self._settings.storage_root),
        )

    def _archive(self, prefix: str, context: _RunContext) -> ArchiveResult:
        destination = context.run_paths.archive_file(prefix)
        files = [chunk.absolute_path for chunk in context.chunks]
        archive_path = self._strategy.archive(files, destination).resolve()
        return ArchiveResult(
            absolute_path=archive_path,
            relative_path=relative_to_root(archive_path, self._settings.storage_root),
        )

    def _log_success(self, context: _RunContext, result: ProcessingResult) -> None:
        self._run_logger.append(
            RunLogEntry(
                run_id=context.run_id,
                source=context.source_url,
                status=result.status,
                strategy=self._strategy.name,
                chunk_count=len(result.chunks),
                error_code=None,
                timings=context.timings,
                output_dir=str(context.run_paths.base_dir),
                archive=result.zip_url or None,
                chunks=result.images,
            )
        )

    def _log_failure(self, context: _RunContext, exc: SplitError) -> None:
        self._run_logger.append(
            RunLogEntry(
                run_id=context.run_id,
                source=context.source_url,
                status="failure",
                strategy=self._strategy.name,
                chunk_count=len(context.chunks),
                error_code=exc.code,
                timings=context.timings,
                output_dir=str(context.run_paths.base_dir),
                error_message=str(exc),
            )
        )


def _timed(func: Callable[..., T], *args: object) -> tuple[T, float]:
    start = time.perf_counter()
    result = func(*args)
    return result, (time.perf_counter() - start) * 1000


__all__ = [
    "SplitService",
    "validate_request",
]
