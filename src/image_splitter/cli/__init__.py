from __future__ import annotations

import time
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from ..config import AppConfig, dump_config, load_config, validate_config, validate_pipeline_config
from ..core import SplitService
from ..errors import ConfigError, SplitError
from ..logging import JsonLogger
from ..settings import apply_overrides
from ..utils import build_source_url, is_absolute_url, iter_run_dirs, remove_tree

console = Console()

app = typer.Typer(help="Split tall remote images into bounded-height chunks")


def _load_config(path: Path | None) -> AppConfig:
    try:
        return load_config(path)
    except ConfigError as exc:
        console.print(f"[red]Invalid configuration[/red]: {exc}")
        raise typer.Exit(1) from exc


@app.command()
def split(
    url: str,
    prefix: str = typer.Option(..., "--prefix", help="File name prefix for the chunks"),
    width: int = typer.Option(0, "--width", min=0, help="Maximum chunk width, 0 keeps the source width"),
    max_images: int = typer.Option(0, "--max-images", min=0, help="Keep at most N chunks, 0 keeps all"),
    create_zip: bool = typer.Option(False, "--zip", help="Bundle the chunks into a zip archive"),
    use_cli: bool | None = typer.Option(None, "--use-cli/--native", help="Use external CLI tools"),
    config: Path | None = typer.Option(None, "--config", help="Path to config.toml"),
) -> None:
    cfg = apply_overrides(_load_config(config), use_cli=use_cli)
    try:
        validate_pipeline_config(cfg)
        service = SplitService(cfg)
    except ConfigError as exc:
        console.print(f"[red]Invalid configuration[/red]: {exc}")
        raise typer.Exit(1) from exc

    # Local runs may name any source; only the HTTP route is pinned to url_host.
    source_url = url if is_absolute_url(url) else build_source_url(cfg.runtime.url_host, url)
    try:
        result = service.run(
            source_url,
            prefix,
            max_width=width,
            max_chunks=max_images,
            create_zip=create_zip,
        )
    except SplitError as exc:
        console.print(f"[red]Split failed[/red]: {exc.code} - {exc}")
        raise typer.Exit(1) from exc

    console.print(f"[green]Success[/green]: {result.message}")
    table = Table(title=f"Run {result.run_id}")
    table.add_column("Chunk")
    table.add_column("Rows")
    table.add_column("Path")
    for chunk in result.chunks:
        table.add_row(
            str(chunk.spec.index),
            f"{chunk.spec.start_y}-{chunk.spec.end_y}",
            chunk.relative_path,
        )
    console.print(table)
    if result.zip_url:
        console.print(f"Archive: {result.zip_url}")


@app.command()
def serve(
    config: Path | None = typer.Option(None, "--config", help="Path to config.toml"),
    host: str | None = typer.Option(None, "--host", help="Interface to bind"),
    port: int | None = typer.Option(None, "--port", help="Port to listen on"),
    url_host: str | None = typer.Option(None, "--url-host", help="Base URL prepended to relative image URLs"),
    file_path: Path | None = typer.Option(None, "--file-path", help="Storage root for run directories"),
    username: str | None = typer.Option(None, "--username", help="Basic auth username"),
    password: str | None = typer.Option(None, "--password", help="Basic auth password"),
    max_height: int | None = typer.Option(None, "--max-height", help="Maximum chunk height in pixels"),
    use_cli: bool | None = typer.Option(None, "--use-cli/--native", help="Use external CLI tools"),
) -> None:
    import uvicorn

    from api.app import create_app

    logger = JsonLogger()
    try:
        cfg = apply_overrides(
            load_config(config),
            url_host=url_host,
            storage_root=file_path,
            use_cli=use_cli,
            max_height=max_height,
            username=username,
            password=password,
            port=port,
        )
        if host is not None:
            cfg.server.host = host
        validate_config(cfg)
    except ConfigError as exc:
        logger.print_fatal(exc)
        return

    application = create_app(cfg, logger=logger, validate=False)
    uvicorn.run(application, host=cfg.server.host, port=cfg.server.port, log_level="warning")


@app.command("config")
def show_config(
    config: Path | None = typer.Option(None, "--config", help="Path to config.toml"),
) -> None:
    cfg = _load_config(config)
    console.print_json(dump_config(cfg))


@app.command()
def clean(
    older_than: int = typer.Option(
        0,
        "--older-than",
        min=0,
        help="Delete runs older than the given days",
    ),
    keep: int = typer.Option(
        0,
        "--keep",
        min=0,
        help="Keep the most recent N runs and delete the rest",
    ),
    config: Path | None = typer.Option(None, "--config", help="Path to config.toml"),
) -> None:
    cfg = _load_config(config)
    storage_root = cfg.runtime.storage_root
    if not storage_root.exists():
        console.print("No storage directory found.")
        raise typer.Exit()
    candidates = list(iter_run_dirs(storage_root))
    to_remove: list[Path] = []
    if keep:
        to_remove.extend(candidates[:-keep])
    if older_than:
        threshold = time.time() - older_than * 86400
        to_remove.extend([p for p in candidates if p.stat().st_mtime < threshold])
    seen: set[Path] = set()
    for path in to_remove:
        if path in seen:
            continue
        remove_tree(path)
        seen.add(path)
    console.print(f"Removed {len(seen)} run directories.")


if __name__ == "__main__":
    app()
