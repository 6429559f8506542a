from __future__ import annotations

import json
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping

from .errors import ConfigError


CONFIG_FILE = Path("config.toml")

STRATEGIES = ("native", "cli")
TOOLCHAINS = ("vips", "imagemagick")
CROP_ANCHORS = ("left", "center")


@dataclass(slots=True)
class RuntimeConfig:
    storage_root: Path = Path("storage")
    url_host: str = ""
    max_chunk_height: int = 5000
    strategy: str = "native"
    crop_anchor: str = "left"
    keep_failed_runs: bool = True
    run_log: str = "runs.jsonl"
    fetch_timeout_s: int = 60
    jpeg_quality: int = 90
    max_image_pixels: int = 0


@dataclass(slots=True)
class ToolsConfig:
    toolchain: str = "vips"
    curl: str = "curl"
    zip: str = "zip"
    vips: str = "vips"
    vipsheader: str = "vipsheader"
    convert: str = "convert"
    identify: str = "identify"
    timeout_s: int = 300


@dataclass(slots=True)
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 4000
    username: str = ""
    password: str = ""
    shutdown_grace_s: int = 30

    @property
    def auth_enabled(self) -> bool:
        return bool(self.username and self.password)


@dataclass(slots=True)
class AppConfig:
    runtime: RuntimeConfig = field(default_factory=RuntimeConfig)
    tools: ToolsConfig = field(default_factory=ToolsConfig)
    server: ServerConfig = field(default_factory=ServerConfig)

    @property
    def use_cli(self) -> bool:
        return self.runtime.strategy == "cli"


@dataclass(frozen=True, slots=True)
class RunSettings:
    """Immutable per-run view of the configuration handed to the pipeline."""

    storage_root: Path
    max_chunk_height: int
    strategy: str = "native"
    crop_anchor: str = "left"
    keep_failed_runs: bool = True

    @classmethod
    def from_config(cls, config: AppConfig) -> "RunSettings":
        return cls(
            storage_root=config.runtime.storage_root,
            max_chunk_height=config.runtime.max_chunk_height,
            strategy=config.runtime.strategy,
            crop_anchor=config.runtime.crop_anchor,
            keep_failed_runs=config.runtime.keep_failed_runs,
        )


def _read_toml(path: Path) -> Mapping[str, object]:
    if not path.exists():
        return {}
    try:
        with path.open("rb") as handle:
            return tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid TOML in {path}: {exc}") from exc


def _section(raw: Mapping[str, object], name: str) -> Mapping[str, object] | None:
    data = raw.get(name)
    return data if isinstance(data, Mapping) else None


def _build_runtime(data: Mapping[str, object] | None) -> RuntimeConfig:
    if not data:
        return RuntimeConfig()
    return RuntimeConfig(
        storage_root=Path(str(data.get("storage_root", "storage"))),
        url_host=str(data.get("url_host", "")),
        max_chunk_height=int(data.get("max_chunk_height", 5000)),
        strategy=str(data.get("strategy", "native")),
        crop_anchor=str(data.get("crop_anchor", "left")),
        keep_failed_runs=bool(data.get("keep_failed_runs", True)),
        run_log=str(data.get("run_log", "runs.jsonl")),
        fetch_timeout_s=int(data.get("fetch_timeout_s", 60)),
        jpeg_quality=int(data.get("jpeg_quality", 90)),
        max_image_pixels=int(data.get("max_image_pixels", 0)),
    )


def _build_tools(data: Mapping[str, object] | None) -> ToolsConfig:
    if not data:
        return ToolsConfig()
    defaults = ToolsConfig()
    return ToolsConfig(
        toolchain=str(data.get("toolchain", defaults.toolchain)),
        curl=str(data.get("curl", defaults.curl)),
        zip=str(data.get("zip", defaults.zip)),
        vips=str(data.get("vips", defaults.vips)),
        vipsheader=str(data.get("vipsheader", defaults.vipsheader)),
        convert=str(data.get("convert", defaults.convert)),
        identify=str(data.get("identify", defaults.identify)),
        timeout_s=int(data.get("timeout_s", defaults.timeout_s)),
    )


def _build_server(data: Mapping[str, object] | None) -> ServerConfig:
    if not data:
        return ServerConfig()
    return ServerConfig(
        host=str(data.get("host", "0.0.0.0")),
        port=int(data.get("port", 4000)),
        username=str(data.get("username", "")),
        password=str(data.get("password", "")),
        shutdown_grace_s=int(data.get("shutdown_grace_s", 30)),
    )


def load_config(path: Path | None = None) -> AppConfig:
    path = path or CONFIG_FILE
    raw = _read_toml(path)
    try:
        return AppConfig(
            runtime=_build_runtime(_section(raw, "runtime")),
            tools=_build_tools(_section(raw, "tools")),
            server=_build_server(_section(raw, "server")),
        )
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid configuration value in {path}: {exc}") from exc


def validate_config(config: AppConfig) -> None:
    runtime = config.runtime
    if not runtime.url_host or not str(runtime.storage_root):
        raise ConfigError("url host and file path cannot be empty")
    if not runtime.url_host.startswith(("http://", "https://")):
        raise ConfigError("url host must start with http:// or https://")
    if not runtime.url_host.endswith("/"):
        raise ConfigError("url host must end with a slash")
    root = runtime.storage_root
    if not root.is_absolute():
        raise ConfigError("file path must be absolute")
    if not root.exists():
        raise ConfigError("file path does not exist")
    if not root.is_dir():
        raise ConfigError("file path is not a directory")
    if not os.access(root, os.W_OK):
        raise ConfigError("file path is not writable")
    validate_pipeline_config(config)


def validate_pipeline_config(config: AppConfig) -> None:
    """Checks every entry point needs, including the local `split` command."""

    runtime = config.runtime
    if runtime.max_chunk_height <= 0:
        raise ConfigError("max height must be a positive integer")
    if runtime.strategy not in STRATEGIES:
        raise ConfigError(f"Unknown strategy: {runtime.strategy}")
    if runtime.crop_anchor not in CROP_ANCHORS:
        raise ConfigError(f"Unknown crop anchor: {runtime.crop_anchor}")
    if config.tools.toolchain not in TOOLCHAINS:
        raise ConfigError(f"Unknown toolchain: {config.tools.toolchain}")
    if runtime.max_image_pixels < 0:
        raise ConfigError("max image pixels must be zero (unlimited) or a positive integer")


def dump_config(config: AppConfig) -> str:
    payload = {
        "runtime": {
            "storage_root": str(config.runtime.storage_root),
            "url_host": config.runtime.url_host,
            "max_chunk_height": config.runtime.max_chunk_height,
            "strategy": config.runtime.strategy,
            "crop_anchor": config.runtime.crop_anchor,
            "keep_failed_runs": config.runtime.keep_failed_runs,
            "run_log": config.runtime.run_log,
            "fetch_timeout_s": config.runtime.fetch_timeout_s,
            "jpeg_quality": config.runtime.jpeg_quality,
            "max_image_pixels": config.runtime.max_image_pixels,
        },
        "tools": {
            "toolchain": config.tools.toolchain,
            "curl": config.tools.curl,
            "zip": config.tools.zip,
            "vips": config.tools.vips,
            "vipsheader": config.tools.vipsheader,
            "convert": config.tools.convert,
            "identify": config.tools.identify,
            "timeout_s": config.tools.timeout_s,
        },
        "server": {
            "host": config.server.host,
            "port": config.server.port,
            "auth_enabled": config.server.auth_enabled,
            "shutdown_grace_s": config.server.shutdown_grace_s,
        },
    }
    return json.dumps(payload, indent=2)
