from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from .config import CONFIG_FILE, AppConfig, load_config

ENV_PREFIX = "IMGSPLIT_"


class Settings(BaseSettings):
    """Environment overrides layered on top of ``config.toml``."""

    model_config = SettingsConfigDict(env_prefix=ENV_PREFIX, env_file=".env", extra="ignore")

    config_path: Path = CONFIG_FILE
    url_host: str | None = None
    storage_root: Path | None = None
    use_cli: bool | None = None
    max_height: int | None = None
    username: str | None = None
    password: str | None = None
    port: int | None = None


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""

    return Settings()


def apply_overrides(
    config: AppConfig,
    *,
    url_host: str | None = None,
    storage_root: Path | None = None,
    use_cli: bool | None = None,
    max_height: int | None = None,
    username: str | None = None,
    password: str | None = None,
    port: int | None = None,
) -> AppConfig:
    if url_host is not None:
        config.runtime.url_host = url_host
    if storage_root is not None:
        config.runtime.storage_root = storage_root
    if use_cli is not None:
        config.runtime.strategy = "cli" if use_cli else "native"
    if max_height is not None:
        config.runtime.max_chunk_height = max_height
    if username is not None:
        config.server.username = username
    if password is not None:
        config.server.password = password
    if port is not None:
        config.server.port = port
    return config


def prepare_config(settings: Settings) -> AppConfig:
    config = load_config(settings.config_path)
    return apply_overrides(
        config,
        url_host=settings.url_host,
        storage_root=settings.storage_root,
        use_cli=settings.use_cli,
        max_height=settings.max_height,
        username=settings.username,
        password=settings.password,
        port=settings.port,
    )


__all__ = ["ENV_PREFIX", "Settings", "apply_overrides", "get_settings", "prepare_config"]
