from __future__ import annotations

from typing import Callable, Dict

from ..config import AppConfig
from ..errors import ConfigError
from .base import Strategy
from .cli import CLIStrategy
from .native import NativeStrategy


def _native(config: AppConfig) -> Strategy:
    return NativeStrategy(
        timeout_s=config.runtime.fetch_timeout_s,
        jpeg_quality=config.runtime.jpeg_quality,
        max_image_pixels=config.runtime.max_image_pixels,
    )


def _cli(config: AppConfig) -> Strategy:
    return CLIStrategy(config.tools)


_STRATEGY_FACTORIES: Dict[str, Callable[[AppConfig], Strategy]] = {
    "native": _native,
    "cli": _cli,
}


def get_strategy(config: AppConfig) -> Strategy:
    factory = _STRATEGY_FACTORIES.get(config.runtime.strategy)
    if not factory:
        raise ConfigError(f"Unknown strategy: {config.runtime.strategy}")
    return factory(config)


__all__ = [
    "Strategy",
    "CLIStrategy",
    "NativeStrategy",
    "get_strategy",
]
