"""Hunter strategies: the pluggable per-platform collection logic."""

from hunter_scheduler.strategies.base import HunterStrategy, PlatformType, RawScanResult
from hunter_scheduler.strategies.registry import (
    StrategyRegistry,
    build_registry,
    get_registry,
    reset_registry,
    set_registry,
)

__all__ = [
    "HunterStrategy",
    "PlatformType",
    "RawScanResult",
    "StrategyRegistry",
    "build_registry",
    "get_registry",
    "reset_registry",
    "set_registry",
]
