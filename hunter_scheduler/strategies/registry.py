"""Strategy registry mapping platform types to hunter strategies.

Lookups are pure: discovery (entry points) happens once when the
registry is built, never while a cycle is resolving strategies.
"""

import logging
from importlib.metadata import entry_points
from typing import Any, Dict, List, Optional, Type

from hunter_scheduler.errors import UnknownPlatformError
from hunter_scheduler.strategies.base import HunterStrategy

logger = logging.getLogger(__name__)


class StrategyRegistry:
    """Registry of hunter strategies keyed by platform type.

    Example:
        registry = StrategyRegistry()
        registry.register(RedditStrategy())

        strategy = registry.resolve("reddit")
        result = await strategy.scan(config, unit)
    """

    # Entry point group for strategies shipped by other packages
    ENTRY_POINT_GROUP = "hunter_scheduler.strategies"

    def __init__(self) -> None:
        self._strategies: Dict[str, HunterStrategy] = {}

    def register(self, strategy: HunterStrategy) -> None:
        """Register a strategy under its platform tag.

        Args:
            strategy: The strategy instance

        Raises:
            ValueError: If the strategy has no platform tag
        """
        platform = str(getattr(strategy.platform, "value", strategy.platform))
        if not platform:
            raise ValueError(f"{type(strategy).__name__} does not declare a platform")

        if platform in self._strategies:
            logger.warning(f"Replacing strategy for platform '{platform}'")
        self._strategies[platform] = strategy
        logger.debug(f"Registered {type(strategy).__name__} for '{platform}'")

    def unregister(self, platform_type: str) -> bool:
        """Remove the strategy for a platform.

        Returns:
            True if a strategy was removed
        """
        return self._strategies.pop(platform_type, None) is not None

    def resolve(self, platform_type: str) -> HunterStrategy:
        """Get the strategy for a platform type.

        Args:
            platform_type: Platform discriminator of a unit

        Returns:
            The registered strategy

        Raises:
            UnknownPlatformError: If no strategy serves the platform
        """
        try:
            return self._strategies[platform_type]
        except KeyError:
            raise UnknownPlatformError(platform_type) from None

    def __contains__(self, platform_type: object) -> bool:
        return platform_type in self._strategies

    def __len__(self) -> int:
        return len(self._strategies)

    @property
    def platforms(self) -> List[str]:
        """Registered platform types, sorted."""
        return sorted(self._strategies)

    def discover_entry_points(
        self,
        settings: Optional[Dict[str, Dict[str, Any]]] = None,
    ) -> int:
        """Register strategies advertised by installed packages.

        Each entry point in the group must load a HunterStrategy subclass.
        Entry points that fail to load are logged and skipped.

        Args:
            settings: Platform-wide settings keyed by platform type

        Returns:
            Number of strategies registered
        """
        settings = settings or {}
        registered = 0

        for ep in entry_points(group=self.ENTRY_POINT_GROUP):
            try:
                strategy_class = ep.load()
            except Exception as e:
                logger.error(f"Failed to load strategy entry point '{ep.name}': {e}")
                continue

            if not _is_strategy_class(strategy_class):
                logger.warning(f"Entry point '{ep.name}' is not a HunterStrategy subclass")
                continue

            platform = str(getattr(strategy_class.platform, "value", strategy_class.platform))
            self.register(strategy_class(settings.get(platform)))
            registered += 1

        return registered


def _is_strategy_class(obj: Any) -> bool:
    return (
        isinstance(obj, type)
        and issubclass(obj, HunterStrategy)
        and obj is not HunterStrategy
    )


def build_registry(
    strategy_classes: Optional[List[Type[HunterStrategy]]] = None,
    settings: Optional[Dict[str, Dict[str, Any]]] = None,
    load_entry_points: bool = True,
    enabled: Optional[List[str]] = None,
) -> StrategyRegistry:
    """Build a registry from explicit classes and installed entry points.

    Args:
        strategy_classes: Strategy classes to register directly
        settings: Platform-wide settings keyed by platform type
        load_entry_points: Whether to discover installed strategies
        enabled: If non-empty, keep only these platforms

    Returns:
        Populated StrategyRegistry
    """
    settings = settings or {}
    registry = StrategyRegistry()

    if load_entry_points:
        registry.discover_entry_points(settings)

    for strategy_class in strategy_classes or []:
        platform = str(getattr(strategy_class.platform, "value", strategy_class.platform))
        registry.register(strategy_class(settings.get(platform)))

    if enabled:
        for platform in registry.platforms:
            if platform not in enabled:
                registry.unregister(platform)

    logger.info(f"Strategy registry ready: {', '.join(registry.platforms) or 'no strategies'}")
    return registry


# Global registry instance
_default_registry: Optional[StrategyRegistry] = None


def get_registry() -> StrategyRegistry:
    """Get the default strategy registry, built from the global configuration."""
    global _default_registry
    if _default_registry is None:
        from hunter_scheduler.config import get_config

        config = get_config()
        _default_registry = build_registry(
            settings=config.strategies.settings,
            load_entry_points=config.strategies.load_entry_points,
            enabled=config.strategies.enabled,
        )
    return _default_registry


def set_registry(registry: StrategyRegistry) -> None:
    """Replace the default strategy registry."""
    global _default_registry
    _default_registry = registry


def reset_registry() -> None:
    """Reset the default strategy registry."""
    global _default_registry
    _default_registry = None
