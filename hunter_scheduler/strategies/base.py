"""Base class for hunter strategies.

A strategy is the platform-specific collection logic: it knows how to
search one external platform and where to put what it finds. The
scheduler only knows the uniform scan/log_scan contract defined here.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Optional

if TYPE_CHECKING:
    from hunter_scheduler.scheduler.units import ScanTrigger, ScheduledUnit

logger = logging.getLogger(__name__)


class PlatformType(str, Enum):
    """Platforms with first-class support.

    The registry accepts any string tag, so this list is not closed.
    """

    REDDIT = "reddit"
    TWITTER = "twitter"
    HACKERNEWS = "hackernews"
    G2 = "g2"
    PRODUCTHUNT = "producthunt"
    APPSTORE = "appstore"
    PLAYSTORE = "playstore"


@dataclass
class RawScanResult:
    """Result reported by a strategy's scan.

    Attributes:
        success: Whether the scan succeeded
        items_found: Items discovered on the platform
        items_stored: New items handed to the downstream pipeline
        items_duplicates: Items skipped as already known
        error: Error message if the strategy reports failure
    """

    success: bool
    items_found: int = 0
    items_stored: int = 0
    items_duplicates: int = 0
    error: Optional[str] = None


class HunterStrategy(ABC):
    """Abstract base class for platform strategies.

    Strategies must implement:
    - platform: the platform-type tag they serve
    - scan(): collect items for one integration

    Strategies may override:
    - log_scan(): record a finished scan (default: log it)

    Example:
        class RedditStrategy(HunterStrategy):
            platform = "reddit"

            async def scan(self, config, unit) -> RawScanResult:
                posts = await self._search(config["keywords"])
                stored = await self._store(unit.project_id, posts)
                return RawScanResult(
                    success=True,
                    items_found=len(posts),
                    items_stored=stored,
                )
    """

    platform: str = ""

    def __init__(self, settings: Optional[Dict[str, Any]] = None) -> None:
        """Initialize the strategy.

        Args:
            settings: Platform-wide settings shared by every integration
        """
        self._settings = settings or {}

    @property
    def settings(self) -> Dict[str, Any]:
        """Platform-wide settings."""
        return self._settings.copy()

    @abstractmethod
    async def scan(
        self,
        config: Dict[str, Any],
        unit: "ScheduledUnit",
    ) -> RawScanResult:
        """Collect items for one integration.

        Raising is equivalent to returning a failed result.

        Args:
            config: Integration config merged over the platform settings
            unit: The integration being scanned

        Returns:
            RawScanResult with counts
        """

    async def log_scan(
        self,
        result: RawScanResult,
        unit_id: str,
        project_id: str,
        trigger: "ScanTrigger",
    ) -> None:
        """Record a finished scan.

        Called by the executor after the outcome has been persisted.

        Args:
            result: The scan result
            unit_id: Integration ID
            project_id: Owning project
            trigger: What caused the scan
        """
        logger.debug(
            f"[{self.platform}] {trigger.value} scan of {unit_id} "
            f"(project {project_id}): success={result.success}, "
            f"found={result.items_found}, stored={result.items_stored}"
        )
