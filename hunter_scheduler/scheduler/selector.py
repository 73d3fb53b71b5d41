"""Due-job selector."""

import logging
from typing import List

from hunter_scheduler.database.models import utcnow
from hunter_scheduler.scheduler.lease_store import LeaseStore
from hunter_scheduler.scheduler.units import Clock, ScheduledUnit

logger = logging.getLogger(__name__)

DEFAULT_BATCH_CAP = 50


class DueJobSelector:
    """Selects the batch of units the next scan cycle should attempt.

    Selection is a read: it takes no leases, so a selected unit may still
    be lost to another worker by the time the executor reaches it.
    """

    def __init__(self, store: LeaseStore, clock: Clock = utcnow) -> None:
        self._store = store
        self._clock = clock

    def select_due(self, batch_cap: int = DEFAULT_BATCH_CAP) -> List[ScheduledUnit]:
        """Return due units, oldest due first, ties broken by ID.

        Args:
            batch_cap: Maximum number of units to return

        Returns:
            At most batch_cap due units

        Raises:
            ValueError: If batch_cap is not a positive integer
            StorageError: If the store cannot be read
        """
        if isinstance(batch_cap, bool) or not isinstance(batch_cap, int) or batch_cap <= 0:
            raise ValueError(f"batch_cap must be a positive integer, got {batch_cap!r}")

        units = self._store.select_due(self._clock(), batch_cap)
        logger.debug(f"Selected {len(units)} due unit(s) (cap {batch_cap})")
        return units
