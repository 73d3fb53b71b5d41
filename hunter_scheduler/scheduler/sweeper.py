"""Stale-lease recovery sweeper.

Releases leases whose holders died or hung past lease_expires_at.
Recovered units keep their next_due_at, so they are picked up by the
next scan cycle without losing their place in the queue.
"""

import logging

from hunter_scheduler.database.models import utcnow
from hunter_scheduler.scheduler.lease_store import LeaseStore
from hunter_scheduler.scheduler.units import Clock

logger = logging.getLogger(__name__)


class StaleLeaseSweeper:
    """Clears expired leases in a single atomic statement.

    Safe to run concurrently with itself and with scan cycles: a lease
    that is still valid is never touched, and a second sweep over the
    same state recovers nothing.
    """

    def __init__(self, store: LeaseStore, clock: Clock = utcnow) -> None:
        self._store = store
        self._clock = clock

    def recover_stale_leases(self) -> int:
        """Release every expired lease.

        Returns:
            Number of units recovered

        Raises:
            StorageError: If the store cannot be written
        """
        recovered = self._store.recover_stale(self._clock())
        if recovered:
            logger.warning(f"Recovered {recovered} stale lease(s)")
        else:
            logger.debug("No stale leases found")
        return recovered
