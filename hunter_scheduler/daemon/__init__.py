"""Daemon module for the Hunter scheduler.

Runs the scan cycle and the recovery sweep on interval timers.
"""

from hunter_scheduler.daemon.service import HunterDaemon, run_daemon

__all__ = [
    "HunterDaemon",
    "run_daemon",
]
