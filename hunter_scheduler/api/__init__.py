"""HTTP trigger surface for the Hunter scheduler."""

from hunter_scheduler.api.app import create_app

__all__ = ["create_app"]
