"""alertsync command-line interface."""

from alertsync.cli.app import app

__all__ = ["app"]
