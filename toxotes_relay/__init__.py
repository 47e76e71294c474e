"""Relay state reconciliation for toxotes things."""

from .version import __version__

__all__ = ["__version__"]
