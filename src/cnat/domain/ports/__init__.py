"""Domain port definitions for adapters."""

from __future__ import annotations

from .notifications import ChangeHandler, ChangeNotifier, Unsubscribe
from .resources import ResourceClient, ResourceStore

__all__ = [
    "ChangeHandler",
    "ChangeNotifier",
    "ResourceClient",
    "ResourceStore",
    "Unsubscribe",
]
