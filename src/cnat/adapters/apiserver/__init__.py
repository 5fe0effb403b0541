"""API server adapter: ``At`` resources and pods over HTTP."""

from __future__ import annotations

from .client import ApiServerResourceClient
from .schema import AtListModel, AtModel, PodModel, StatusModel
from .translator import RESOURCE_TYPES, ResourceType

__all__ = [
    "RESOURCE_TYPES",
    "ApiServerResourceClient",
    "AtListModel",
    "AtModel",
    "PodModel",
    "ResourceType",
    "StatusModel",
]
