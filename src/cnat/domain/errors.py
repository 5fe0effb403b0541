"""Error taxonomy shared by the controller and the resource adapters.

Every collaborator failure surfaces as a ``ResourceError`` subclass so the
dispatcher can classify it without knowing which adapter raised it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .model import ObjectKey


class ResourceError(RuntimeError):
    """Base class for failures reported by a resource client."""


class NotFoundError(ResourceError):
    """The requested resource does not exist (or no longer exists)."""

    def __init__(self, kind: str, key: ObjectKey) -> None:
        super().__init__(f"{kind} {key} not found")
        self.kind = kind
        self.key = key


class AlreadyExistsError(ResourceError):
    """A create collided with an existing resource of the same key."""

    def __init__(self, kind: str, key: ObjectKey) -> None:
        super().__init__(f"{kind} {key} already exists")
        self.kind = kind
        self.key = key


class ConflictError(ResourceError):
    """A conditional write lost against a newer resource version."""


class TransientClientError(ResourceError):
    """Network, storage or server failure that is worth retrying."""


class ReconcileTimeoutError(TransientClientError):
    """The reconcile deadline expired before a collaborator call could run."""


class ScheduleValidationError(ValueError):
    """The schedule string does not match the ``YYYY-MM-DDThh:mm:ssZ`` layout."""


class PhaseTransitionError(RuntimeError):
    """A status write would move the phase backwards."""
