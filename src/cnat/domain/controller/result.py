"""Outcome of a single reconcile."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from cnat.domain.model import ObjectKey

    from .deadline import Deadline


@dataclass(frozen=True, slots=True)
class ReconcileResult:
    """Successful reconcile, optionally asking to be run again after a delay.

    Failures are not results: they are raised and classified by the dispatcher.
    """

    requeue_after: timedelta | None = None

    @property
    def requeue(self) -> bool:
        return self.requeue_after is not None and self.requeue_after > timedelta(0)


class Reconciler(Protocol):
    def reconcile(self, key: ObjectKey, *, deadline: Deadline) -> ReconcileResult: ...
