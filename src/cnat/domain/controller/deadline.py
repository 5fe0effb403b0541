"""Per-reconcile deadline handed to every collaborator call."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from cnat.domain.errors import ReconcileTimeoutError

if TYPE_CHECKING:
    from collections.abc import Callable


@dataclass(frozen=True, slots=True)
class Deadline:
    expires_at: float | None = None
    clock: Callable[[], float] = field(default=time.monotonic, compare=False)

    @classmethod
    def after(
        cls,
        seconds: float | None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> Deadline:
        if seconds is None:
            return cls(expires_at=None, clock=clock)
        return cls(expires_at=clock() + seconds, clock=clock)

    def remaining(self) -> float | None:
        """Seconds left for the next call; ``None`` means unbounded.

        Raises ``ReconcileTimeoutError`` once the deadline has passed.
        """

        if self.expires_at is None:
            return None
        left = self.expires_at - self.clock()
        if left <= 0:
            raise ReconcileTimeoutError("reconcile deadline exceeded")
        return left
