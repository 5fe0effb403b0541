"""Port for change notifications."""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from cnat.domain.model import ChangeEvent

type ChangeHandler = Callable[[ChangeEvent], None]
type Unsubscribe = Callable[[], None]


@runtime_checkable
class ChangeNotifier(Protocol):
    """Delivers every committed change at least once to each subscriber."""

    def subscribe(self, handler: ChangeHandler) -> Unsubscribe: ...
