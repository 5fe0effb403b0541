"""Status writer: persists phase transitions of an ``At``."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from cnat.domain.errors import PhaseTransitionError
from cnat.domain.model import AtPhase

if TYPE_CHECKING:
    from cnat.domain.model import At
    from cnat.domain.ports import ResourceClient

log = getLogger(__name__)


class StatusWriter:
    """Write only the status sub-object, guarded by the observed resource version.

    The conditional write is the adapter's job; a lost race comes back as
    ``ConflictError`` and is left for the dispatcher to retry on fresh state.
    """

    def __init__(self, client: ResourceClient) -> None:
        self._client = client

    def write(self, at: At, previous_phase: str, *, timeout: float | None = None) -> At:
        new_phase = at.status.phase
        if not AtPhase.is_forward(previous_phase, new_phase):
            raise PhaseTransitionError(
                f"Refusing to move {at.key} from {previous_phase!r} to {new_phase!r}"
            )
        updated = self._client.update_at_status(at, timeout=timeout)
        log.info(
            "Status updated: namespace=%s at=%s phase=%s->%s resource_version=%s",
            at.metadata.namespace,
            at.metadata.name,
            previous_phase or "<unset>",
            new_phase,
            updated.metadata.resource_version,
        )
        return updated
