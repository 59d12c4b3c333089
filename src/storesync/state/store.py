"""In-memory resource store.

This is the only component allowed to replace collection snapshots.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from storesync.state.events import EntityKind, RefreshSource, SnapshotUpdate

_logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class KindSnapshot(BaseModel):
    model_config = ConfigDict(extra="forbid", arbitrary_types_allowed=True)

    entities: tuple[Any, ...] = Field(default_factory=tuple)
    refreshed_at: datetime | None = None
    source: RefreshSource | None = None
    last_error: Exception | None = None
    last_error_at: datetime | None = None
    in_flight: int = 0


class ResourceStore:
    """Per-kind snapshot slots.

    A slot always holds the entities of the most recently *completed*
    successful fetch for its kind. Updates replace the slot wholesale;
    nothing is merged. Failed fetches leave the previous entities in
    place and are only recorded as ``last_error``.

    Each kind owns its own slot, so updates for different kinds never
    contend with each other.
    """

    def __init__(self, *, clock: Callable[[], datetime] = _utcnow) -> None:
        self._clock = clock
        self._slots: dict[EntityKind, KindSnapshot] = {kind: KindSnapshot() for kind in EntityKind}
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Freeze the store; later updates are ignored."""
        self._closed = True

    def apply(self, update: SnapshotUpdate) -> bool:
        """Replace a kind's snapshot. Returns ``False`` once the store is closed."""
        if self._closed:
            _logger.debug("Dropping %s snapshot for %s: store closed", update.source, update.kind)
            return False
        slot = self._slots[update.kind]
        slot.entities = tuple(update.entities)
        slot.refreshed_at = update.observed_at
        slot.source = update.source
        slot.last_error = None
        slot.last_error_at = None
        return True

    def record_failure(self, kind: EntityKind, error: Exception) -> None:
        if self._closed:
            return
        slot = self._slots[kind]
        slot.last_error = error
        slot.last_error_at = self._clock()

    def begin_fetch(self, kind: EntityKind) -> None:
        self._slots[kind].in_flight += 1

    def end_fetch(self, kind: EntityKind) -> None:
        slot = self._slots[kind]
        slot.in_flight = max(0, slot.in_flight - 1)

    def entities(self, kind: EntityKind) -> tuple[Any, ...]:
        return self._slots[kind].entities

    def is_loading(self, kind: EntityKind) -> bool:
        return self._slots[kind].in_flight > 0

    def last_error(self, kind: EntityKind) -> Exception | None:
        return self._slots[kind].last_error

    def refreshed_at(self, kind: EntityKind) -> datetime | None:
        return self._slots[kind].refreshed_at

    def snapshot(self) -> dict[EntityKind, tuple[Any, ...]]:
        """Current entities for every kind."""
        return {kind: slot.entities for kind, slot in self._slots.items()}
