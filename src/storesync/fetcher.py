"""Full-collection pulls, one entity kind at a time."""

from __future__ import annotations

import dataclasses
import logging
import time
from typing import Any

from storesync._constants import ASCENDING, DESCENDING, ORDER_COLUMN
from storesync._redact import redact_for_log
from storesync._transport import RemoteStore
from storesync.config import CollectionNames
from storesync.exceptions import FetchError
from storesync.ingestion.entities import batch_normalize
from storesync.state.events import EntityKind

_logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class CollectionSpec:
    """Where a kind lives remotely and how it is ordered."""

    name: str
    order_by: str = ORDER_COLUMN
    direction: str = ASCENDING


def collection_specs(names: CollectionNames | None = None) -> dict[EntityKind, CollectionSpec]:
    """Oldest first for products, orders and users; newest reviews first."""
    names = names or CollectionNames()
    return {
        EntityKind.PRODUCT: CollectionSpec(names.products),
        EntityKind.ORDER: CollectionSpec(names.orders),
        EntityKind.USER: CollectionSpec(names.users),
        EntityKind.REVIEW: CollectionSpec(names.reviews, direction=DESCENDING),
    }


@dataclasses.dataclass(frozen=True)
class FetchResult:
    kind: EntityKind
    entities: tuple[Any, ...] = ()
    error: FetchError | None = None
    duration: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None


class Fetcher:
    """Pull every row of one kind and normalize it.

    :meth:`fetch_all` never raises for backend trouble; the failure comes
    back on the :class:`FetchResult` so the caller can keep the previous
    snapshot.
    """

    def __init__(self, remote: RemoteStore, *, collections: dict[EntityKind, CollectionSpec] | None = None) -> None:
        self._remote = remote
        self._collections = collections or collection_specs()

    def spec_for(self, kind: EntityKind) -> CollectionSpec:
        return self._collections[kind]

    async def fetch_all(self, kind: EntityKind) -> FetchResult:
        spec = self._collections[kind]
        started = time.monotonic()
        try:
            rows = await self._remote.list(spec.name, spec.order_by, spec.direction)
        except Exception as exc:
            error = FetchError(f"Fetching {spec.name} failed: {exc}", kind=kind)
            error.__cause__ = exc
            _logger.debug("Fetch %s failed", spec.name, exc_info=True)
            return FetchResult(kind=kind, error=error, duration=time.monotonic() - started)

        entities = batch_normalize(kind, rows)
        duration = time.monotonic() - started
        _logger.debug(
            "Fetched %s rows=%d kept=%d in %.3fs first=%s",
            spec.name,
            len(rows),
            len(entities),
            duration,
            redact_for_log(rows[0]) if rows else None,
        )
        return FetchResult(kind=kind, entities=tuple(entities), duration=duration)
