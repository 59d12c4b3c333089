from __future__ import annotations

from datetime import UTC, datetime

from storesync.exceptions import FetchError
from storesync.models import Product
from storesync.state.events import EntityKind, RefreshSource, SnapshotUpdate
from storesync.state.store import ResourceStore


def _dt() -> datetime:
    return datetime(2026, 1, 1, tzinfo=UTC)


def _products(*ids: str) -> tuple[Product, ...]:
    return tuple(Product(id=i) for i in ids)


def test_update_replaces_snapshot_wholesale() -> None:
    store = ResourceStore()

    store.apply(SnapshotUpdate(kind=EntityKind.PRODUCT, source=RefreshSource.INITIAL, entities=_products("a", "b")))
    store.apply(SnapshotUpdate(kind=EntityKind.PRODUCT, source=RefreshSource.CHANGE, entities=_products("c")))

    assert [p.id for p in store.entities(EntityKind.PRODUCT)] == ["c"]
    assert store.entities(EntityKind.ORDER) == ()


def test_failure_keeps_previous_entities() -> None:
    store = ResourceStore(clock=_dt)
    store.apply(
        SnapshotUpdate(
            kind=EntityKind.REVIEW,
            source=RefreshSource.INITIAL,
            entities=_products("r"),
            observed_at=datetime(2026, 1, 1),
        )
    )
    error = FetchError("boom", kind=EntityKind.REVIEW)

    store.record_failure(EntityKind.REVIEW, error)

    assert len(store.entities(EntityKind.REVIEW)) == 1
    assert store.last_error(EntityKind.REVIEW) is error
    assert store.refreshed_at(EntityKind.REVIEW) == _dt()


def test_success_clears_last_error() -> None:
    store = ResourceStore()
    store.record_failure(EntityKind.USER, FetchError("boom", kind=EntityKind.USER))

    store.apply(SnapshotUpdate(kind=EntityKind.USER, source=RefreshSource.MANUAL))

    assert store.last_error(EntityKind.USER) is None


def test_in_flight_counter_tracks_overlapping_fetches() -> None:
    store = ResourceStore()

    store.begin_fetch(EntityKind.ORDER)
    store.begin_fetch(EntityKind.ORDER)
    store.end_fetch(EntityKind.ORDER)
    assert store.is_loading(EntityKind.ORDER)
    assert not store.is_loading(EntityKind.PRODUCT)

    store.end_fetch(EntityKind.ORDER)
    store.end_fetch(EntityKind.ORDER)
    assert not store.is_loading(EntityKind.ORDER)


def test_closed_store_ignores_updates() -> None:
    store = ResourceStore()
    store.apply(SnapshotUpdate(kind=EntityKind.PRODUCT, source=RefreshSource.INITIAL, entities=_products("a")))
    store.close()

    applied = store.apply(SnapshotUpdate(kind=EntityKind.PRODUCT, source=RefreshSource.CHANGE))
    store.record_failure(EntityKind.PRODUCT, FetchError("late", kind=EntityKind.PRODUCT))

    assert applied is False
    assert store.closed
    assert [p.id for p in store.snapshot()[EntityKind.PRODUCT]] == ["a"]
    assert store.last_error(EntityKind.PRODUCT) is None
