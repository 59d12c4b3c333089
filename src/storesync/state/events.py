"""Entity kinds and snapshot update events.

Every fetch, whether from the initial load, a manual refresh or a
change notification, ends as a :class:`SnapshotUpdate`. Only the
state/store layer is allowed to apply them.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class EntityKind(StrEnum):
    """The synchronized collections."""

    PRODUCT = "product"
    ORDER = "order"
    USER = "user"
    REVIEW = "review"

    @property
    def label(self) -> str:
        """Plural, human readable name (``"products"``)."""
        return f"{self.value}s"


class RefreshSource(StrEnum):
    INITIAL = "initial"
    MANUAL = "manual"
    CHANGE = "change"


class SnapshotUpdate(BaseModel):
    """A complete replacement of one kind's snapshot."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    kind: EntityKind
    source: RefreshSource
    entities: tuple[Any, ...] = Field(default_factory=tuple, description="Canonical entities, in fetch order")
    observed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @field_validator("observed_at")
    @classmethod
    def _ensure_tz_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value
