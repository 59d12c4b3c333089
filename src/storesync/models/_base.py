"""Base model for canonical storefront entities.

Every canonical entity inherits from :class:`CanonicalModel` which
provides:

* A ``model_validator(mode="before")`` that drops ``None`` values, so
  a field's ``AliasChoices`` falls through to the next spelling the way
  the storefront's mixed backends expect.
* A ``raw`` dict that captures the original record.
* Frozen instances and name-or-alias population, which is what makes
  re-normalizing a canonical entity (or its ``model_dump()``) a no-op.

Each field's ``AliasChoices`` *is* its precedence table: canonical
(new-style, snake_case) name first, legacy camelCase name second,
nested metadata (``AliasPath``) last, then the field default.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, ClassVar

from pydantic import AliasChoices, BaseModel, BeforeValidator, ConfigDict, Field, field_validator, model_validator

from storesync.ingestion.normalize import drop_none, is_truthy_flag, parse_timestamp, safe_float, safe_int, safe_str

Timestamp = Annotated[datetime | None, BeforeValidator(parse_timestamp)]
"""Annotated type that coerces ISO strings, epoch numbers and Firestore stamps to UTC datetimes."""


def _coerce_str(value: Any) -> str:
    return safe_str(value) or ""


def _coerce_float(value: Any) -> float:
    return safe_float(value) or 0.0


def _coerce_int(value: Any) -> int:
    return safe_int(value) or 0


Text = Annotated[str, BeforeValidator(_coerce_str)]
Number = Annotated[float, BeforeValidator(_coerce_float)]
Count = Annotated[int, BeforeValidator(_coerce_int)]
OptionalText = Annotated[str | None, BeforeValidator(safe_str)]
Flag = Annotated[bool, BeforeValidator(is_truthy_flag)]


class CanonicalModel(BaseModel):
    """Base for canonical entities (products, orders, users, reviews)."""

    SCHEMA_VERSION: ClassVar[int] = 1

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
    )

    id: str = Field(validation_alias=AliasChoices("id", "uid"))
    """Stable record identifier (document id / primary key)."""
    created_at: Timestamp = None
    """Creation time (UTC)."""

    raw: dict[str, Any] = Field(default_factory=dict)
    """Original backend record."""

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(int(value))
        return value

    @model_validator(mode="before")
    @classmethod
    def _clean_values(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        working = dict(values)
        # A canonical dump already carries ``raw``; keep it so re-normalizing is stable.
        raw = working.pop("raw", None)
        cleaned = drop_none(working)
        cleaned["raw"] = raw if isinstance(raw, dict) else dict(values)
        return cleaned
