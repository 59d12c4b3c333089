"""Map raw backend records to canonical entities.

Records arrive with mixed naming conventions (snake_case from the current
backend, camelCase from the legacy document store) and optional fields.
The per-kind models in :mod:`storesync.models` hold the alias precedence
tables; this module only picks the model and handles the edges.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from pydantic import ValidationError

from storesync._redact import redact_for_log
from storesync.models import CanonicalModel, Order, Product, Review, User
from storesync.state.events import EntityKind

_logger = logging.getLogger(__name__)

MODEL_BY_KIND: dict[EntityKind, type[CanonicalModel]] = {
    EntityKind.PRODUCT: Product,
    EntityKind.ORDER: Order,
    EntityKind.USER: User,
    EntityKind.REVIEW: Review,
}

_ID_KEYS = ("id", "uid")


def normalize(kind: EntityKind, raw: Mapping[str, Any] | CanonicalModel | None) -> CanonicalModel | None:
    """Normalize one raw record into the canonical model for *kind*.

    ``None`` yields ``None``, as does a record with no identifier. Missing
    fields take the documented defaults; nothing is raised for them.
    Already-canonical input (a model or its ``model_dump()``) comes back
    unchanged.
    """

    if raw is None:
        return None
    model_cls = MODEL_BY_KIND[kind]
    if isinstance(raw, model_cls):
        return raw
    if isinstance(raw, CanonicalModel):
        raw = raw.model_dump()
    if not isinstance(raw, Mapping):
        _logger.debug("Ignoring non-mapping %s record: %r", kind, type(raw).__name__)
        return None
    if all(raw.get(key) in (None, "") for key in _ID_KEYS):
        _logger.debug("Ignoring %s record without identifier: %s", kind, redact_for_log(raw))
        return None
    try:
        return model_cls.model_validate(dict(raw))
    except ValidationError:
        _logger.warning("Could not normalize %s record %s", kind, raw.get("id") or raw.get("uid"), exc_info=True)
        return None


def batch_normalize(kind: EntityKind, items: Any) -> list[CanonicalModel]:
    """Normalize a sequence of records, dropping the ones that yield ``None``."""

    if not isinstance(items, Sequence) or isinstance(items, (str, bytes)):
        return []
    normalized: list[CanonicalModel] = []
    for item in items:
        entity = normalize(kind, item)
        if entity is not None:
            normalized.append(entity)
    return normalized
