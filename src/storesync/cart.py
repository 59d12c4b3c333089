"""Authentication-gated cart mutations.

A guest who taps "add to cart" is asked to log in first. The attempted
action is parked (only the latest one) and replayed once after login.
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Callable, Mapping
from typing import Any

from pydantic import BaseModel

_logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class PendingAction:
    """A captured mutation waiting for its precondition."""

    apply: Callable[[], None]
    payload: Any = None
    label: str = ""


@dataclasses.dataclass(frozen=True)
class GateResult:
    applied: bool


class ActionGate:
    """Apply an action now if the precondition holds, otherwise park it.

    At most one action is parked; gating a new one replaces it.
    """

    def __init__(self) -> None:
        self._pending: PendingAction | None = None

    @property
    def pending(self) -> PendingAction | None:
        return self._pending

    def guarded(self, action: PendingAction, is_authenticated: bool) -> GateResult:
        if is_authenticated:
            action.apply()
            return GateResult(applied=True)
        if self._pending is not None:
            _logger.debug("Replacing pending action %r with %r", self._pending.label, action.label)
        self._pending = action
        return GateResult(applied=False)

    def replay_pending(self, is_authenticated: bool) -> GateResult:
        """Apply the parked action once. No-op without one or while unauthenticated."""
        action = self._pending
        if action is None or not is_authenticated:
            return GateResult(applied=False)
        self._pending = None
        action.apply()
        return GateResult(applied=True)

    def discard(self) -> None:
        self._pending = None


@dataclasses.dataclass
class CartLine:
    id: str
    quantity: int
    item: Any


def _item_id(item: Any) -> str:
    if isinstance(item, BaseModel):
        value = getattr(item, "id", None)
    elif isinstance(item, Mapping):
        value = item.get("id")
    else:
        value = getattr(item, "id", None)
    if value is None or value == "":
        raise ValueError("cart items need an id")
    return str(value)


class Cart:
    """Line items keyed by product id. No pricing rules live here."""

    def __init__(self) -> None:
        self._lines: dict[str, CartLine] = {}

    @property
    def items(self) -> list[CartLine]:
        return list(self._lines.values())

    def __len__(self) -> int:
        return len(self._lines)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._lines

    def add(self, item: Any, quantity: int = 1) -> None:
        item_id = _item_id(item)
        line = self._lines.get(item_id)
        if line is None:
            self._lines[item_id] = CartLine(id=item_id, quantity=max(1, quantity), item=item)
        else:
            line.quantity += max(1, quantity)

    def remove(self, item_id: str) -> None:
        self._lines.pop(item_id, None)

    def increment(self, item_id: str) -> None:
        line = self._lines.get(item_id)
        if line is not None:
            line.quantity += 1

    def decrement(self, item_id: str) -> None:
        """Lower the quantity; a line never drops below one (use :meth:`remove`)."""
        line = self._lines.get(item_id)
        if line is not None and line.quantity > 1:
            line.quantity -= 1

    def update(self, item_id: str, **changes: Any) -> None:
        line = self._lines.get(item_id)
        if line is None:
            return
        if "quantity" in changes:
            line.quantity = max(1, int(changes.pop("quantity")))
        if changes:
            if isinstance(line.item, BaseModel):
                line.item = line.item.model_copy(update=changes)
            elif isinstance(line.item, Mapping):
                line.item = {**line.item, **changes}

    def clear(self) -> None:
        self._lines.clear()


class CartGate:
    """Cart mutations gated on an authenticated identity.

    ``login_required`` is raised when an add was parked and lowered again
    on replay or :meth:`dismiss`; the UI shows its login prompt from it.
    """

    def __init__(self, cart: Cart, is_authenticated: Callable[[], bool]) -> None:
        self._cart = cart
        self._is_authenticated = is_authenticated
        self._gate = ActionGate()
        self.login_required = False

    @property
    def cart(self) -> Cart:
        return self._cart

    @property
    def pending_item(self) -> Any:
        pending = self._gate.pending
        return pending.payload if pending is not None else None

    def guarded_add(self, item: Any, quantity: int = 1) -> GateResult:
        item_id = _item_id(item)
        action = PendingAction(
            apply=lambda: self._cart.add(item, quantity),
            payload=item,
            label=f"add {item_id}",
        )
        result = self._gate.guarded(action, self._is_authenticated())
        self.login_required = not result.applied
        return result

    def replay_pending(self) -> GateResult:
        result = self._gate.replay_pending(self._is_authenticated())
        if result.applied:
            self.login_required = False
        return result

    def dismiss(self) -> None:
        """Close the login prompt and forget the parked add."""
        self._gate.discard()
        self.login_required = False
