"""Helpers for safe debug logging.

Raw backend rows carry credentials (API keys in headers) and customer
contact details (emails, phone numbers, shipping addresses). Everything
that goes to a DEBUG log passes through :func:`redact_for_log` first.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

_SECRET_KEYS: frozenset[str] = frozenset(
    {
        "apikey",
        "authorization",
        "password",
        "token",
        "accesstoken",
        "refreshtoken",
        "cookie",
        "paymentscreenshot",
    }
)

# Customer contact fields: shown with a short prefix so rows stay correlatable.
_PERSONAL_KEYS: frozenset[str] = frozenset(
    {
        "email",
        "useremail",
        "phone",
        "phonenumber",
        "address",
        "shippingaddress",
    }
)


def _key_token(key: str) -> str:
    return key.replace("_", "").replace("-", "").lower()


def _mask(value: Any) -> str:
    text = str(value)
    if len(text) <= 2:
        return "<masked>"
    return f"{text[:2]}…<masked>"


def redact_for_log(value: Any, *, max_string: int = 256, _depth: int = 0) -> Any:
    """Return a redacted copy of *value* suitable for debug logs."""
    if _depth > 20:
        return "<max-depth>"

    if value is None or isinstance(value, (bool, int, float)):
        return value

    if isinstance(value, str):
        if len(value) > max_string:
            return f"{value[:max_string]}…<truncated>"
        return value

    if isinstance(value, bytes):
        return f"<bytes:{len(value)}b>"

    if isinstance(value, Mapping):
        redacted: dict[str, Any] = {}
        for k, v in value.items():
            key = str(k)
            token = _key_token(key)
            if token in _SECRET_KEYS:
                redacted[key] = "<redacted>"
            elif token in _PERSONAL_KEYS and isinstance(v, str) and v:
                redacted[key] = _mask(v)
            else:
                redacted[key] = redact_for_log(v, max_string=max_string, _depth=_depth + 1)
        return redacted

    if isinstance(value, Sequence):
        return [redact_for_log(v, max_string=max_string, _depth=_depth + 1) for v in value]

    return repr(value)
