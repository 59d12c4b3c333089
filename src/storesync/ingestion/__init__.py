"""Ingestion layer.

This package turns raw backend rows into canonical entities before they
reach the state store.
"""

__all__: list[str] = []
