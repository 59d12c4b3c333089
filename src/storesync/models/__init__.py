"""Canonical entity models."""

from storesync.models._base import CanonicalModel, Timestamp
from storesync.models.order import Order
from storesync.models.product import Product
from storesync.models.review import Review
from storesync.models.user import User

__all__ = [
    "CanonicalModel",
    "Order",
    "Product",
    "Review",
    "Timestamp",
    "User",
]
