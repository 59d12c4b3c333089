"""Order model."""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, AliasPath, Field, field_validator

from storesync.models._base import CanonicalModel, OptionalText, Text, Timestamp


class Order(CanonicalModel):
    """A placed order.

    Contact fields fall back to the nested ``address_info`` mapping that
    older checkouts stored instead of top-level columns.
    """

    user_id: OptionalText = Field(default=None, validation_alias=AliasChoices("user_id", "userId", "userid"))
    cart_items: list[dict[str, Any]] = Field(
        default_factory=list,
        validation_alias=AliasChoices("cart_items", "cartItems"),
    )
    address_info: dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("address_info", "addressInfo"),
    )
    payment_method: Text = Field(default="", validation_alias=AliasChoices("payment_method", "paymentMethod"))
    payment_status: Text = Field(default="", validation_alias=AliasChoices("payment_status", "paymentStatus"))
    status: Text = ""
    email: Text = ""
    address: Text = Field(
        default="",
        validation_alias=AliasChoices(
            "address",
            AliasPath("address_info", "address"),
            AliasPath("addressInfo", "address"),
            AliasPath("address_info", "shippingAddress"),
            AliasPath("addressInfo", "shippingAddress"),
        ),
    )
    shipping_address: Text = Field(
        default="",
        validation_alias=AliasChoices(
            "shipping_address",
            "shippingAddress",
            AliasPath("address_info", "shippingAddress"),
            AliasPath("addressInfo", "shippingAddress"),
        ),
    )
    phone_number: Text = Field(
        default="",
        validation_alias=AliasChoices(
            "phone_number",
            "phoneNumber",
            AliasPath("address_info", "phoneNumber"),
            AliasPath("addressInfo", "phoneNumber"),
            AliasPath("address_info", "phone"),
            AliasPath("addressInfo", "phone"),
        ),
    )
    created_at: Timestamp = Field(default=None, validation_alias=AliasChoices("created_at", "date", "time"))

    @field_validator("cart_items", mode="before")
    @classmethod
    def _items_list(cls, value: Any) -> Any:
        if not isinstance(value, list):
            return []
        return [item for item in value if isinstance(item, dict)]

    @field_validator("address_info", mode="before")
    @classmethod
    def _address_mapping(cls, value: Any) -> Any:
        return value if isinstance(value, dict) else {}

    @property
    def item_count(self) -> int:
        """Number of line items in the order."""
        return len(self.cart_items)
