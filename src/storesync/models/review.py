"""Review model."""

from __future__ import annotations

from pydantic import AliasChoices, Field

from storesync.models._base import CanonicalModel, Count, Flag, OptionalText, Text, Timestamp


class Review(CanonicalModel):
    """Customer feedback on a product or on the shop's service."""

    product_id: OptionalText = Field(default=None, validation_alias=AliasChoices("product_id", "productId"))
    product_title: Text = Field(default="", validation_alias=AliasChoices("product_title", "productTitle"))
    user_id: OptionalText = Field(default=None, validation_alias=AliasChoices("user_id", "userId"))
    user_name: Text = Field(default="Anonymous", validation_alias=AliasChoices("user_name", "userName", "name"))
    rating: Count = 0
    comment: Text = Field(default="", validation_alias=AliasChoices("comment", "review"))
    helpful_count: Count = Field(default=0, validation_alias=AliasChoices("helpful_count", "helpfulCount"))
    review_type: Text = Field(default="product", validation_alias=AliasChoices("review_type", "reviewType"))
    approved: Flag = False
    created_at: Timestamp = Field(
        default=None,
        validation_alias=AliasChoices("created_at", "createdAt", "timestamp"),
    )
