"""Product model."""

from __future__ import annotations

from pydantic import AliasChoices, Field

from storesync.models._base import CanonicalModel, Count, Flag, Number, OptionalText, Text, Timestamp


class Product(CanonicalModel):
    """A catalogue item (subscription, game key, gift card...)."""

    title: Text = ""
    price: Number = 0.0
    description: Text = ""
    category: Text = ""
    category_id: OptionalText = Field(default=None, validation_alias=AliasChoices("category_id", "categoryId"))
    category_color: OptionalText = Field(
        default=None,
        validation_alias=AliasChoices("category_color", "categoryColor"),
    )
    product_image_url: Text = Field(
        default="",
        validation_alias=AliasChoices("product_image_url", "productImageUrl", "image_url"),
    )
    """Primary image; three spellings are in circulation."""
    quantity: Count = 0
    featured: Flag = False
    trending: Flag = False
    created_at: Timestamp = Field(default=None, validation_alias=AliasChoices("created_at", "createdAt", "time"))
    updated_at: Timestamp = Field(default=None, validation_alias=AliasChoices("updated_at", "updatedAt"))
