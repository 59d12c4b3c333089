"""User model."""

from __future__ import annotations

from pydantic import AliasChoices, AliasPath, Field, model_validator

from storesync.models._base import CanonicalModel, Flag, Text, Timestamp


class User(CanonicalModel):
    """A storefront account as listed in the admin dashboard."""

    email: Text = ""
    name: Text = Field(default="", validation_alias=AliasChoices("name", AliasPath("user_metadata", "name")))
    """Display name; derived from the email local part when absent."""
    role: Text = Field(default="user", validation_alias=AliasChoices("role", AliasPath("user_metadata", "role")))
    created_at: Timestamp = Field(default=None, validation_alias=AliasChoices("created_at", "createdAt"))
    updated_at: Timestamp = Field(default=None, validation_alias=AliasChoices("updated_at", "updatedAt"))
    email_verified: Flag = Field(
        default=False,
        validation_alias=AliasChoices("email_verified", "email_confirmed_at", "emailVerified"),
    )

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @model_validator(mode="after")
    def _fill_display_fields(self) -> User:
        if not self.name:
            local_part = self.email.split("@", 1)[0]
            object.__setattr__(self, "name", local_part or "User")
        if not self.role:
            object.__setattr__(self, "role", "user")
        return self
