# storefront/models/user.py
import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class User(SQLModel, table=True):
    """
    Persistent user profile.

    Identity:
      - id: MUST match the access token's "sub" claim

    Credentials are not stored here; the identity provider that issues
    the tokens owns them. We only mirror identity and display name.
    """

    __tablename__ = "users"

    id: uuid.UUID = Field(
        primary_key=True,
        index=True,
        description="Matches the token 'sub' claim",
    )

    email: str = Field(
        unique=True,
        index=True,
        description="Email from the access token",
    )

    # Display name, echoed back as `username` in cart responses
    full_name: str = Field(
        max_length=100,
        description="Customer display name; first part of email by default",
    )

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )
