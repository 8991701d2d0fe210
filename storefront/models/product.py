# storefront/models/product.py
import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class Product(SQLModel, table=True):
    """
    Catalog entry, as far as the cart needs it.

    The cart reads:
      - price / one_time_price to snapshot a line's unit price
      - title, description, image for the expanded cart view
    """

    __tablename__ = "products"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    title: str = Field(
        max_length=255,
        index=True,
        description="Display title of the product",
    )

    description: str | None = Field(
        default=None,
        description="Optional long description / HTML",
    )

    image: str | None = Field(
        default=None,
        description="Main image URL",
    )

    price: float = Field(
        ge=0,
        description="Regular unit price",
    )

    one_time_price: float | None = Field(
        default=None,
        ge=0,
        description="One-time purchase price; preferred over `price` when set",
    )

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )

    @property
    def catalog_price(self) -> float:
        """Price a new cart line is snapshotted at."""
        if self.one_time_price:
            return self.one_time_price
        return self.price
