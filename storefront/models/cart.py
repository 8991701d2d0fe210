# storefront/models/cart.py
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import UniqueConstraint
from sqlmodel import SQLModel, Field, Relationship


class Cart(SQLModel, table=True):
    """
    Shopping cart of one user.

    Invariants:
      - at most one cart per owner (unique owner_id)
      - total == sum(line.quantity * line.unit_price), recomputed on
        every mutation by the service
    """

    __tablename__ = "carts"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    owner_id: uuid.UUID = Field(
        foreign_key="users.id",
        unique=True,
        index=True,
    )

    total: float = Field(
        default=0.0,
        description="Derived: sum of quantity * unit_price over items",
    )

    # active (no other lifecycle states yet)
    status: str = Field(
        default="active",
        description="Cart lifecycle status",
    )

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )

    items: list["CartLine"] = Relationship(
        back_populates="cart",
        sa_relationship_kwargs={
            "order_by": "CartLine.position",
            "cascade": "all, delete-orphan",
        },
    )


class CartLine(SQLModel, table=True):
    """
    One product inside a cart.
    A cart cannot hold 2 lines for the same product.
    """

    __tablename__ = "cart_lines"
    __table_args__ = (
        UniqueConstraint("cart_id", "product_id", name="uq_cart_lines_cart_product"),
    )

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    cart_id: uuid.UUID = Field(
        foreign_key="carts.id",
        index=True,
    )

    product_id: uuid.UUID = Field(
        foreign_key="products.id",
        index=True,
    )

    quantity: int = Field(
        gt=0,
        description="Must be >= 1",
    )

    # None only until backfilled by the service
    unit_price: float | None = Field(
        default=None,
        description="Catalog price when the line was created",
    )

    position: int = Field(
        default=0,
        description="Insertion order within the cart",
    )

    cart: Optional[Cart] = Relationship(back_populates="items")
