# storefront/schemas/cart.py
"""
Wire models for the cart endpoints.

Field names are snake_case in Python and camelCase on the wire
(`product_id` <-> `productId`); both spellings are accepted on input.
"""
import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

CartStatus = Literal["active"]

# Upper bound for one line, both per request and accumulated
MAX_LINE_QUANTITY = 10_000


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---- Requests ----


class CartAddRequest(CamelModel):
    """
    Payload for adding a product to the cart.

    quantity is optional; missing or 0 means 1, at most MAX_LINE_QUANTITY.
    """

    model_config = ConfigDict(extra="forbid")

    product_id: uuid.UUID
    quantity: int | None = Field(default=None, ge=0, le=MAX_LINE_QUANTITY)


class CartRemoveRequest(CamelModel):
    """
    Payload for removing a product line from the cart.
    """

    model_config = ConfigDict(extra="forbid")

    product_id: uuid.UUID


# ---- Projections ----


class CartLineRead(CamelModel):
    product_id: uuid.UUID
    quantity: int
    unit_price: float


class ProductSummary(CamelModel):
    """
    Read-only slice of the catalog shown inside an expanded cart.
    """

    id: uuid.UUID
    title: str
    price: float
    description: str | None = None
    image: str | None = None


class CartLineDetail(CamelModel):
    # None when the product was removed from the catalog
    product: ProductSummary | None
    quantity: int
    unit_price: float


class CartBase(CamelModel):
    id: uuid.UUID
    owner: uuid.UUID
    total: float
    status: CartStatus
    created_at: datetime
    updated_at: datetime


class CartRead(CartBase):
    items: list[CartLineRead]


class CartDetailRead(CartBase):
    items: list[CartLineDetail]


# ---- Envelopes ----


class CartEnvelope(CamelModel):
    success: bool = True
    message: str
    cart: CartRead
    username: str


class CartDetailEnvelope(CamelModel):
    success: bool = True
    message: str
    cart: CartDetailRead
    username: str
