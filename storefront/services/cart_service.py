# storefront/services/cart_service.py
import logging
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from storefront.core.errors import InvalidRequest, NotFound, Unauthenticated
from storefront.models.cart import Cart, CartLine
from storefront.models.product import Product
from storefront.repositories.cart_repo import CartRepository
from storefront.repositories.product_repo import ProductRepository
from storefront.schemas.cart import (
    CartAddRequest,
    CartDetailRead,
    CartLineDetail,
    CartLineRead,
    CartRead,
    CartRemoveRequest,
    MAX_LINE_QUANTITY,
    ProductSummary,
)

logger = logging.getLogger("storefront.cart")


class OwnerLocks:
    """
    One mutex per cart owner.

    Serialises load-mutate-save sequences for the same owner inside this
    process. Across processes the row lock taken by
    `CartRepository.get_for_owner(..., for_update=True)` does the same job.

    An owner's entry lives only while some caller holds or waits for it.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[uuid.UUID, threading.Lock] = {}
        self._users: dict[uuid.UUID, int] = {}

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    @contextmanager
    def hold(self, owner_id: uuid.UUID) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(owner_id, threading.Lock())
            self._users[owner_id] = self._users.get(owner_id, 0) + 1
        try:
            with lock:
                yield
        finally:
            with self._guard:
                self._users[owner_id] -= 1
                if not self._users[owner_id]:
                    del self._users[owner_id]
                    del self._locks[owner_id]


class CartService:
    """
    Business logic for the cart aggregate.

    Responsibilities:
      - find-or-create the single cart of an owner
      - merge additions of the same product into one line
      - snapshot unit_price from the catalog when a line is created
      - keep total == sum(quantity * unit_price) after every mutation
      - shape cart projections for the HTTP layer
    """

    def __init__(
        self,
        cart_repo: CartRepository,
        product_repo: ProductRepository,
        locks: OwnerLocks | None = None,
    ):
        self.cart_repo = cart_repo
        self.product_repo = product_repo
        self.locks = locks or OwnerLocks()

    # ---- internal helpers ----

    @staticmethod
    def _require_owner(owner_id: uuid.UUID | None) -> uuid.UUID:
        if owner_id is None:
            raise Unauthenticated("User not authenticated")
        return owner_id

    def _get_product(self, session: Session, product_id: uuid.UUID) -> Product:
        product = self.product_repo.get_by_id(session, product_id)
        if not product:
            raise NotFound("Product not found")
        return product

    def _load_or_create(self, session: Session, owner_id: uuid.UUID) -> Cart:
        """
        Return the owner's cart locked for update, creating it on first use.

        If another worker creates the cart between our read and our insert,
        the unique owner_id constraint rejects the insert and we re-read
        the winner's cart instead.
        """
        cart = self.cart_repo.get_for_owner(session, owner_id, for_update=True)
        if cart is not None:
            return cart

        try:
            cart = self.cart_repo.create(
                session,
                Cart(owner_id=owner_id, total=0.0, status="active"),
            )
        except IntegrityError:
            session.rollback()
            cart = self.cart_repo.get_for_owner(session, owner_id, for_update=True)
            if cart is None:
                raise
            return cart

        logger.info(
            "cart.created",
            extra={
                "event": "cart.created",
                "cart_id": str(cart.id),
                "owner_id": str(owner_id),
            },
        )
        return cart

    @staticmethod
    def _find_line(cart: Cart, product_id: uuid.UUID) -> CartLine | None:
        for line in cart.items:
            if line.product_id == product_id:
                return line
        return None

    @staticmethod
    def _next_position(cart: Cart) -> int:
        return max((line.position for line in cart.items), default=-1) + 1

    def _backfill_prices(
        self,
        session: Session,
        cart: Cart,
        known: dict[uuid.UUID, Product],
    ) -> None:
        """
        Give every line without a unit_price the price of its own product.

        Lines whose product no longer exists get 0.0.
        """
        missing = [line for line in cart.items if line.unit_price is None]
        if not missing:
            return

        products = dict(known)
        to_fetch = {line.product_id for line in missing} - products.keys()
        products.update(self.product_repo.get_many(session, to_fetch))

        for line in missing:
            product = products.get(line.product_id)
            line.unit_price = product.catalog_price if product else 0.0
            logger.warning(
                "cart.price_backfilled",
                extra={
                    "event": "cart.price_backfilled",
                    "cart_id": str(cart.id),
                    "product_id": str(line.product_id),
                    "unit_price": line.unit_price,
                    "product_missing": product is None,
                },
            )

    @staticmethod
    def _recompute_total(cart: Cart) -> None:
        total = 0.0
        for line in cart.items:
            total += line.quantity * (line.unit_price or 0.0)
        # currency precision
        cart.total = round(total, 2)
        cart.updated_at = datetime.now(timezone.utc)

    @staticmethod
    def _to_read(cart: Cart) -> CartRead:
        return CartRead(
            id=cart.id,
            owner=cart.owner_id,
            total=cart.total,
            status=cart.status,
            created_at=cart.created_at,
            updated_at=cart.updated_at,
            items=[
                CartLineRead(
                    product_id=line.product_id,
                    quantity=line.quantity,
                    unit_price=line.unit_price or 0.0,
                )
                for line in cart.items
            ],
        )

    @staticmethod
    def _to_detail(cart: Cart, products: dict[uuid.UUID, Product]) -> CartDetailRead:
        items: list[CartLineDetail] = []
        for line in cart.items:
            product = products.get(line.product_id)
            summary = None
            if product is not None:
                summary = ProductSummary(
                    id=product.id,
                    title=product.title,
                    price=product.price,
                    description=product.description,
                    image=product.image,
                )
            items.append(
                CartLineDetail(
                    product=summary,
                    quantity=line.quantity,
                    unit_price=line.unit_price or 0.0,
                )
            )

        return CartDetailRead(
            id=cart.id,
            owner=cart.owner_id,
            total=cart.total,
            status=cart.status,
            created_at=cart.created_at,
            updated_at=cart.updated_at,
            items=items,
        )

    # ---- public operations ----

    def add_item(
        self,
        session: Session,
        owner_id: uuid.UUID | None,
        payload: CartAddRequest,
    ) -> CartRead:
        """
        Add a product to the owner's cart.

        Rules:
          - product must exist in the catalog
          - the cart is created on first use
          - an existing line for the product accumulates quantity
          - a new line snapshots the catalog price
          - quantity missing or 0 means 1
          - a line never holds more than MAX_LINE_QUANTITY units
        """
        owner_id = self._require_owner(owner_id)
        quantity = payload.quantity or 1
        product = self._get_product(session, payload.product_id)

        with self.locks.hold(owner_id):
            cart = self._load_or_create(session, owner_id)

            line = self._find_line(cart, product.id)
            if line is not None:
                if line.quantity + quantity > MAX_LINE_QUANTITY:
                    raise InvalidRequest(
                        f"Quantity cannot exceed {MAX_LINE_QUANTITY} per product"
                    )
                line.quantity += quantity
                event = "cart.item_updated"
            else:
                line = CartLine(
                    product_id=product.id,
                    quantity=quantity,
                    unit_price=product.catalog_price,
                    position=self._next_position(cart),
                )
                cart.items.append(line)
                event = "cart.item_added"

            self._backfill_prices(session, cart, known={product.id: product})
            self._recompute_total(cart)
            line_quantity = line.quantity
            cart = self.cart_repo.save(session, cart)

        logger.info(
            event,
            extra={
                "event": event,
                "cart_id": str(cart.id),
                "owner_id": str(owner_id),
                "product_id": str(product.id),
                "quantity": line_quantity,
                "total": cart.total,
            },
        )
        return self._to_read(cart)

    def get_cart(
        self,
        session: Session,
        owner_id: uuid.UUID | None,
    ) -> CartDetailRead | None:
        """
        Return the owner's cart with each line expanded to a product
        summary, or None if the owner has no cart yet.
        """
        owner_id = self._require_owner(owner_id)
        cart = self.cart_repo.get_for_owner(session, owner_id)
        if cart is None:
            return None

        products = self.product_repo.get_many(
            session, (line.product_id for line in cart.items)
        )
        return self._to_detail(cart, products)

    def remove_item(
        self,
        session: Session,
        owner_id: uuid.UUID | None,
        payload: CartRemoveRequest,
    ) -> CartRead:
        """
        Remove a product line from the owner's cart.

        - 404 if the owner has no cart.
        - 404 if the product is not in the cart; the cart is left as is.
        """
        owner_id = self._require_owner(owner_id)

        with self.locks.hold(owner_id):
            cart = self.cart_repo.get_for_owner(session, owner_id, for_update=True)
            if cart is None:
                raise NotFound("Cart not found")

            line = self._find_line(cart, payload.product_id)
            if line is None:
                raise NotFound("Product not found in cart")

            cart.items.remove(line)
            self._recompute_total(cart)
            cart = self.cart_repo.save(session, cart)

        logger.info(
            "cart.item_removed",
            extra={
                "event": "cart.item_removed",
                "cart_id": str(cart.id),
                "owner_id": str(owner_id),
                "product_id": str(payload.product_id),
                "total": cart.total,
            },
        )
        return self._to_read(cart)
