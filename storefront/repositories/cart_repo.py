# storefront/repositories/cart_repo.py
import uuid

from sqlmodel import Session, select

from storefront.models.cart import Cart


class CartRepository:
    """
    Data access layer for carts and their lines.

    NOTE:
      - `create` only flushes; the service owns the transaction and
        finishes it through `save`.
    """

    def get_for_owner(
        self,
        session: Session,
        owner_id: uuid.UUID,
        *,
        for_update: bool = False,
    ) -> Cart | None:
        """
        Return the owner's cart, or None.

        With for_update=True the row is locked until the transaction
        ends (no-op on backends without row locks, e.g. SQLite).
        """
        stmt = select(Cart).where(Cart.owner_id == owner_id)
        if for_update:
            stmt = stmt.with_for_update()
        return session.exec(stmt).first()

    def create(self, session: Session, cart: Cart) -> Cart:
        """
        Insert a new cart without committing.

        Raises IntegrityError if another transaction already created a
        cart for the same owner.
        """
        session.add(cart)
        session.flush()
        return cart

    def save(self, session: Session, cart: Cart) -> Cart:
        session.add(cart)
        session.commit()
        session.refresh(cart)
        return cart
