# storefront/repositories/product_repo.py
import uuid
from typing import Iterable

from sqlmodel import Session, select

from storefront.models.product import Product


class ProductRepository:
    """
    Read access to the product catalog.

    - Pure DB operations (queries only).
    - No FastAPI, no business logic.
    """

    def get_by_id(self, session: Session, product_id: uuid.UUID) -> Product | None:
        return session.get(Product, product_id)

    def get_many(
        self,
        session: Session,
        product_ids: Iterable[uuid.UUID],
    ) -> dict[uuid.UUID, Product]:
        """
        Load several products at once, keyed by id.
        Missing ids are simply absent from the result.
        """
        ids = list(set(product_ids))
        if not ids:
            return {}
        stmt = select(Product).where(Product.id.in_(ids))
        return {p.id: p for p in session.exec(stmt).all()}
