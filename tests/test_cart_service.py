# tests/test_cart_service.py
import uuid

import pytest
from sqlmodel import select

from storefront.core.errors import InvalidRequest, NotFound, Unauthenticated
from storefront.models.cart import Cart, CartLine
from storefront.models.user import User
from storefront.schemas.cart import CartAddRequest, CartRemoveRequest


def add(service, session, owner_id, product, quantity=None):
    payload = CartAddRequest(product_id=product.id, quantity=quantity)
    return service.add_item(session, owner_id, payload)


def remove(service, session, owner_id, product):
    return service.remove_item(
        session, owner_id, CartRemoveRequest(product_id=product.id)
    )


def lines(cart):
    return [(item.product_id, item.quantity, item.unit_price) for item in cart.items]


def test_first_add_creates_one_cart_with_one_line(service, session, user, make_product):
    product = make_product(price=100)

    cart = add(service, session, user.id, product, quantity=2)

    assert cart.owner == user.id
    assert cart.status == "active"
    assert lines(cart) == [(product.id, 2, 100)]
    assert cart.total == 200
    assert len(session.exec(select(Cart)).all()) == 1


def test_new_line_snapshots_catalog_price(service, session, user, make_product):
    product = make_product(price=40)

    add(service, session, user.id, product)
    product.price = 55
    session.add(product)
    session.commit()
    cart = add(service, session, user.id, product)

    # price is not refreshed on later additions
    assert lines(cart) == [(product.id, 2, 40)]
    assert cart.total == 80


def test_one_time_price_is_preferred(service, session, user, make_product):
    product = make_product(price=100, one_time_price=80)

    cart = add(service, session, user.id, product, quantity=1)

    assert cart.items[0].unit_price == 80
    assert cart.total == 80


def test_same_product_accumulates_quantity(service, session, user, make_product):
    product = make_product(price=25)

    add(service, session, user.id, product, quantity=2)
    cart = add(service, session, user.id, product, quantity=3)

    assert lines(cart) == [(product.id, 5, 25)]
    assert cart.total == 125


@pytest.mark.parametrize("quantity", [None, 0])
def test_missing_or_zero_quantity_means_one(service, session, user, make_product, quantity):
    product = make_product(price=10)

    cart = add(service, session, user.id, product, quantity=quantity)

    assert cart.items[0].quantity == 1
    assert cart.total == 10


def test_unknown_product_is_not_found_and_creates_nothing(service, session, user):
    payload = CartAddRequest(product_id=uuid.uuid4(), quantity=1)

    with pytest.raises(NotFound, match="Product not found"):
        service.add_item(session, user.id, payload)

    assert session.exec(select(Cart)).all() == []


def test_operations_require_an_owner(service, session, make_product):
    product = make_product()

    with pytest.raises(Unauthenticated):
        add(service, session, None, product)
    with pytest.raises(Unauthenticated):
        service.get_cart(session, None)
    with pytest.raises(Unauthenticated):
        remove(service, session, None, product)


def test_remove_drops_line_and_recomputes_total(service, session, user, make_product):
    bread = make_product(price=100)
    jam = make_product(price=50, title="Jam")
    add(service, session, user.id, bread, quantity=2)
    add(service, session, user.id, jam, quantity=1)

    cart = remove(service, session, user.id, bread)

    assert lines(cart) == [(jam.id, 1, 50)]
    assert cart.total == 50


def test_remove_absent_product_leaves_cart_unchanged(service, session, user, make_product):
    bread = make_product(price=100)
    jam = make_product(price=50, title="Jam")
    add(service, session, user.id, bread, quantity=2)
    before = service.get_cart(session, user.id)

    with pytest.raises(NotFound, match="Product not found in cart"):
        remove(service, session, user.id, jam)
    session.rollback()

    after = service.get_cart(session, user.id)
    assert after.total == before.total == 200
    assert [(i.quantity, i.unit_price) for i in after.items] == [(2, 100)]


def test_remove_without_cart_is_not_found(service, session, user, make_product):
    product = make_product()

    with pytest.raises(NotFound, match="Cart not found"):
        remove(service, session, user.id, product)


def test_remove_then_readd_restores_total(service, session, user, make_product):
    bread = make_product(price=12.5)
    jam = make_product(price=4.25, title="Jam")
    add(service, session, user.id, bread, quantity=3)
    before = add(service, session, user.id, jam, quantity=2).total

    remove(service, session, user.id, jam)
    after = add(service, session, user.id, jam, quantity=2).total

    assert after == before == 46.0


def test_total_stays_at_currency_precision(service, session, user, make_product):
    a = make_product(price=19.99)
    b = make_product(price=0.1, title="Sticker")

    add(service, session, user.id, a, quantity=3)
    cart = add(service, session, user.id, b, quantity=3)

    assert cart.total == 60.27
    assert cart.total == round(sum(i.quantity * i.unit_price for i in cart.items), 2)


def test_backfill_uses_each_lines_own_product(service, session, user, make_product):
    butter = make_product(price=30, title="Butter")
    flour = make_product(price=50, title="Flour")
    cart = Cart(owner_id=user.id)
    cart.items.append(
        CartLine(product_id=butter.id, quantity=2, unit_price=None, position=0)
    )
    session.add(cart)
    session.commit()

    result = add(service, session, user.id, flour, quantity=1)

    assert lines(result) == [(butter.id, 2, 30), (flour.id, 1, 50)]
    assert result.total == 110


def test_backfill_for_vanished_product_is_zero(service, session, user, make_product):
    flour = make_product(price=50, title="Flour")
    gone = uuid.uuid4()
    cart = Cart(owner_id=user.id)
    cart.items.append(CartLine(product_id=gone, quantity=4, unit_price=None, position=0))
    session.add(cart)
    session.commit()

    result = add(service, session, user.id, flour, quantity=1)

    assert lines(result) == [(gone, 4, 0.0), (flour.id, 1, 50)]
    assert result.total == 50


def test_get_cart_expands_product_details(service, session, user, make_product):
    product = make_product(
        price=100,
        title="Croissant",
        description="Butter croissant",
        image="https://cdn.example.com/croissant.png",
    )
    add(service, session, user.id, product, quantity=2)

    cart = service.get_cart(session, user.id)

    assert cart.total == 200
    [line] = cart.items
    assert line.quantity == 2
    assert line.unit_price == 100
    assert line.product.id == product.id
    assert line.product.title == "Croissant"
    assert line.product.description == "Butter croissant"
    assert line.product.image == "https://cdn.example.com/croissant.png"


def test_get_cart_without_cart_returns_none(service, session, user):
    assert service.get_cart(session, user.id) is None


def test_walkthrough(service, session, user, make_product):
    p1 = make_product(price=100, title="P1")
    p2 = make_product(price=50, title="P2")

    cart = add(service, session, user.id, p1, quantity=2)
    assert lines(cart) == [(p1.id, 2, 100)]
    assert cart.total == 200

    cart = add(service, session, user.id, p1, quantity=3)
    assert lines(cart) == [(p1.id, 5, 100)]
    assert cart.total == 500

    cart = add(service, session, user.id, p2, quantity=1)
    assert lines(cart) == [(p1.id, 5, 100), (p2.id, 1, 50)]
    assert cart.total == 550

    cart = remove(service, session, user.id, p1)
    assert lines(cart) == [(p2.id, 1, 50)]
    assert cart.total == 50


def test_line_quantity_is_capped(service, session, user, make_product):
    product = make_product(price=1)
    add(service, session, user.id, product, quantity=9_999)

    with pytest.raises(InvalidRequest, match="Quantity cannot exceed 10000"):
        add(service, session, user.id, product, quantity=2)
    session.rollback()

    cart = add(service, session, user.id, product, quantity=1)
    assert lines(cart) == [(product.id, 10_000, 1)]


def test_owner_locks_are_released_after_use(service, session, make_product):
    product = make_product(price=3)
    owners = []
    for n in range(5):
        owner = User(id=uuid.uuid4(), email=f"owner{n}@example.com", full_name=f"Owner {n}")
        session.add(owner)
        owners.append(owner)
    session.commit()

    for owner in owners:
        add(service, session, owner.id, product)
        remove(service, session, owner.id, product)
    with pytest.raises(NotFound):
        remove(service, session, owners[0].id, product)

    assert len(service.locks) == 0
