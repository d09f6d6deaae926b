"""Tests for catalog reads, writes and stock decrements."""

from decimal import Decimal

import pytest

from storefront import cart, catalog, orders
from storefront.models import CartItem
from storefront.schemas import OrderTotals


@pytest.mark.unit
def test_non_strict_decrement_floors_at_zero(db, make_product):
    product = make_product(stock=2)

    assert catalog.decrement_stock(db, product.id, 5) is True

    assert catalog.get_stock(db, product.id) == 0


@pytest.mark.unit
def test_strict_decrement_refuses_partial_take(db, make_product):
    product = make_product(stock=2)

    assert catalog.decrement_stock(db, product.id, 3, strict=True) is False
    assert catalog.get_stock(db, product.id) == 2

    assert catalog.decrement_stock(db, product.id, 2, strict=True) is True
    assert catalog.get_stock(db, product.id) == 0


@pytest.mark.unit
def test_decrement_unknown_product(db):
    assert catalog.decrement_stock(db, 404, 1, strict=True) is False


@pytest.mark.unit
@pytest.mark.parametrize("quantity", [0, -1])
def test_decrement_requires_positive_quantity(db, make_product, quantity):
    product = make_product()

    with pytest.raises(ValueError):
        catalog.decrement_stock(db, product.id, quantity)


@pytest.mark.unit
def test_create_product_rounds_price(db):
    product = catalog.create_product(db, {"name": "  Lamp ", "price": "19.999", "stock": 3})

    assert product.name == "Lamp"
    assert product.price == Decimal("20.00")


@pytest.mark.unit
def test_create_product_requires_name(db):
    with pytest.raises(ValueError):
        catalog.create_product(db, {"name": "   ", "price": "1.00", "stock": 1})


@pytest.mark.unit
def test_update_product_ignores_missing_fields(db, make_product):
    product = make_product(name="Widget", price="10.00", stock=5)

    updated = catalog.update_product(db, product.id, {"price": "12.5", "name": None})

    assert updated.name == "Widget"
    assert updated.price == Decimal("12.50")
    assert updated.stock == 5


@pytest.mark.unit
def test_update_unknown_product(db):
    assert catalog.update_product(db, 404, {"stock": 1}) is None


@pytest.mark.unit
def test_search_is_case_insensitive(db, make_product):
    make_product(name="Red Mug")
    make_product(name="Blue Plate")
    make_product(name="red pen")

    names = [p.name for p in catalog.get_products(db, search="RED")]

    assert names == ["Red Mug", "red pen"]


@pytest.mark.unit
def test_delete_product_drops_cart_lines_but_keeps_order_history(db, customer, make_product):
    product = make_product(name="Widget", price="10.00")
    cart.add_item(db, customer.id, product.id, 1)
    order_id = orders.create_order(
        db,
        user_id=customer.id,
        invoice_number="INV-1",
        totals=OrderTotals(subtotal="10.00", tax_amount="0.90", total="10.90"),
    )
    orders.create_order_lines(
        db, order_id, [{"product_id": product.id, "name": "Widget", "price": "10.00", "quantity": 1}]
    )
    db.commit()

    catalog.delete_product(db, product.id)

    assert catalog.get_product(db, product.id) is None
    assert db.query(CartItem).count() == 0
    lines = orders.get_order_lines(db, order_id)
    assert [(line.product_name, line.unit_price) for line in lines] == [("Widget", Decimal("10.00"))]


@pytest.mark.unit
@pytest.mark.parametrize("price", ["1e30", "-1", "NaN", "abc"])
def test_create_product_rejects_prices_that_cannot_be_stored(db, price):
    with pytest.raises(ValueError):
        catalog.create_product(db, {"name": "Lamp", "price": price, "stock": 1})

    assert catalog.get_products(db) == []


@pytest.mark.unit
def test_update_product_rejects_price_too_large(db, make_product):
    product = make_product(price="10.00")

    with pytest.raises(ValueError):
        catalog.update_product(db, product.id, {"price": "1e30"})

    db.expire_all()
    assert catalog.get_product(db, product.id).price == Decimal("10.00")
