"""Tests for the cart-to-order checkout."""

import re
import threading
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError
from pika.exceptions import AMQPConnectionError

from storefront import cart, catalog, checkout, messaging, orders
from storefront.database import SessionLocal
from storefront.exceptions import EmptyCartError, InsufficientStockError
from storefront.models import CartItem, Order, OrderItem
from storefront.schemas import DEFAULT_ORDER_STATUS


@pytest.mark.unit
def test_checkout_places_order_and_empties_cart(db, customer, make_product):
    product = make_product(name="Widget", price="10.00", stock=5)
    cart.add_item(db, customer.id, product.id, 2)

    summary = checkout.checkout(db, customer.id)

    assert summary.subtotal == Decimal("20.00")
    assert summary.tax_amount == Decimal("1.80")
    assert summary.total == Decimal("21.80")
    assert summary.status == DEFAULT_ORDER_STATUS
    assert summary.invoice_date is not None

    order = db.query(Order).one()
    assert order.user_id == customer.id
    assert order.total == Decimal("21.80")
    assert order.status == "Pending for delivery"

    lines = db.query(OrderItem).all()
    assert [(line.product_name, line.unit_price, line.quantity, line.subtotal) for line in lines] == [
        ("Widget", Decimal("10.00"), 2, Decimal("20.00"))
    ]
    assert cart.get_cart_lines(db, customer.id) == []
    assert catalog.get_stock(db, product.id) == 3


@pytest.mark.unit
def test_empty_cart_checkout_writes_nothing(db, customer):
    with pytest.raises(EmptyCartError):
        checkout.checkout(db, customer.id)

    assert db.query(Order).count() == 0
    assert db.query(OrderItem).count() == 0


@pytest.mark.unit
def test_order_lines_add_up_to_order_totals(db, customer, make_product):
    items = [("Mug", "3.33", 3), ("Pen", "0.50", 1), ("Lamp", "19.99", 2)]
    for name, price, quantity in items:
        product = make_product(name=name, price=price, stock=10)
        cart.add_item(db, customer.id, product.id, quantity)

    summary = checkout.checkout(db, customer.id)

    assert sum(line.subtotal for line in summary.lines) == summary.subtotal
    assert summary.subtotal + summary.tax_amount == summary.total
    assert [line.name for line in summary.lines] == ["Mug", "Pen", "Lamp"]


@pytest.mark.unit
def test_adding_a_line_never_lowers_the_total(db, make_user, make_product):
    mug = make_product(name="Mug", price="3.33", stock=10)
    pen = make_product(name="Pen", price="0.01", stock=10)

    first, second = make_user(), make_user()
    cart.add_item(db, first.id, mug.id, 1)
    cart.add_item(db, second.id, mug.id, 1)
    cart.add_item(db, second.id, pen.id, 1)

    smaller = checkout.checkout(db, first.id)
    larger = checkout.checkout(db, second.id)

    assert larger.total >= smaller.total


@pytest.mark.unit
def test_last_unit_goes_to_the_first_checkout(db, make_user, make_product):
    product = make_product(name="Widget", stock=1)
    first, second = make_user(), make_user()
    # both carts pass the advisory check before either checks out
    cart.add_item(db, first.id, product.id, 1)
    cart.add_item(db, second.id, product.id, 1)

    checkout.checkout(db, first.id)

    with pytest.raises(InsufficientStockError) as exc_info:
        checkout.checkout(db, second.id)

    assert exc_info.value.product_name == "Widget"
    assert exc_info.value.available == 0
    assert catalog.get_stock(db, product.id) == 0
    assert db.query(Order).count() == 1
    assert db.query(Order).one().user_id == first.id
    # the losing cart is left as it was
    assert cart.get_item_quantity(db, second.id, product.id) == 1


@pytest.mark.unit
def test_concurrent_checkouts_never_oversell(db, make_user, make_product):
    product = make_product(name="Widget", stock=1)
    buyers = [make_user() for _ in range(6)]
    for buyer in buyers:
        cart.add_item(db, buyer.id, product.id, 1)

    barrier = threading.Barrier(len(buyers))
    results = []

    def buy(user_id):
        session = SessionLocal()
        try:
            barrier.wait()
            checkout.checkout(session, user_id)
            results.append("ok")
        except InsufficientStockError:
            results.append("sold out")
        finally:
            session.close()

    threads = [threading.Thread(target=buy, args=(buyer.id,)) for buyer in buyers]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sorted(results) == ["ok"] + ["sold out"] * (len(buyers) - 1)
    assert catalog.get_stock(db, product.id) == 0
    assert db.query(Order).count() == 1
    assert db.query(OrderItem).count() == 1


@pytest.mark.unit
def test_failed_line_rolls_back_whole_order(db, customer, make_product):
    plenty = make_product(name="Plenty", stock=10)
    scarce = make_product(name="Scarce", stock=3)
    cart.add_item(db, customer.id, plenty.id, 2)
    cart.add_item(db, customer.id, scarce.id, 3)
    scarce.stock = 1
    db.commit()

    with pytest.raises(InsufficientStockError):
        checkout.checkout(db, customer.id)

    assert db.query(Order).count() == 0
    assert db.query(OrderItem).count() == 0
    assert catalog.get_stock(db, plenty.id) == 10
    assert catalog.get_stock(db, scarce.id) == 1
    assert len(cart.get_cart_lines(db, customer.id)) == 2


@pytest.mark.unit
def test_storage_failure_rolls_back(db, customer, make_product, monkeypatch):
    product = make_product(stock=5)
    cart.add_item(db, customer.id, product.id, 2)

    def failing_clear(*args, **kwargs):
        raise OperationalError("DELETE FROM cart_items", {}, Exception("disk I/O error"))

    monkeypatch.setattr(cart, "clear_cart", failing_clear)

    with pytest.raises(OperationalError):
        checkout.checkout(db, customer.id)

    assert db.query(Order).count() == 0
    assert db.query(OrderItem).count() == 0
    assert catalog.get_stock(db, product.id) == 5
    assert db.query(CartItem).count() == 1


@pytest.mark.unit
def test_checkout_charges_current_price(db, customer, make_product):
    product = make_product(price="10.00", stock=5)
    cart.add_item(db, customer.id, product.id, 1)
    product.price = Decimal("15.00")
    db.commit()

    summary = checkout.checkout(db, customer.id)

    assert summary.lines[0].unit_price == Decimal("15.00")
    assert summary.total == Decimal("16.35")


@pytest.mark.unit
def test_order_snapshot_survives_catalog_changes(db, customer, make_product):
    product = make_product(name="Widget", price="10.00", stock=5)
    cart.add_item(db, customer.id, product.id, 1)
    summary = checkout.checkout(db, customer.id)

    catalog.update_product(db, product.id, {"name": "Gadget", "price": "99.00"})
    catalog.delete_product(db, product.id)

    again = orders.summarize_order(db, orders.get_order(db, summary.order_id))
    assert again.lines[0].name == "Widget"
    assert again.lines[0].unit_price == Decimal("10.00")
    assert again.total == summary.total


@pytest.mark.unit
def test_repeated_checkout_key_returns_the_same_order(db, customer, make_product):
    product = make_product(stock=5)
    cart.add_item(db, customer.id, product.id, 1)

    first = checkout.checkout(db, customer.id, checkout_key="abc-123")
    second = checkout.checkout(db, customer.id, checkout_key="abc-123")

    assert second.order_id == first.order_id
    assert second.invoice_number == first.invoice_number
    assert db.query(Order).count() == 1
    assert catalog.get_stock(db, product.id) == 4


@pytest.mark.unit
def test_checkout_keys_are_scoped_per_user(db, make_user, make_product):
    product = make_product(stock=5)
    first, second = make_user(), make_user()
    cart.add_item(db, first.id, product.id, 1)
    cart.add_item(db, second.id, product.id, 1)

    a = checkout.checkout(db, first.id, checkout_key="same")
    b = checkout.checkout(db, second.id, checkout_key="same")

    assert a.order_id != b.order_id


@pytest.mark.unit
def test_invoice_number_format():
    invoice = checkout.generate_invoice_number()

    assert re.match(r"^INV-\d{13}-[0-9A-F]{6}$", invoice)
    assert invoice != checkout.generate_invoice_number()


@pytest.mark.unit
def test_checkout_publishes_order_placed(db, customer, make_product, monkeypatch):
    published = []
    monkeypatch.setattr(messaging, "EVENTS_ENABLED", True)
    monkeypatch.setattr(messaging, "publish_event", lambda key, payload: published.append((key, payload)))

    product = make_product(stock=5)
    cart.add_item(db, customer.id, product.id, 2)
    summary = checkout.checkout(db, customer.id)

    assert len(published) == 1
    routing_key, payload = published[0]
    assert routing_key == "order.placed"
    assert payload["order_id"] == summary.order_id
    assert payload["invoice_number"] == summary.invoice_number
    assert payload["total"] == 21.8
    assert payload["items"] == [{"product_id": product.id, "quantity": 2}]


@pytest.mark.unit
def test_broker_outage_does_not_undo_the_order(db, customer, make_product, monkeypatch):
    def broken_publish(key, payload):
        raise AMQPConnectionError("connection refused")

    monkeypatch.setattr(messaging, "EVENTS_ENABLED", True)
    monkeypatch.setattr(messaging, "publish_event", broken_publish)

    product = make_product(stock=5)
    cart.add_item(db, customer.id, product.id, 1)

    summary = checkout.checkout(db, customer.id)

    assert orders.get_order(db, summary.order_id) is not None
    assert catalog.get_stock(db, product.id) == 4


@pytest.mark.unit
def test_bad_broker_url_does_not_fail_the_request(monkeypatch):
    def bad_url():
        raise ValueError("malformed amqp url")

    monkeypatch.setattr(messaging, "EVENTS_ENABLED", True)
    monkeypatch.setattr(messaging, "_connect", bad_url)

    assert messaging.notify("order.placed", {"order_id": 1}) is False
