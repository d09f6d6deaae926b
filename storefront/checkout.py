"""Cart-to-order checkout.

Turns the user's cart into an order header plus line snapshots, takes the
purchased units out of stock and empties the cart. Steps 4-7 (header,
lines, stock, cart) run in one database transaction: either all of them
are committed or none are.
"""
from __future__ import annotations

import datetime as dt
import logging
import secrets
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import cart, catalog, orders
from .exceptions import EmptyCartError, InsufficientStockError
from .messaging import notify
from .pricing import calculate_totals
from .schemas import OrderSummary

logger = logging.getLogger(__name__)


def generate_invoice_number(now: Optional[dt.datetime] = None) -> str:
    """Time-based invoice number with a random suffix.

    The suffix keeps two checkouts in the same millisecond apart; the
    unique index on orders.invoice_number still backs it up.
    """
    now = now or dt.datetime.now(dt.timezone.utc)
    return f"INV-{int(now.timestamp() * 1000)}-{secrets.token_hex(3).upper()}"


def _existing_checkout(db: Session, user_id: int, checkout_key: Optional[str]) -> Optional[OrderSummary]:
    if not checkout_key:
        return None
    order = orders.get_order_by_checkout_key(db, user_id, checkout_key)
    if order is None:
        return None
    return orders.summarize_order(db, order)


def checkout(db: Session, user_id: int, checkout_key: Optional[str] = None) -> OrderSummary:
    """Place an order from the user's cart.

    checkout_key makes the call idempotent: repeating it returns the order
    the first call created instead of placing a second one.

    Raises EmptyCartError when there is nothing to buy and
    InsufficientStockError when a product no longer has enough stock at
    the moment of sale. Neither leaves anything behind.
    """
    # 0. Replay of an already placed checkout
    replay = _existing_checkout(db, user_id, checkout_key)
    if replay is not None:
        return replay

    # 1-2. Live cart joined with current catalog name/price
    lines = cart.get_cart_lines(db, user_id)
    if not lines:
        raise EmptyCartError()

    # 3. Totals and invoice number
    totals = calculate_totals(lines)
    invoice_number = generate_invoice_number()

    try:
        # 4. Order header
        order_id = orders.create_order(
            db,
            user_id=user_id,
            invoice_number=invoice_number,
            totals=totals,
            checkout_key=checkout_key,
        )

        # 5. Line snapshots
        orders.create_order_lines(db, order_id, lines)

        # 6. Stock, in a stable order to avoid deadlocks between checkouts
        for line in sorted(lines, key=lambda line: line["product_id"]):
            taken = catalog.decrement_stock(
                db, line["product_id"], line["quantity"], strict=True, commit=False
            )
            if not taken:
                raise InsufficientStockError(
                    line["name"],
                    available=catalog.get_stock(db, line["product_id"]),
                    requested=line["quantity"],
                )

        # 7. Empty the cart
        cart.clear_cart(db, user_id, commit=False)

        db.commit()
    except InsufficientStockError as e:
        db.rollback()
        logger.warning(
            "checkout rejected: user_id=%s product=%r available=%s requested=%s",
            user_id, e.product_name, e.available, e.requested,
        )
        raise
    except IntegrityError:
        db.rollback()
        # a concurrent request with the same key got there first
        replay = _existing_checkout(db, user_id, checkout_key)
        if replay is not None:
            return replay
        raise
    except Exception:
        db.rollback()
        raise

    # 8. Read the committed order back for display
    summary = orders.summarize_order(db, orders.get_order(db, order_id))
    logger.info(
        "order placed: order_id=%s invoice=%s user_id=%s total=%s",
        order_id, invoice_number, user_id, summary.total,
    )

    notify(
        "order.placed",
        {
            "event": "order.placed",
            "occurred_at": dt.datetime.now(dt.timezone.utc).isoformat().replace("+00:00", "Z"),
            "order_id": order_id,
            "invoice_number": invoice_number,
            "user_id": user_id,
            "total": float(summary.total),
            "items": [
                {"product_id": item.product_id, "quantity": item.quantity}
                for item in summary.lines
            ],
        },
    )
    return summary
