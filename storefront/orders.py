import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session

from .exceptions import OrderValidationError
from .models import Order, OrderItem, User
from .pricing import MAX_AMOUNT, round_money, totals_from_total
from .schemas import DEFAULT_ORDER_STATUS, OrderLineOut, OrderStatus, OrderSummary, OrderTotals

logger = logging.getLogger(__name__)


def normalize_status(status: Any) -> OrderStatus:
    """Match a status case-insensitively; anything unknown becomes the default."""
    if isinstance(status, OrderStatus):
        return status
    if not isinstance(status, str) or not status.strip():
        return DEFAULT_ORDER_STATUS
    wanted = status.strip().lower()
    for option in OrderStatus:
        if option.value.lower() == wanted:
            return option
    return DEFAULT_ORDER_STATUS


# -----------------------------
# Order headers
# -----------------------------

def create_order(
    db: Session,
    user_id: int,
    invoice_number: str,
    totals: OrderTotals,
    status: Optional[str] = None,
    checkout_key: Optional[str] = None,
) -> int:
    """Insert an order header and return its id.

    Flushes but does not commit; checkout commits the header together with
    its lines, the stock decrement and the cart clear.
    """
    subtotal = round_money(totals.subtotal)
    tax_amount = round_money(totals.tax_amount)
    total = round_money(totals.total if totals.total is not None else subtotal + tax_amount)

    db_order = Order(
        user_id=user_id,
        invoice_number=invoice_number,
        subtotal=subtotal,
        tax_amount=tax_amount,
        total=total,
        status=normalize_status(status or DEFAULT_ORDER_STATUS).value,
        checkout_key=checkout_key,
    )
    db.add(db_order)
    db.flush()  # Get order ID without committing
    return db_order.id


def get_order(db: Session, order_id: int) -> Optional[Order]:
    return db.query(Order).filter(Order.id == order_id).first()


def get_user_order(db: Session, user_id: int, order_id: int) -> Optional[Order]:
    return db.query(Order).filter(Order.id == order_id, Order.user_id == user_id).first()


def get_order_by_checkout_key(db: Session, user_id: int, checkout_key: str) -> Optional[Order]:
    return (
        db.query(Order)
        .filter(Order.user_id == user_id, Order.checkout_key == checkout_key)
        .first()
    )


def get_orders_by_user(db: Session, user_id: int) -> List[Order]:
    return (
        db.query(Order)
        .filter(Order.user_id == user_id)
        .order_by(Order.created_at.asc(), Order.id.asc())
        .all()
    )


def get_orders(db: Session, skip: int = 0, limit: int = 100) -> List[Tuple[Order, User]]:
    """Admin listing: every order with the user who placed it."""
    return (
        db.query(Order, User)
        .join(User, User.id == Order.user_id)
        .order_by(Order.created_at.asc(), Order.id.asc())
        .offset(skip)
        .limit(limit)
        .all()
    )


def get_order_count(db: Session) -> int:
    return db.query(Order).count()


def _parse_total(total: Any) -> Optional[Decimal]:
    if total is None or isinstance(total, bool):
        return None
    try:
        value = Decimal(str(total).strip())
    except (InvalidOperation, ValueError):
        return None
    if not value.is_finite() or value < 0 or value > MAX_AMOUNT:
        return None
    return value


def update_order(
    db: Session,
    order_id: int,
    *,
    invoice_number: Optional[str],
    total: Any,
    status: Optional[str],
) -> Optional[Order]:
    """Admin edit of invoice number, total and status.

    Subtotal and tax are re-derived from the edited total. All validation
    problems are reported together.
    """
    errors = []
    invoice_number = (invoice_number or "").strip()
    if not invoice_number:
        errors.append("Invoice number is required.")

    parsed_total = _parse_total(total)
    if parsed_total is None:
        errors.append("Total must be a positive number.")

    trimmed_status = status.strip() if isinstance(status, str) else ""
    status_value = next((s for s in OrderStatus if s.value == trimmed_status), None)
    if status_value is None:
        errors.append("Please select a valid order status.")

    if errors:
        raise OrderValidationError(errors)

    db_order = get_order(db, order_id)
    if not db_order:
        return None

    totals = totals_from_total(parsed_total)
    db_order.invoice_number = invoice_number
    db_order.subtotal = totals.subtotal
    db_order.tax_amount = totals.tax_amount
    db_order.total = totals.total
    db_order.status = status_value.value
    db.commit()
    db.refresh(db_order)
    logger.info("order %s updated: total=%s status=%s", order_id, totals.total, status_value.value)
    return db_order


def delete_order(db: Session, order_id: int) -> bool:
    """Delete an order, removing its lines first."""
    db_order = get_order(db, order_id)
    if not db_order:
        return False

    delete_order_lines(db, order_id, commit=False)
    db.delete(db_order)
    db.commit()
    logger.info("order %s deleted", order_id)
    return True


# -----------------------------
# Order lines
# -----------------------------

def create_order_lines(db: Session, order_id: int, lines: Iterable[Dict]) -> List[OrderItem]:
    """Bulk-insert line snapshots for an order (caller commits).

    lines format:
    [{
        "product_id": int,
        "name": str,
        "price": number,
        "quantity": int
    }, ...]
    """
    items = []
    for line in lines:
        unit_price = round_money(line["price"])
        quantity = int(line["quantity"])
        items.append(
            OrderItem(
                order_id=order_id,
                product_id=int(line["product_id"]),
                product_name=line["name"],
                unit_price=unit_price,
                quantity=quantity,
                subtotal=round_money(unit_price * quantity),
            )
        )
    if not items:
        return items

    db.add_all(items)
    db.flush()
    return items


def get_order_lines(db: Session, order_id: int) -> List[OrderItem]:
    return db.query(OrderItem).filter(OrderItem.order_id == order_id).order_by(OrderItem.id).all()


def delete_order_lines(db: Session, order_id: int, *, commit: bool = True) -> int:
    deleted = db.query(OrderItem).filter(OrderItem.order_id == order_id).delete(synchronize_session=False)
    if commit:
        db.commit()
    return int(deleted or 0)


def summarize_order(db: Session, order: Order) -> OrderSummary:
    """Invoice view of a stored order, built from its line snapshots."""
    lines = [
        OrderLineOut(
            product_id=item.product_id,
            name=item.product_name,
            unit_price=round_money(item.unit_price),
            quantity=int(item.quantity),
            subtotal=round_money(item.subtotal),
        )
        for item in get_order_lines(db, order.id)
    ]
    return OrderSummary(
        order_id=order.id,
        invoice_number=order.invoice_number,
        invoice_date=order.created_at,
        status=normalize_status(order.status),
        lines=lines,
        subtotal=round_money(order.subtotal),
        tax_amount=round_money(order.tax_amount),
        total=round_money(order.total),
    )
