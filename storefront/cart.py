"""Per-user cart store.

The stock check here is advisory: it reads live stock and decides, without
holding any lock. Checkout re-checks stock atomically when it decrements.
"""
import logging
from typing import Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import catalog
from .config import MAX_CART_QUANTITY
from .exceptions import InsufficientStockError, ProductNotFoundError
from .models import CartItem, Product
from .pricing import round_money

logger = logging.getLogger(__name__)


def get_cart_lines(db: Session, user_id: int) -> List[Dict]:
    """Return the user's cart joined with live product data.

    Lines whose product no longer exists are skipped.
    """
    rows = (
        db.query(CartItem, Product)
        .join(Product, Product.id == CartItem.product_id)
        .filter(CartItem.user_id == user_id)
        .order_by(CartItem.id.asc())
        .all()
    )
    return [
        {
            "product_id": product.id,
            "name": product.name,
            "price": round_money(product.price),
            "image": product.image,
            "quantity": int(item.quantity),
        }
        for item, product in rows
    ]


def get_item_quantity(db: Session, user_id: int, product_id: int) -> int:
    item = _get_item(db, user_id, product_id)
    return int(item.quantity) if item else 0


def max_addable(available_stock: int, quantity_in_cart: int) -> int:
    """Units that can still go into the cart without exceeding stock."""
    return available_stock - quantity_in_cart


def _get_item(db: Session, user_id: int, product_id: int) -> Optional[CartItem]:
    return (
        db.query(CartItem)
        .filter(CartItem.user_id == user_id, CartItem.product_id == product_id)
        .first()
    )


def _require_product(db: Session, product_id: int) -> Product:
    product = catalog.get_product(db, product_id)
    if product is None:
        raise ProductNotFoundError(product_id)
    return product


def _upsert(db: Session, user_id: int, product_id: int, quantity: int) -> CartItem:
    item = _get_item(db, user_id, product_id)
    if item is None:
        item = CartItem(user_id=user_id, product_id=product_id, quantity=quantity)
        db.add(item)
    else:
        item.quantity = quantity
    db.commit()
    db.refresh(item)
    return item


def _add_once(db: Session, user_id: int, product_id: int, requested: int) -> CartItem:
    product = _require_product(db, product_id)

    available = int(product.stock or 0)
    current = get_item_quantity(db, user_id, product_id)
    addable = max_addable(available, current)
    if available <= 0 or addable <= 0 or requested > addable:
        logger.warning(
            "add to cart rejected: user_id=%s product_id=%s requested=%s addable=%s",
            user_id, product_id, requested, addable,
        )
        raise InsufficientStockError(product.name, available=max(addable, 0), requested=requested)

    return _upsert(db, user_id, product_id, current + requested)


def add_item(db: Session, user_id: int, product_id: int, quantity: int = 1) -> CartItem:
    """Add ``quantity`` units on top of what is already in the cart.

    Two concurrent adds of a product the cart doesn't hold yet both try to
    insert the line; the loser rolls back and repeats the add against the
    line the winner created.
    """
    requested = max(1, int(quantity))
    try:
        return _add_once(db, user_id, product_id, requested)
    except IntegrityError:
        db.rollback()
        logger.info("cart line created concurrently, retrying add: user_id=%s product_id=%s", user_id, product_id)
        return _add_once(db, user_id, product_id, requested)


def set_quantity(db: Session, user_id: int, product_id: int, quantity: int) -> Optional[CartItem]:
    """Overwrite the quantity of a cart line.

    quantity <= 0 removes the line and returns None. If the product has gone
    out of stock the line is removed as well, and InsufficientStockError is
    raised with ``removed=True`` so the caller can tell the user.
    """
    quantity = int(quantity)
    if quantity <= 0:
        remove_item(db, user_id, product_id)
        return None
    quantity = min(quantity, MAX_CART_QUANTITY)

    product = _require_product(db, product_id)
    available = int(product.stock or 0)
    if available <= 0:
        remove_item(db, user_id, product_id)
        logger.warning("cart line dropped, product out of stock: user_id=%s product_id=%s", user_id, product_id)
        raise InsufficientStockError(product.name, available=0, requested=quantity, removed=True)

    if quantity > available:
        raise InsufficientStockError(product.name, available=available, requested=quantity)

    try:
        return _upsert(db, user_id, product_id, quantity)
    except IntegrityError:
        # the line was inserted concurrently; overwrite it
        db.rollback()
        return _upsert(db, user_id, product_id, quantity)


def remove_item(db: Session, user_id: int, product_id: int) -> None:
    db.query(CartItem).filter(
        CartItem.user_id == user_id,
        CartItem.product_id == product_id,
    ).delete(synchronize_session=False)
    db.commit()


def clear_cart(db: Session, user_id: int, *, commit: bool = True) -> int:
    deleted = db.query(CartItem).filter(CartItem.user_id == user_id).delete(synchronize_session=False)
    if commit:
        db.commit()
    return int(deleted or 0)
