import logging
from decimal import Decimal, InvalidOperation
from typing import Optional

from sqlalchemy import case, func
from sqlalchemy.orm import Session

from .models import CartItem, Product
from .pricing import MAX_AMOUNT, round_money

logger = logging.getLogger(__name__)


def get_product(db: Session, product_id: int) -> Optional[Product]:
    return db.query(Product).filter(Product.id == product_id).first()


def get_stock(db: Session, product_id: int) -> int:
    """Current stock straight from the database, bypassing loaded objects."""
    stock = db.query(Product.stock).filter(Product.id == product_id).scalar()
    return int(stock or 0)


def get_products(db: Session, skip: int = 0, limit: int = 100, search: str = None):
    query = db.query(Product)
    if search:
        query = query.filter(func.lower(Product.name).contains(search.strip().lower()))
    return query.order_by(Product.id).offset(skip).limit(limit).all()


def _checked_price(price) -> Decimal:
    try:
        value = Decimal(str(price))
    except InvalidOperation:
        raise ValueError("price_invalid")
    if not value.is_finite() or value < 0 or value > MAX_AMOUNT:
        raise ValueError("price_out_of_range")
    return round_money(value)


def create_product(db: Session, product_data: dict) -> Product:
    name = (product_data.get("name") or "").strip()
    if not name:
        raise ValueError("name_required")

    product_data = {**product_data, "name": name}
    if product_data.get("price") is not None:
        product_data["price"] = _checked_price(product_data["price"])

    db_product = Product(**product_data)
    db.add(db_product)
    db.commit()
    db.refresh(db_product)
    return db_product


def update_product(db: Session, product_id: int, update_data: dict) -> Optional[Product]:
    db_product = get_product(db, product_id)
    if not db_product:
        return None

    if "name" in update_data and update_data.get("name") is not None:
        new_name = str(update_data["name"]).strip()
        if not new_name:
            raise ValueError("name_required")
        update_data["name"] = new_name
    if update_data.get("price") is not None:
        update_data["price"] = _checked_price(update_data["price"])

    for key, value in update_data.items():
        if value is not None:
            setattr(db_product, key, value)
    db.commit()
    db.refresh(db_product)
    return db_product


def delete_product(db: Session, product_id: int) -> Optional[Product]:
    """Delete a product and any cart lines pointing at it.

    Order lines keep their own name/price snapshot and are left alone.
    """
    db_product = get_product(db, product_id)
    if db_product:
        db.query(CartItem).filter(CartItem.product_id == product_id).delete(synchronize_session=False)
        db.delete(db_product)
        db.commit()
    return db_product


def decrement_stock(
    db: Session,
    product_id: int,
    quantity: int,
    *,
    strict: bool = False,
    commit: bool = True,
) -> bool:
    """Take ``quantity`` units out of a product's stock in a single UPDATE.

    strict=False floors the stock at 0. strict=True only applies when the
    whole quantity is available (``WHERE stock >= quantity``) and returns
    False otherwise, so two concurrent buyers can't both take the last unit.
    """
    if quantity <= 0:
        raise ValueError("quantity must be > 0")

    query = db.query(Product).filter(Product.id == product_id)
    if strict:
        updated = query.filter(Product.stock >= quantity).update(
            {Product.stock: Product.stock - quantity},
            synchronize_session=False,
        )
    else:
        updated = query.update(
            {Product.stock: case((Product.stock >= quantity, Product.stock - quantity), else_=0)},
            synchronize_session=False,
        )

    if commit:
        db.commit()
    if not updated:
        logger.debug("stock decrement not applied: product_id=%s quantity=%s strict=%s", product_id, quantity, strict)
    return bool(updated)
