from fastapi import APIRouter, Depends, HTTPException, status, Form, Header
from sqlalchemy.orm import Session
from typing import List, Optional
from .. import cart
from ..checkout import checkout
from ..database import get_db
from ..exceptions import EmptyCartError, InsufficientStockError, ProductNotFoundError
from ..pricing import calculate_totals, round_money
from ..schemas import CartLineOut, CartOut, OrderSummary, UserOut
from ..auth import get_current_customer

router = APIRouter(
    prefix="/cart",
    tags=["Cart"]
)


def _cart_response(db: Session, user_id: int, messages: Optional[List[str]] = None) -> CartOut:
    lines = cart.get_cart_lines(db, user_id)
    totals = calculate_totals(lines)
    return CartOut(
        items=[
            CartLineOut(**line, subtotal=round_money(line["price"] * line["quantity"]))
            for line in lines
        ],
        subtotal=totals.subtotal,
        tax_amount=totals.tax_amount,
        total=totals.total,
        messages=messages or [],
    )


def _stock_conflict(e: InsufficientStockError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail={
            "error": "insufficient_stock",
            "message": str(e),
            "product": e.product_name,
            "available": e.available,
            "requested": e.requested,
        },
    )


@router.get("", response_model=CartOut)
def view_cart(
    current_user: UserOut = Depends(get_current_customer),
    db: Session = Depends(get_db),
):
    return _cart_response(db, current_user.id)


@router.post("/items", response_model=CartOut)
def add_to_cart(
    product_id: int = Form(..., gt=0, description="Product ID", examples=[""]),
    quantity: int = Form(1, description="Quantity to add (at least 1)", examples=[""]),
    current_user: UserOut = Depends(get_current_customer),
    db: Session = Depends(get_db),
):
    """Add units of a product on top of what is already in the cart.

    Fails with 409 and leaves the cart unchanged when stock can't cover
    the cart quantity plus the requested units.
    """
    try:
        cart.add_item(db, current_user.id, product_id, quantity)
    except ProductNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except InsufficientStockError as e:
        raise _stock_conflict(e)
    return _cart_response(db, current_user.id)


@router.put("/items/{product_id}", response_model=CartOut)
def update_cart_item(
    product_id: int,
    quantity: int = Form(..., description="New quantity (0 removes the product)", examples=[""]),
    current_user: UserOut = Depends(get_current_customer),
    db: Session = Depends(get_db),
):
    """Overwrite the quantity of a product in the cart.

    - quantity is capped at 999; 0 or less removes the line.
    - If the product is out of stock the line is removed and the response
      carries a message saying so.
    """
    messages = []
    try:
        cart.set_quantity(db, current_user.id, product_id, quantity)
    except ProductNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except InsufficientStockError as e:
        if not e.removed:
            raise _stock_conflict(e)
        messages.append(str(e))
    return _cart_response(db, current_user.id, messages)


@router.delete("/items/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_cart_item(
    product_id: int,
    current_user: UserOut = Depends(get_current_customer),
    db: Session = Depends(get_db),
):
    cart.remove_item(db, current_user.id, product_id)
    return None


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
def clear_cart(
    current_user: UserOut = Depends(get_current_customer),
    db: Session = Depends(get_db),
):
    cart.clear_cart(db, current_user.id)
    return None


# -----------------------------
# Checkout
# -----------------------------


@router.post("/checkout", response_model=OrderSummary, status_code=status.HTTP_201_CREATED)
def checkout_my_cart(
    idempotency_key: Optional[str] = Header(None, max_length=64),
    current_user: UserOut = Depends(get_current_customer),
    db: Session = Depends(get_db),
):
    """Turn the current user's cart into an order.

    - No body is needed; the order is built from the stored cart.
    - Send an `Idempotency-Key` header to make retries safe: the same key
      returns the same order.
    """
    try:
        return checkout(db, current_user.id, checkout_key=idempotency_key)
    except EmptyCartError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except InsufficientStockError as e:
        raise _stock_conflict(e)
