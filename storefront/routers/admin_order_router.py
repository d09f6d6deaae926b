from fastapi import APIRouter, Depends, HTTPException, status, Form
from sqlalchemy.orm import Session
from typing import Optional
from .. import orders
from ..database import get_db
from ..exceptions import OrderValidationError
from ..schemas import AdminOrderListResponse, AdminOrderOut, OrderOut, OrderSummary, UserOut
from ..auth import get_current_admin

router = APIRouter(
    prefix="/admin/orders",
    tags=["Admin Orders"]
)


@router.get("/", response_model=AdminOrderListResponse)
def list_orders(
    skip: int = 0,
    limit: int = 100,
    current_admin: UserOut = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    rows = orders.get_orders(db, skip=skip, limit=limit)
    return {
        "orders": [
            AdminOrderOut(
                **OrderOut.model_validate(order).model_dump(),
                user_id=order.user_id,
                username=user.username,
                email=user.email,
            )
            for order, user in rows
        ],
        "total": orders.get_order_count(db),
        "skip": skip,
        "limit": limit,
    }


@router.get("/{order_id:int}", response_model=OrderSummary)
def get_order(
    order_id: int,
    current_admin: UserOut = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    db_order = orders.get_order(db, order_id)
    if not db_order:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Order with id {order_id} not found"
        )
    return orders.summarize_order(db, db_order)


@router.patch("/{order_id:int}", response_model=OrderOut)
def update_order(
    order_id: int,
    invoice_number: Optional[str] = Form(None, description="Invoice number", examples=[""]),
    total: Optional[str] = Form(None, description="Order total including tax", examples=[""]),
    status_value: Optional[str] = Form(None, alias="status", description="Order status", examples=[""]),
    current_admin: UserOut = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    """Edit invoice number, total and status.

    Subtotal and tax are recomputed from the new total.
    """
    try:
        db_order = orders.update_order(
            db,
            order_id,
            invoice_number=invoice_number,
            total=total,
            status=status_value,
        )
    except OrderValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"errors": e.errors},
        )

    if not db_order:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Order with id {order_id} not found"
        )
    return db_order


@router.delete("/{order_id:int}", status_code=status.HTTP_204_NO_CONTENT)
def delete_order(
    order_id: int,
    current_admin: UserOut = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    if not orders.delete_order(db, order_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Order with id {order_id} not found"
        )
    return None
