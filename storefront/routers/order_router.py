from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from .. import orders
from ..database import get_db
from ..schemas import OrderListResponse, OrderSummary, UserOut
from ..auth import get_current_customer

router = APIRouter(
    prefix="/orders",
    tags=["Orders"]
)


@router.get("/me", response_model=OrderListResponse)
def get_my_orders(
    current_user: UserOut = Depends(get_current_customer),
    db: Session = Depends(get_db)
):
    user_orders = orders.get_orders_by_user(db, current_user.id)
    return {
        "orders": user_orders,
        "total": len(user_orders),
    }


@router.get("/{order_id:int}", response_model=OrderSummary)
def get_my_order(
    order_id: int,
    current_user: UserOut = Depends(get_current_customer),
    db: Session = Depends(get_db)
):
    """Invoice view of one of the current user's orders."""
    db_order = orders.get_user_order(db, current_user.id, order_id)
    if not db_order:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Order with id {order_id} not found"
        )
    return orders.summarize_order(db, db_order)
