from typing import List
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from ..database import get_db
from ..models import CartItem, Order, User
from ..schemas import UserOut
from ..auth import get_current_admin

router = APIRouter(prefix="/admin/users", tags=["Admin Users"])


@router.get("/", response_model=List[UserOut])
def list_all_users(
    skip: int = 0,
    limit: int = 100,
    current_admin: UserOut = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    """
    Get list of all users (Admin only)
    """
    users = db.query(User).order_by(User.id.asc()).offset(skip).limit(limit).all()
    return [UserOut.model_validate(user) for user in users]


@router.delete("/{user_id}", response_model=UserOut)
def delete_user_by_admin(
    user_id: int,
    current_admin: UserOut = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    """
    Delete a user by ID (Admin only)
    """
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    # Prevent admin from deleting themselves
    if user.id == current_admin.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot delete your own account"
        )

    # Orders reference their buyer and are only removed by an explicit order delete
    if db.query(Order).filter(Order.user_id == user_id).count():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="User has orders; delete them first"
        )

    user_data = UserOut.model_validate(user)
    db.query(CartItem).filter(CartItem.user_id == user_id).delete(synchronize_session=False)
    db.delete(user)
    db.commit()
    return user_data
