from fastapi import APIRouter, Depends, HTTPException, status, Form
from pydantic import ValidationError
from sqlalchemy.orm import Session
from ..database import get_db
from ..schemas import UserCreate, UserOut, Token
from ..auth import (
    create_access_token,
    get_current_user,
    get_password_hash,
    get_user_by_username,
    verify_password,
)
from ..models import User

router = APIRouter(prefix="/users", tags=["Users"])


@router.post("/register", response_model=UserOut, status_code=status.HTTP_201_CREATED)
def register(
    username: str = Form(..., min_length=3, max_length=50, description="**Unique username**", examples=[""]),
    email: str = Form(..., description="**Valid email address**", examples=[""]),
    password: str = Form(..., min_length=8, max_length=72, description="**Password (minimum 8 characters)**", examples=[""]),
    db: Session = Depends(get_db)
):
    try:
        user_in = UserCreate(username=username, email=email, password=password)
    except ValidationError as e:
        raise HTTPException(
            status_code=422,
            detail=e.errors(include_url=False, include_context=False),
        )

    # Check if username already exists
    if get_user_by_username(db, username=user_in.username):
        raise HTTPException(status_code=400, detail="This username is already registered")

    new_user = User(
        username=user_in.username,
        email=user_in.email,
        hashed_password=get_password_hash(user_in.password),
        role="user",
    )
    db.add(new_user)
    db.commit()
    db.refresh(new_user)
    return UserOut.model_validate(new_user)


@router.post("/login", response_model=Token)
def login(
    username: str = Form(..., description="**Username you chose during registration**", examples=[""]),
    password: str = Form(..., description="**Password**", examples=[""]),
    db: Session = Depends(get_db)
):
    user = get_user_by_username(db, username=username)
    if not user or not verify_password(password, user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    access_token = create_access_token(data={"sub": user.username})
    return {"access_token": access_token, "token_type": "bearer"}


@router.get("/me", response_model=UserOut)
def read_users_me(current_user: UserOut = Depends(get_current_user)):
    return current_user
