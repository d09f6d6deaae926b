from fastapi import APIRouter, Depends, HTTPException, Query, Form
from sqlalchemy.orm import Session
from typing import Optional, List
from ..database import get_db
from ..catalog import (
    create_product,
    get_product,
    get_products,
    update_product,
    delete_product,
)
from ..schemas import ProductOut, UserOut
from ..auth import get_current_admin

router = APIRouter(prefix="/products", tags=["Products"])


@router.post("/", response_model=ProductOut, status_code=201)
def create_product_only_admin(
    name: str = Form(..., description="**Product name** (required)", examples=[""]),
    price: float = Form(..., ge=0, le=99999999.99, description="**Price** (0 to 99999999.99)", examples=[""]),
    stock: int = Form(..., ge=0, description="**Stock quantity** (must be >= 0)", examples=[""]),
    image: Optional[str] = Form(None, description="**Image reference** (optional)", examples=[""]),
    current_admin: UserOut = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    product_data = {
        "name": name,
        "price": price,
        "stock": stock,
        "image": image,
    }
    try:
        return create_product(db, product_data)
    except ValueError as e:
        if str(e) == "name_required":
            raise HTTPException(status_code=400, detail="Product name is required")
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/", response_model=List[ProductOut])
def view_products(
    skip: int = Query(0, ge=0, description="**Skip** number of products"),
    limit: int = Query(100, ge=1, le=1000, description="**Limit** number of products"),
    search: Optional[str] = Query(None, description="**Search** in product name"),
    db: Session = Depends(get_db)
):
    return get_products(db, skip=skip, limit=limit, search=search)


@router.get("/{product_id}", response_model=ProductOut)
def view_product(
    product_id: int,
    db: Session = Depends(get_db)
):
    product = get_product(db, product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


@router.patch("/{product_id}", response_model=ProductOut)
def update_product_only_admin(
    product_id: int,
    name: Optional[str] = Form(None, description="**New name** (optional)", examples=[""]),
    price: Optional[float] = Form(None, ge=0, le=99999999.99, description="**New price** (optional, 0 to 99999999.99)", examples=[""]),
    stock: Optional[int] = Form(None, ge=0, description="**New stock** (optional, >= 0)", examples=[""]),
    image: Optional[str] = Form(None, description="**New image reference** (optional)", examples=[""]),
    current_admin: UserOut = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    update_data = {
        "name": name,
        "price": price,
        "stock": stock,
        "image": image,
    }
    update_data = {k: v for k, v in update_data.items() if v is not None}

    try:
        product = update_product(db, product_id, update_data)
    except ValueError as e:
        if str(e) == "name_required":
            raise HTTPException(status_code=400, detail="Product name is required")
        raise HTTPException(status_code=400, detail=str(e))
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


@router.delete("/{product_id}", response_model=ProductOut)
def delete_product_only_admin(
    product_id: int,
    current_admin: UserOut = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    product = get_product(db, product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")

    product_data = ProductOut.model_validate(product)
    delete_product(db, product_id)
    return product_data
