# duka/routers/products.py

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session, joinedload
from typing import Literal

from duka.database import get_db
from duka.core.auth import STOCK_ROLES, get_current_user, require_roles
from duka.core.exceptions import Conflict, NotFound
from duka.core.transactions import run_atomic
from duka.models.categories import ProductCategory
from duka.models.inventory import Inventory
from duka.models.products import Product
from duka.schemas.product import (
    CategoryCreate,
    CategoryResponse,
    LocationProductResponse,
    ProductCreate,
    ProductResponse,
    ProductUpdate,
)

router = APIRouter(
    prefix="/products",
    tags=["Products"],
)

category_router = APIRouter(
    prefix="/categories",
    tags=["Products"],
)


def _ensure_unique_name(db: Session, name: str, product_id: int | None = None):
    query = db.query(Product).filter(Product.name == name)
    if product_id is not None:
        query = query.filter(Product.id != product_id)

    if query.first():
        raise Conflict("Product with this name already exists", name=name)


def _ensure_category(db: Session, category_id: int | None):
    if category_id is None:
        return
    if not db.query(ProductCategory.id).filter(ProductCategory.id == category_id).first():
        raise NotFound("Category not found", category_id=category_id)


@router.post(
    "",
    response_model=ProductResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_product(
    product_data: ProductCreate,
    db: Session = Depends(get_db),
    current_user=Depends(require_roles(*STOCK_ROLES)),
):
    _ensure_unique_name(db, product_data.name)
    _ensure_category(db, product_data.category_id)

    def unit(session: Session) -> Product:
        product = Product(
            name=product_data.name,
            description=product_data.description,
            min_stock_level=product_data.min_stock_level,
            category_id=product_data.category_id,
        )
        session.add(product)
        session.flush()
        return product

    return run_atomic(db, unit, description="product creation")


@router.get("", response_model=list[LocationProductResponse])
def list_products(
    location: Literal["utawala", "kamulu"] = Query(...),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    # Only products that have ever been stocked at the location
    rows = (
        db.query(Product, Inventory.quantity)
        .join(Inventory, Inventory.product_id == Product.id)
        .filter(Inventory.location == location)
        .order_by(Product.name)
        .all()
    )

    return [
        {
            "id": product.id,
            "name": product.name,
            "description": product.description,
            "min_stock_level": product.min_stock_level,
            "category_id": product.category_id,
            "location": location,
            "quantity": quantity,
            "low_stock": quantity <= product.min_stock_level,
        }
        for product, quantity in rows
    ]


@router.get("/{product_id}", response_model=ProductResponse)
def get_product(
    product_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    product = (
        db.query(Product)
        .options(joinedload(Product.inventory))
        .filter(Product.id == product_id)
        .first()
    )

    if not product:
        raise NotFound("Product not found", product_id=product_id)

    return product


@router.patch("/{product_id}", response_model=ProductResponse)
def update_product(
    product_id: int,
    product_data: ProductUpdate,
    db: Session = Depends(get_db),
    current_user=Depends(require_roles(*STOCK_ROLES)),
):
    product = db.query(Product).filter(Product.id == product_id).first()

    if not product:
        raise NotFound("Product not found", product_id=product_id)

    changes = product_data.model_dump(exclude_unset=True)

    if changes.get("name") is not None:
        _ensure_unique_name(db, changes["name"], product_id=product.id)

    if "category_id" in changes:
        _ensure_category(db, changes["category_id"])

    def unit(session: Session) -> Product:
        for field, value in changes.items():
            # Name and stock level are not nullable
            if value is None and field in ("name", "min_stock_level"):
                continue
            setattr(product, field, value)
        session.flush()
        return product

    product = run_atomic(db, unit, description="product update")
    db.refresh(product)

    return product


@category_router.post(
    "",
    response_model=CategoryResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_category(
    category_data: CategoryCreate,
    db: Session = Depends(get_db),
    current_user=Depends(require_roles(*STOCK_ROLES)),
):
    if db.query(ProductCategory).filter(ProductCategory.name == category_data.name).first():
        raise Conflict("Category with this name already exists", name=category_data.name)

    def unit(session: Session) -> ProductCategory:
        category = ProductCategory(name=category_data.name)
        session.add(category)
        session.flush()
        return category

    return run_atomic(db, unit, description="category creation")


@category_router.get("", response_model=list[CategoryResponse])
def list_categories(
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    return db.query(ProductCategory).order_by(ProductCategory.name).all()
