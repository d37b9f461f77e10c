# =========================================================
# REPORTS ROUTER
#
# Consolidated stock view across both locations. A product
# is low on stock when its quantity in the selected scope is
# at or below its minimum stock level.
# =========================================================

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Literal

from duka.database import get_db
from duka.core.auth import get_current_user
from duka.models.inventory import Inventory, LOCATIONS
from duka.models.products import Product
from duka.schemas.report import InventoryReportResponse

router = APIRouter(prefix="/reports", tags=["Reports"])


# =========================================================
# CORE INVENTORY CALCULATION
# =========================================================
def _calculate_inventory_report(db: Session, location: str, search: str | None):
    query = db.query(Product).order_by(Product.name)

    if search:
        query = query.filter(
            Product.name.ilike(f"%{search}%") | Product.description.ilike(f"%{search}%")
        )

    products = query.all()

    stock = {}
    for product_id, stock_location, quantity in db.query(
        Inventory.product_id, Inventory.location, Inventory.quantity
    ).all():
        stock[(product_id, stock_location)] = quantity

    results = []
    for product in products:
        per_location = {loc: stock.get((product.id, loc), 0) for loc in LOCATIONS}

        if location != "all" and (product.id, location) not in stock:
            continue

        scoped = per_location[location] if location != "all" else sum(per_location.values())

        results.append({
            "product_id": product.id,
            "product_name": product.name,
            "description": product.description,
            "min_stock_level": product.min_stock_level,
            "utawala": per_location["utawala"],
            "kamulu": per_location["kamulu"],
            "total_quantity": scoped,
            "low_stock": 0 < scoped <= product.min_stock_level,
            "out_of_stock": scoped == 0,
        })

    return {
        "location": location,
        "total_products": len(results),
        "total_quantity": sum(row["total_quantity"] for row in results),
        "low_stock_count": sum(1 for row in results if row["low_stock"]),
        "out_of_stock_count": sum(1 for row in results if row["out_of_stock"]),
        "results": results,
    }


@router.get("/inventory", response_model=InventoryReportResponse)
def inventory_report(
    location: Literal["all", "utawala", "kamulu"] = "all",
    search: str | None = Query(None, max_length=100),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    return _calculate_inventory_report(db, location, search)
