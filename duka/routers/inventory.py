# duka/routers/inventory.py

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session
from typing import Literal

from duka.database import get_db
from duka.core.auth import STOCK_ROLES, get_current_user, require_roles
from duka.core.rate_limiter import limiter
from duka.models.inventory import Inventory
from duka.models.inventory_transactions import InventoryTransaction
from duka.schemas.inventory import (
    InventoryAdjust,
    InventoryAdjustResponse,
    InventoryResponse,
    InventoryTransactionResponse,
)
from duka.services import ledger

router = APIRouter(
    prefix="/inventory",
    tags=["Inventory"],
)


@router.post("/adjust", response_model=InventoryAdjustResponse)
@limiter.limit("60/minute")
def adjust_inventory(
    request: Request,
    adjustment: InventoryAdjust,
    db: Session = Depends(get_db),
    current_user=Depends(require_roles(*STOCK_ROLES)),
):
    quantity = ledger.record_adjustment(
        db,
        product_id=adjustment.product_id,
        location=adjustment.location,
        delta=adjustment.quantity,
        actor_id=current_user.id,
        reason=adjustment.reason,
    )

    return {
        "product_id": adjustment.product_id,
        "location": adjustment.location,
        "quantity": quantity,
    }


@router.get("", response_model=list[InventoryResponse])
def list_inventory(
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
    location: Literal["utawala", "kamulu"] | None = None,
):
    query = db.query(Inventory)

    if location is not None:
        query = query.filter(Inventory.location == location)

    return query.order_by(Inventory.product_id, Inventory.location).all()


@router.get("/transactions", response_model=list[InventoryTransactionResponse])
def list_transactions(
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
    product_id: int | None = None,
    location: Literal["utawala", "kamulu"] | None = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
):
    query = db.query(InventoryTransaction)

    if product_id is not None:
        query = query.filter(InventoryTransaction.product_id == product_id)

    if location is not None:
        query = query.filter(
            (InventoryTransaction.from_location == location)
            | (InventoryTransaction.to_location == location)
        )

    return (
        query
        .order_by(InventoryTransaction.created_at.desc(), InventoryTransaction.id.desc())
        .limit(limit)
        .offset(offset)
        .all()
    )
