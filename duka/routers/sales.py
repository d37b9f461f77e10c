# =========================================================
# SALES ROUTER
#
# CLERKS / ADMINS:
# - Create sales (pending until approved)
# - Process returns against approved sales
#
# ACCOUNTANTS / ADMINS:
# - Approve or reject pending sales
#
# Listings hide fully returned sales unless asked for them.
# =========================================================

from dataclasses import asdict

from fastapi import APIRouter, Depends, Query, status, Request
from sqlalchemy.orm import Session
from typing import Literal

from duka.database import get_db
from duka.core.auth import (
    APPROVAL_ROLES,
    RETURN_ROLES,
    SALES_ROLES,
    get_current_user,
    require_roles,
)
from duka.core.rate_limiter import limiter
from duka.models.sales import Sale
from duka.routers.returns import serialize_return
from duka.schemas.sale import SaleCreate, SaleResponse, SaleStatusUpdate
from duka.schemas.sale_return import ReturnCreate, ReturnResponse
from duka.services import returns as return_service
from duka.services import sales as sale_service
from duka.services.projector import EffectiveItem

router = APIRouter(prefix="/sales", tags=["Sales"])


def serialize_sale(sale: Sale, items: list[EffectiveItem]) -> dict:
    return {
        "id": sale.id,
        "customer_name": sale.customer_name,
        "customer_phone": sale.customer_phone,
        "customer_email": sale.customer_email,
        "location": sale.location,
        "total_amount": sale.total_amount,
        "payment_method": sale.payment_method,
        "payment_reference": sale.payment_reference,
        "status": sale.status,
        "created_by": sale.created_by,
        "created_by_name": sale.creator.full_name if sale.creator else None,
        "approved_by": sale.approved_by,
        "approved_by_name": sale.approver.full_name if sale.approver else None,
        "created_at": sale.created_at,
        "items": [asdict(item) for item in items],
    }


# =========================================================
# CREATE SALE
# =========================================================
@router.post("", response_model=SaleResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def create_sale(
    request: Request,
    sale_data: SaleCreate,
    db: Session = Depends(get_db),
    current_user=Depends(require_roles(*SALES_ROLES)),
):
    sale = sale_service.create_sale(db, sale_data, current_user)
    return serialize_sale(*sale_service.get_sale(db, sale.id))


# =========================================================
# LIST SALES (WITH EFFECTIVE QUANTITIES)
# =========================================================
@router.get("", response_model=list[SaleResponse])
def list_sales(
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
    include_fully_returned: bool = False,
    status: Literal["pending", "approved", "rejected", "fully_returned"] | None = None,
    location: Literal["utawala", "kamulu"] | None = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
):
    results = sale_service.list_sales(
        db,
        include_fully_returned=include_fully_returned,
        status=status,
        location=location,
        limit=limit,
        offset=offset,
    )
    return [serialize_sale(sale, items) for sale, items in results]


# =========================================================
# GET SINGLE SALE
# =========================================================
@router.get("/{sale_id}", response_model=SaleResponse)
def get_sale(
    sale_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    return serialize_sale(*sale_service.get_sale(db, sale_id))


# =========================================================
# APPROVE / REJECT
# =========================================================
@router.patch("/{sale_id}", response_model=SaleResponse)
def update_sale_status(
    sale_id: int,
    status_data: SaleStatusUpdate,
    db: Session = Depends(get_db),
    current_user=Depends(require_roles(*APPROVAL_ROLES)),
):
    sale_service.change_sale_status(db, sale_id, status_data.status, current_user)
    return serialize_sale(*sale_service.get_sale(db, sale_id))


# =========================================================
# RETURNS FOR A SALE
# =========================================================
@router.post(
    "/{sale_id}/returns",
    response_model=ReturnResponse,
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit("30/minute")
def create_return(
    request: Request,
    sale_id: int,
    return_data: ReturnCreate,
    db: Session = Depends(get_db),
    current_user=Depends(require_roles(*RETURN_ROLES)),
):
    sale_return = return_service.process_return(
        db,
        sale_id,
        return_data.items,
        return_data.notes,
        current_user,
    )
    db.refresh(sale_return)
    return serialize_return(sale_return)


@router.get("/{sale_id}/returns", response_model=list[ReturnResponse])
def list_sale_returns(
    sale_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    return [serialize_return(r) for r in return_service.list_sale_returns(db, sale_id)]
