# duka/routers/returns.py

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from duka.database import get_db
from duka.core.auth import get_current_user
from duka.models.sale_returns import SaleReturn
from duka.schemas.sale_return import ReturnResponse
from duka.services import returns as return_service

router = APIRouter(prefix="/returns", tags=["Returns"])


def serialize_return(sale_return: SaleReturn) -> dict:
    return {
        "id": sale_return.id,
        "sale_id": sale_return.sale_id,
        "customer_name": sale_return.sale.customer_name,
        "sale_status": sale_return.sale.status,
        "created_by": sale_return.created_by,
        "created_by_name": sale_return.creator.full_name if sale_return.creator else None,
        "notes": sale_return.notes,
        "total_refund_amount": sale_return.total_refund_amount,
        "created_at": sale_return.created_at,
        "items": [
            {
                "id": item.id,
                "sale_item_id": item.sale_item_id,
                "product_id": item.sale_item.product_id,
                "product_name": item.sale_item.product.name,
                "quantity_returned": item.quantity_returned,
                "unit_price": item.unit_price,
                "total_price": item.total_price,
            }
            for item in sale_return.items
        ],
    }


@router.get("", response_model=list[ReturnResponse])
def list_returns(
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
):
    return [serialize_return(r) for r in return_service.list_returns(db, limit=limit, offset=offset)]
