# duka/routers/inventory_requests.py

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Literal

from duka.database import get_db
from duka.core.auth import STOCK_ROLES, get_current_user, require_roles
from duka.schemas.inventory import InventoryRequestCreate, InventoryRequestResponse
from duka.services import requests as request_service

router = APIRouter(
    prefix="/inventory-requests",
    tags=["Inventory Requests"],
)


@router.post("", response_model=InventoryRequestResponse, status_code=status.HTTP_201_CREATED)
def create_request(
    request_data: InventoryRequestCreate,
    db: Session = Depends(get_db),
    current_user=Depends(require_roles(*STOCK_ROLES)),
):
    return request_service.create_request(db, request_data, current_user)


@router.get("", response_model=list[InventoryRequestResponse])
def list_requests(
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
    request_status: Literal["pending", "approved", "rejected"] | None = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
):
    return request_service.list_requests(db, status=request_status, limit=limit, offset=offset)
