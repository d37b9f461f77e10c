# duka/services/requests.py

import logging

from sqlalchemy.orm import Session

from duka.core.auth import STOCK_ROLES, ensure_role
from duka.core.exceptions import NotFound, ValidationError
from duka.core.transactions import run_atomic
from duka.models.inventory_requests import InventoryRequest, REQUEST_PENDING
from duka.models.products import Product
from duka.models.users import User
from duka.services import ledger

logger = logging.getLogger("duka")


def create_request(db: Session, request_data, actor: User) -> InventoryRequest:
    ensure_role(actor, STOCK_ROLES)
    ledger.validate_location(request_data.location)

    if request_data.quantity is None or request_data.quantity <= 0:
        raise ValidationError("Requested quantity must be greater than zero")

    def unit(session: Session) -> InventoryRequest:
        product = session.query(Product.id).filter(Product.id == request_data.product_id).first()
        if not product:
            raise NotFound("Product not found", product_id=request_data.product_id)

        request = InventoryRequest(
            product_id=request_data.product_id,
            location=request_data.location,
            quantity=request_data.quantity,
            notes=request_data.notes,
            status=REQUEST_PENDING,
            requested_by=actor.id,
        )
        session.add(request)
        session.flush()
        return request

    request = run_atomic(db, unit, description="inventory request")

    logger.info(
        f"Inventory request {request.id} by user {actor.id}: "
        f"{request.quantity} of product {request.product_id} at {request.location}"
    )

    return request


def list_requests(db: Session, status: str | None = None, limit: int = 50, offset: int = 0):
    query = db.query(InventoryRequest)

    if status is not None:
        query = query.filter(InventoryRequest.status == status)

    return (
        query
        .order_by(InventoryRequest.created_at.desc(), InventoryRequest.id.desc())
        .limit(limit)
        .offset(offset)
        .all()
    )
