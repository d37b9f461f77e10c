# =========================================================
# SALES SERVICE
#
# Sale creation (header + items + optional request link) and
# the pending -> approved / rejected lifecycle. Approval
# deducts stock at the sale's location through the ledger.
# Each public function is one atomic unit of work.
# =========================================================

import logging
from collections import defaultdict
from decimal import Decimal

from sqlalchemy.orm import Session, joinedload

from duka.core.auth import APPROVAL_ROLES, SALES_ROLES, ensure_role
from duka.core.exceptions import (
    InsufficientInventory,
    InsufficientStock,
    InvalidSaleStatus,
    NotFound,
    ValidationError,
)
from duka.core.transactions import run_atomic
from duka.models.inventory_requests import InventoryRequest, REQUEST_APPROVED, REQUEST_PENDING
from duka.models.inventory_transactions import TRANSACTION_SALE
from duka.models.products import Product
from duka.models.sale_items import SaleItem
from duka.models.sales import (
    PAYMENT_METHODS,
    Sale,
    SALE_APPROVED,
    SALE_FULLY_RETURNED,
    SALE_PENDING,
    SALE_REJECTED,
)
from duka.models.users import User
from duka.services import ledger
from duka.services.projector import EffectiveItem, effective_quantities, effective_quantities_for_sales

logger = logging.getLogger("duka")

CENTS = Decimal("0.01")

STATUS_TRANSITIONS = {
    SALE_PENDING: (SALE_APPROVED, SALE_REJECTED),
}


def _price_lines(items) -> tuple[list[tuple], Decimal]:
    if not items:
        raise ValidationError("Sale must contain items")

    product_ids = [item.product_id for item in items]
    if len(product_ids) != len(set(product_ids)):
        raise ValidationError("Duplicate products in sale are not allowed")

    lines = []
    total_amount = Decimal("0.00")

    for index, item in enumerate(items):
        if item.quantity is None or item.quantity <= 0:
            raise ValidationError(
                "Item quantity must be greater than zero",
                item_index=index,
                product_id=item.product_id,
            )
        if item.unit_price is None or item.unit_price <= 0:
            raise ValidationError(
                "Item unit price must be greater than zero",
                item_index=index,
                product_id=item.product_id,
            )

        unit_price = Decimal(item.unit_price)
        if unit_price != unit_price.quantize(CENTS):
            raise ValidationError(
                "Item unit price cannot have more than 2 decimal places",
                item_index=index,
                product_id=item.product_id,
                unit_price=str(unit_price),
            )

        # Exact: unit_price is whole cents
        line_total = (unit_price * item.quantity).quantize(CENTS)

        # Caller-supplied totals are only accepted when they agree
        if item.total_price is not None and Decimal(item.total_price).quantize(CENTS) != line_total:
            raise ValidationError(
                "Item total_price does not equal quantity x unit_price",
                item_index=index,
                product_id=item.product_id,
                expected_total_price=str(line_total),
            )

        total_amount += line_total
        lines.append((item, unit_price.quantize(CENTS), line_total))

    return lines, total_amount


def create_sale(db: Session, sale_data, actor: User) -> Sale:
    """Persist a pending sale with its items, optionally fulfilling an inventory request."""
    ensure_role(actor, SALES_ROLES)
    ledger.validate_location(sale_data.location)

    if sale_data.payment_method not in PAYMENT_METHODS:
        raise ValidationError(
            f"Unknown payment method '{sale_data.payment_method}'",
            allowed=list(PAYMENT_METHODS),
        )

    lines, total_amount = _price_lines(sale_data.items)

    def unit(session: Session) -> Sale:
        wanted = {item.product_id for item, _, _ in lines}
        found = {
            product_id
            for (product_id,) in session.query(Product.id).filter(Product.id.in_(wanted)).all()
        }
        missing = sorted(wanted - found)
        if missing:
            raise NotFound("Product not found", product_ids=missing)

        sale = Sale(
            customer_name=sale_data.customer_name,
            customer_phone=sale_data.customer_phone,
            customer_email=sale_data.customer_email,
            location=sale_data.location,
            total_amount=total_amount,
            payment_method=sale_data.payment_method,
            payment_reference=sale_data.payment_reference,
            status=SALE_PENDING,
            created_by=actor.id,
        )
        session.add(sale)
        session.flush()

        session.add_all(
            [
                SaleItem(
                    sale_id=sale.id,
                    product_id=item.product_id,
                    quantity=item.quantity,
                    unit_price=unit_price,
                    total_price=line_total,
                    returned_quantity=0,
                )
                for item, unit_price, line_total in lines
            ]
        )

        if sale_data.request_id is not None:
            request = (
                session.query(InventoryRequest)
                .filter(InventoryRequest.id == sale_data.request_id)
                .with_for_update()
                .first()
            )
            if request is None:
                raise NotFound("Inventory request not found", request_id=sale_data.request_id)
            if request.status != REQUEST_PENDING:
                raise ValidationError(
                    f"Inventory request is already {request.status}",
                    request_id=request.id,
                )
            if request.location != sale.location:
                raise ValidationError(
                    f"Inventory request is for {request.location}, sale is at {sale.location}",
                    request_id=request.id,
                )
            if request.product_id not in wanted:
                raise ValidationError(
                    "Sale does not include the requested product",
                    request_id=request.id,
                    product_id=request.product_id,
                )

            request.status = REQUEST_APPROVED
            request.approved_by = actor.id
            request.sale_id = sale.id

        session.flush()
        return sale

    sale = run_atomic(db, unit, description="sale creation")

    logger.info(
        f"Sale {sale.id} created by user {actor.id}: "
        f"{len(lines)} items, total {sale.total_amount}"
    )

    return sale


def change_sale_status(db: Session, sale_id: int, new_status: str, actor: User) -> Sale:
    """Approve or reject a pending sale.

    Approval deducts every item from the sale's location. If any item is
    short, nothing is deducted and InsufficientInventory lists the shortfalls.
    """
    ensure_role(actor, APPROVAL_ROLES)

    if new_status not in (SALE_APPROVED, SALE_REJECTED):
        raise InvalidSaleStatus(
            f"Status can only be set to '{SALE_APPROVED}' or '{SALE_REJECTED}'",
            requested=new_status,
        )

    def unit(session: Session) -> Sale:
        sale = (
            session.query(Sale)
            .filter(Sale.id == sale_id)
            .with_for_update()
            .first()
        )
        if sale is None:
            raise NotFound("Sale not found", sale_id=sale_id)

        if new_status not in STATUS_TRANSITIONS.get(sale.status, ()):
            raise InvalidSaleStatus(
                f"Sale is already {sale.status}",
                sale_id=sale.id,
                current=sale.status,
                requested=new_status,
            )

        if new_status == SALE_APPROVED:
            _deduct_sale_stock(session, sale, actor)

        sale.status = new_status
        sale.approved_by = actor.id
        session.flush()
        return sale

    sale = run_atomic(db, unit, description="sale status change")

    logger.info(f"Sale {sale.id} {new_status} by user {actor.id}")

    return sale


def _deduct_sale_stock(session: Session, sale: Sale, actor: User):
    needed = defaultdict(int)
    names = {}
    for item in sale.items:
        needed[item.product_id] += item.quantity
        names[item.product_id] = item.product.name

    levels = ledger.get_stock_levels(session, needed.keys(), sale.location)

    shortages = [
        {
            "product_id": product_id,
            "product_name": names[product_id],
            "requested": quantity,
            "available": levels[product_id],
        }
        for product_id, quantity in needed.items()
        if levels[product_id] < quantity
    ]

    if shortages:
        logger.warning(f"Sale {sale.id} approval blocked by stock shortages: {shortages}")
        raise InsufficientInventory(sale.location, shortages)

    for item in sale.items:
        try:
            ledger.adjust_stock(
                session,
                product_id=item.product_id,
                location=sale.location,
                delta=-item.quantity,
                actor_id=actor.id,
                transaction_type=TRANSACTION_SALE,
                reference=f"sale:{sale.id}",
            )
        except (InsufficientStock, NotFound) as exc:
            # Stock moved between the check and the deduction
            available = ledger.get_stock(session, item.product_id, sale.location)
            raise InsufficientInventory(
                sale.location,
                [
                    {
                        "product_id": item.product_id,
                        "product_name": names[item.product_id],
                        "requested": needed[item.product_id],
                        "available": available,
                    }
                ],
            ) from exc


def get_sale(db: Session, sale_id: int) -> tuple[Sale, list[EffectiveItem]]:
    sale = (
        db.query(Sale)
        .options(joinedload(Sale.creator), joinedload(Sale.approver))
        .filter(Sale.id == sale_id)
        .first()
    )
    if sale is None:
        raise NotFound("Sale not found", sale_id=sale_id)

    return sale, effective_quantities(db, sale.id)


def list_sales(
    db: Session,
    include_fully_returned: bool = False,
    status: str | None = None,
    location: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[tuple[Sale, list[EffectiveItem]]]:
    query = db.query(Sale).options(joinedload(Sale.creator), joinedload(Sale.approver))

    if status is not None:
        query = query.filter(Sale.status == status)
    elif not include_fully_returned:
        query = query.filter(Sale.status != SALE_FULLY_RETURNED)

    if location is not None:
        ledger.validate_location(location)
        query = query.filter(Sale.location == location)

    sales = (
        query
        .order_by(Sale.created_at.desc(), Sale.id.desc())
        .limit(limit)
        .offset(offset)
        .all()
    )

    items = effective_quantities_for_sales(db, [sale.id for sale in sales])

    return [(sale, items[sale.id]) for sale in sales]
