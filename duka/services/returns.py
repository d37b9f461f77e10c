# =========================================================
# RETURN ENGINE
#
# A return reduces the effective quantity of one or more
# lines of an approved sale. The remaining-quantity check and
# the write happen in a single conditional UPDATE on the sale
# item, so two concurrent returns can never overdraw a line.
# Header, lines, optional restock and the fully_returned
# transition commit together or not at all.
# =========================================================

import logging
from decimal import Decimal

from sqlalchemy.orm import Session, joinedload

from duka.core.auth import RETURN_ROLES, ensure_role
from duka.core.config import settings
from duka.core.exceptions import InvalidSaleStatus, NotFound, OverReturn, ValidationError
from duka.core.transactions import run_atomic
from duka.models.inventory_transactions import TRANSACTION_RETURN
from duka.models.sale_items import SaleItem
from duka.models.sale_return_items import SaleReturnItem
from duka.models.sale_returns import SaleReturn
from duka.models.sales import Sale, SALE_APPROVED, SALE_FULLY_RETURNED
from duka.models.users import User
from duka.services import ledger
from duka.services.projector import effective_quantities, is_fully_returned

logger = logging.getLogger("duka")

CENTS = Decimal("0.01")


def _validate_request(items):
    if not items:
        raise ValidationError("Please select at least one item to return")

    seen = set()
    for item in items:
        if item.quantity_returned is None or item.quantity_returned <= 0:
            raise ValidationError(
                "Quantity returned must be greater than zero",
                sale_item_id=item.sale_item_id,
            )
        if item.sale_item_id in seen:
            raise ValidationError(
                "Each sale item may appear only once per return",
                sale_item_id=item.sale_item_id,
            )
        seen.add(item.sale_item_id)


def _claim_quantity(session: Session, line: SaleItem, quantity: int):
    """Move ``quantity`` of the line into returned, or raise OverReturn."""
    updated = (
        session.query(SaleItem)
        .filter(
            SaleItem.id == line.id,
            SaleItem.returned_quantity + quantity <= SaleItem.quantity,
        )
        .update(
            {SaleItem.returned_quantity: SaleItem.returned_quantity + quantity},
            synchronize_session=False,
        )
    )
    session.refresh(line)

    if updated == 0:
        max_returnable = line.quantity - line.returned_quantity
        logger.warning(
            f"Over-return rejected on sale item {line.id}: "
            f"requested {quantity}, remaining {max_returnable}"
        )
        raise OverReturn(
            sale_item_id=line.id,
            product_id=line.product_id,
            requested=quantity,
            max_returnable=max_returnable,
        )


def process_return(db: Session, sale_id: int, items, notes: str | None, actor: User) -> SaleReturn:
    ensure_role(actor, RETURN_ROLES)
    _validate_request(items)

    def unit(session: Session) -> SaleReturn:
        sale = (
            session.query(Sale)
            .filter(Sale.id == sale_id)
            .with_for_update()
            .first()
        )
        if sale is None:
            raise NotFound("Sale not found", sale_id=sale_id)

        if sale.status != SALE_APPROVED:
            raise InvalidSaleStatus(
                f"Only approved sales can be returned; sale is {sale.status}",
                sale_id=sale.id,
                current=sale.status,
            )

        lines = {line.id: line for line in sale.items}

        sale_return = SaleReturn(
            sale_id=sale.id,
            created_by=actor.id,
            notes=notes,
            total_refund_amount=Decimal("0.00"),
        )
        session.add(sale_return)
        session.flush()

        total_refund = Decimal("0.00")

        for requested in items:
            line = lines.get(requested.sale_item_id)
            if line is None:
                raise ValidationError(
                    f"Sale item {requested.sale_item_id} does not belong to sale {sale.id}",
                    sale_item_id=requested.sale_item_id,
                )

            # The stored price is authoritative
            if requested.unit_price is not None and Decimal(requested.unit_price) != line.unit_price:
                raise ValidationError(
                    "Unit price does not match the original sale",
                    sale_item_id=line.id,
                    unit_price=str(line.unit_price),
                )

            _claim_quantity(session, line, requested.quantity_returned)

            line_total = (line.unit_price * requested.quantity_returned).quantize(CENTS)
            total_refund += line_total

            session.add(
                SaleReturnItem(
                    sale_return_id=sale_return.id,
                    sale_item_id=line.id,
                    quantity_returned=requested.quantity_returned,
                    unit_price=line.unit_price,
                    total_price=line_total,
                )
            )

            if settings.RESTOCK_ON_RETURN:
                ledger.adjust_stock(
                    session,
                    product_id=line.product_id,
                    location=sale.location,
                    delta=requested.quantity_returned,
                    actor_id=actor.id,
                    transaction_type=TRANSACTION_RETURN,
                    reference=f"return:{sale_return.id}",
                )

        sale_return.total_refund_amount = total_refund
        session.flush()

        if is_fully_returned(effective_quantities(session, sale.id)):
            sale.status = SALE_FULLY_RETURNED
            session.flush()
            logger.info(f"Sale {sale.id} fully returned")

        return sale_return

    sale_return = run_atomic(db, unit, description="return processing")

    logger.info(
        f"Return {sale_return.id} on sale {sale_id} by user {actor.id}: "
        f"refund {sale_return.total_refund_amount}"
    )

    return sale_return


def _returns_query(db: Session):
    return (
        db.query(SaleReturn)
        .options(
            joinedload(SaleReturn.creator),
            joinedload(SaleReturn.sale),
            joinedload(SaleReturn.items)
            .joinedload(SaleReturnItem.sale_item)
            .joinedload(SaleItem.product),
        )
        .order_by(SaleReturn.created_at.desc(), SaleReturn.id.desc())
    )


def list_sale_returns(db: Session, sale_id: int) -> list[SaleReturn]:
    exists = db.query(Sale.id).filter(Sale.id == sale_id).first()
    if not exists:
        raise NotFound("Sale not found", sale_id=sale_id)

    return _returns_query(db).filter(SaleReturn.sale_id == sale_id).all()


def list_returns(db: Session, limit: int = 50, offset: int = 0) -> list[SaleReturn]:
    return _returns_query(db).limit(limit).offset(offset).all()
