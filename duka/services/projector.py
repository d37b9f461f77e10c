# =========================================================
# EFFECTIVE-QUANTITY PROJECTOR
#
# effective_quantity = quantity sold - sum(quantity_returned)
# Always read from the persisted return rows, never cached.
# =========================================================

from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import func
from sqlalchemy.orm import Session

from duka.models.products import Product
from duka.models.sale_items import SaleItem
from duka.models.sale_return_items import SaleReturnItem


@dataclass(frozen=True)
class EffectiveItem:
    id: int
    sale_id: int
    product_id: int
    product_name: str
    quantity: int
    unit_price: Decimal
    total_price: Decimal
    returned_quantity: int
    effective_quantity: int


def _query(db: Session, sale_ids):
    returned = (
        db.query(
            SaleReturnItem.sale_item_id.label("sale_item_id"),
            func.sum(SaleReturnItem.quantity_returned).label("returned"),
        )
        .group_by(SaleReturnItem.sale_item_id)
        .subquery()
    )

    return (
        db.query(
            SaleItem.id,
            SaleItem.sale_id,
            SaleItem.product_id,
            Product.name,
            SaleItem.quantity,
            SaleItem.unit_price,
            SaleItem.total_price,
            func.coalesce(returned.c.returned, 0),
        )
        .join(Product, Product.id == SaleItem.product_id)
        .outerjoin(returned, returned.c.sale_item_id == SaleItem.id)
        .filter(SaleItem.sale_id.in_(list(sale_ids)))
        .order_by(SaleItem.sale_id, SaleItem.id)
    )


def _to_item(row) -> EffectiveItem:
    item_id, sale_id, product_id, name, quantity, unit_price, total_price, returned = row
    returned = int(returned)
    return EffectiveItem(
        id=item_id,
        sale_id=sale_id,
        product_id=product_id,
        product_name=name,
        quantity=quantity,
        unit_price=unit_price,
        total_price=total_price,
        returned_quantity=returned,
        effective_quantity=quantity - returned,
    )


def effective_quantities(db: Session, sale_id: int) -> list[EffectiveItem]:
    return [_to_item(row) for row in _query(db, [sale_id]).all()]


def effective_quantities_for_sales(db: Session, sale_ids) -> dict[int, list[EffectiveItem]]:
    """Batch form for listings: one query for any number of sales."""
    sale_ids = list(sale_ids)
    result = {sale_id: [] for sale_id in sale_ids}
    if not sale_ids:
        return result

    for row in _query(db, sale_ids).all():
        item = _to_item(row)
        result[item.sale_id].append(item)

    return result


def is_fully_returned(items: list[EffectiveItem]) -> bool:
    return bool(items) and all(item.effective_quantity == 0 for item in items)
