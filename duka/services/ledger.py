# =========================================================
# INVENTORY LEDGER
#
# Stock per (product, location) is only ever changed here.
# Every change is a conditional UPDATE on the inventory row
# plus an appended InventoryTransaction, inside the caller's
# unit of work. Nothing in this module commits.
# =========================================================

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from duka.core.exceptions import ConcurrentUpdate, InsufficientStock, NotFound, ValidationError
from duka.core.transactions import run_atomic
from duka.models.inventory import Inventory, LOCATIONS
from duka.models.inventory_transactions import (
    InventoryTransaction,
    TRANSACTION_PURCHASE,
    TRANSACTION_SALE,
    TRANSACTION_TYPES,
)
from duka.models.products import Product

logger = logging.getLogger("duka")


def validate_location(location: str):
    if location not in LOCATIONS:
        raise ValidationError(
            f"Unknown location '{location}'",
            allowed=list(LOCATIONS),
        )


def get_stock(db: Session, product_id: int, location: str) -> int:
    quantity = (
        db.query(Inventory.quantity)
        .filter(
            Inventory.product_id == product_id,
            Inventory.location == location,
        )
        .scalar()
    )
    return quantity or 0


def get_stock_levels(db: Session, product_ids, location: str) -> dict[int, int]:
    """Current quantity for each product at ``location``; absent rows read as 0."""
    rows = (
        db.query(Inventory.product_id, Inventory.quantity)
        .filter(
            Inventory.product_id.in_(list(product_ids)),
            Inventory.location == location,
        )
        .all()
    )
    levels = {product_id: 0 for product_id in product_ids}
    levels.update({product_id: quantity for product_id, quantity in rows})
    return levels


def adjust_stock(
    db: Session,
    product_id: int,
    location: str,
    delta: int,
    actor_id: int,
    transaction_type: str | None = None,
    reference: str | None = None,
) -> int:
    """Apply a signed change to the stock of one product at one location.

    Returns the new quantity. Raises InsufficientStock when the change would
    take the quantity below zero, and NotFound when the product is unknown
    or a deduction targets a location that never held the product.
    """
    validate_location(location)

    if not isinstance(delta, int) or isinstance(delta, bool) or delta == 0:
        raise ValidationError("Adjustment quantity must be a non-zero integer")

    if transaction_type is None:
        transaction_type = TRANSACTION_PURCHASE if delta > 0 else TRANSACTION_SALE
    elif transaction_type not in TRANSACTION_TYPES:
        raise ValidationError(f"Unknown transaction type '{transaction_type}'")

    product_exists = db.query(Product.id).filter(Product.id == product_id).first()
    if not product_exists:
        raise NotFound("Product not found", product_id=product_id)

    record = (
        db.query(Inventory)
        .filter(
            Inventory.product_id == product_id,
            Inventory.location == location,
        )
        .with_for_update()
        .first()
    )

    if record is None:
        if delta < 0:
            raise NotFound(
                f"No inventory recorded for product {product_id} at {location}",
                product_id=product_id,
                location=location,
            )

        record = Inventory(product_id=product_id, location=location, quantity=delta)
        db.add(record)
        try:
            db.flush()
        except IntegrityError as exc:
            # Someone else created the row first; the whole unit is retried
            raise ConcurrentUpdate("Inventory row created concurrently") from exc

    else:
        updated = (
            db.query(Inventory)
            .filter(
                Inventory.id == record.id,
                Inventory.quantity + delta >= 0,
            )
            .update(
                {Inventory.quantity: Inventory.quantity + delta},
                synchronize_session=False,
            )
        )
        db.refresh(record)

        if updated == 0:
            logger.warning(
                f"Stock adjustment rejected: product {product_id} at {location} "
                f"has {record.quantity}, delta {delta}"
            )
            raise InsufficientStock(
                product_id=product_id,
                location=location,
                available=record.quantity,
                requested=-delta,
            )

    db.add(
        InventoryTransaction(
            product_id=product_id,
            transaction_type=transaction_type,
            from_location=location if delta < 0 else None,
            to_location=location if delta > 0 else None,
            quantity=abs(delta),
            reference=reference,
            created_by=actor_id,
        )
    )
    db.flush()

    logger.info(
        f"Stock {transaction_type}: product {product_id} at {location} "
        f"{delta:+d} -> {record.quantity}"
    )

    return record.quantity


def record_adjustment(
    db: Session,
    product_id: int,
    location: str,
    delta: int,
    actor_id: int,
    reason: str | None = None,
) -> int:
    """Manual stock correction committed as its own unit of work."""
    return run_atomic(
        db,
        lambda session: adjust_stock(
            session,
            product_id=product_id,
            location=location,
            delta=delta,
            actor_id=actor_id,
            reference=reason,
        ),
        description="stock adjustment",
    )
