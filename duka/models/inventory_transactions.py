# duka/models/inventory_transactions.py

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from duka.database import Base

TRANSACTION_PURCHASE = "purchase"
TRANSACTION_SALE = "sale"
TRANSACTION_ADJUSTMENT = "adjustment"
TRANSACTION_RETURN = "return"

TRANSACTION_TYPES = (
    TRANSACTION_PURCHASE,
    TRANSACTION_SALE,
    TRANSACTION_ADJUSTMENT,
    TRANSACTION_RETURN,
)


class InventoryTransaction(Base):
    """Append-only audit row for every stock movement."""

    __tablename__ = "inventory_transactions"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)

    transaction_type = Column(String, nullable=False)
    from_location = Column(String, nullable=True)
    to_location = Column(String, nullable=True)

    # Always a positive magnitude, direction comes from the locations
    quantity = Column(Integer, nullable=False)

    reference = Column(String, nullable=True)

    created_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        index=True,
    )

    product = relationship("Product")

    __table_args__ = (
        Index("ix_inventory_transactions_product_created", "product_id", "created_at"),
        CheckConstraint("quantity > 0", name="ck_inventory_transaction_quantity_positive"),
        CheckConstraint(
            "transaction_type IN ('purchase', 'sale', 'adjustment', 'return')",
            name="ck_inventory_transaction_type_valid",
        ),
    )
