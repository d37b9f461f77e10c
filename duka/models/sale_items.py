# duka/models/sale_items.py

from sqlalchemy import CheckConstraint, Column, Integer, ForeignKey, Numeric
from sqlalchemy.orm import relationship

from duka.database import Base


class SaleItem(Base):
    __tablename__ = "sale_items"

    id = Column(Integer, primary_key=True, index=True)

    sale_id = Column(Integer, ForeignKey("sales.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)

    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(12, 2), nullable=False)
    total_price = Column(Numeric(12, 2), nullable=False)

    # Running total of accepted returns. Only ever moved by a conditional
    # UPDATE so concurrent returns cannot overdraw the line.
    returned_quantity = Column(Integer, nullable=False, default=0, server_default="0")

    sale = relationship("Sale", back_populates="items")
    product = relationship("Product")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_sale_items_quantity_positive"),
        CheckConstraint(
            "returned_quantity >= 0 AND returned_quantity <= quantity",
            name="ck_sale_items_returned_within_quantity",
        ),
    )
