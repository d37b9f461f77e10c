# duka/models/sale_returns.py

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, Text
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from duka.database import Base


class SaleReturn(Base):
    __tablename__ = "sale_returns"

    id = Column(Integer, primary_key=True, index=True)

    sale_id = Column(Integer, ForeignKey("sales.id"), nullable=False, index=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    notes = Column(Text, nullable=True)

    total_refund_amount = Column(Numeric(12, 2), nullable=False)

    created_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        index=True,
    )

    sale = relationship("Sale", back_populates="returns")
    creator = relationship("User")
    items = relationship(
        "SaleReturnItem",
        back_populates="sale_return",
        order_by="SaleReturnItem.id",
    )
