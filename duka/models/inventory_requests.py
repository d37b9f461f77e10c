# duka/models/inventory_requests.py

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from duka.database import Base

REQUEST_PENDING = "pending"
REQUEST_APPROVED = "approved"
REQUEST_REJECTED = "rejected"


class InventoryRequest(Base):
    __tablename__ = "inventory_requests"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    location = Column(String, nullable=False)
    quantity = Column(Integer, nullable=False)
    status = Column(String, nullable=False, default=REQUEST_PENDING, index=True)
    notes = Column(Text, nullable=True)

    requested_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    approved_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    # Set when a sale fulfils the request
    sale_id = Column(Integer, ForeignKey("sales.id"), nullable=True)

    created_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    product = relationship("Product")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_inventory_request_quantity_positive"),
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')",
            name="ck_inventory_request_status_valid",
        ),
    )
