# duka/models/sales.py

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, Numeric, String
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from duka.database import Base

SALE_PENDING = "pending"
SALE_APPROVED = "approved"
SALE_REJECTED = "rejected"
SALE_FULLY_RETURNED = "fully_returned"

SALE_STATUSES = (SALE_PENDING, SALE_APPROVED, SALE_REJECTED, SALE_FULLY_RETURNED)

PAYMENT_METHODS = ("cash", "bank_transfer", "mpesa", "cheque")


class Sale(Base):
    __tablename__ = "sales"

    id = Column(Integer, primary_key=True, index=True)

    customer_name = Column(String, nullable=False)
    customer_phone = Column(String, nullable=True)
    customer_email = Column(String, nullable=True)

    # Store the goods leave from once the sale is approved
    location = Column(String, nullable=False)

    total_amount = Column(Numeric(12, 2), nullable=False)

    payment_method = Column(String, nullable=False)
    payment_reference = Column(String, nullable=True)

    status = Column(String, nullable=False, default=SALE_PENDING)

    created_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    approved_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    created_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        index=True,
    )
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    items = relationship(
        "SaleItem",
        back_populates="sale",
        order_by="SaleItem.id",
    )
    returns = relationship(
        "SaleReturn",
        back_populates="sale",
        order_by="SaleReturn.id",
    )

    creator = relationship("User", foreign_keys=[created_by])
    approver = relationship("User", foreign_keys=[approved_by])

    __table_args__ = (
        Index("ix_sales_status_created", "status", "created_at"),
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected', 'fully_returned')",
            name="ck_sales_status_valid",
        ),
        CheckConstraint(
            "payment_method IN ('cash', 'bank_transfer', 'mpesa', 'cheque')",
            name="ck_sales_payment_method_valid",
        ),
        CheckConstraint("location IN ('utawala', 'kamulu')", name="ck_sales_location_valid"),
        CheckConstraint("total_amount >= 0", name="ck_sales_total_non_negative"),
    )
