# duka/models/inventory.py

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from duka.database import Base

LOCATION_UTAWALA = "utawala"
LOCATION_KAMULU = "kamulu"

LOCATIONS = (LOCATION_UTAWALA, LOCATION_KAMULU)


class Inventory(Base):
    __tablename__ = "inventory"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    location = Column(String, nullable=False)
    quantity = Column(Integer, nullable=False, default=0)

    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    product = relationship("Product", back_populates="inventory")

    __table_args__ = (
        UniqueConstraint("product_id", "location", name="uq_inventory_product_location"),
        CheckConstraint("quantity >= 0", name="ck_inventory_quantity_non_negative"),
        CheckConstraint("location IN ('utawala', 'kamulu')", name="ck_inventory_location_valid"),
    )
