# duka/models/products.py

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from duka.database import Base


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, nullable=False)
    description = Column(Text, nullable=True)
    min_stock_level = Column(Integer, nullable=False, default=0)

    category_id = Column(Integer, ForeignKey("product_categories.id"), nullable=True, index=True)

    created_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    category = relationship("ProductCategory", back_populates="products")
    inventory = relationship("Inventory", back_populates="product", order_by="Inventory.location")

    __table_args__ = (
        CheckConstraint("min_stock_level >= 0", name="ck_min_stock_level_non_negative"),
    )
