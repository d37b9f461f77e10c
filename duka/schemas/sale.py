# schemas/sale.py

from pydantic import BaseModel, EmailStr, Field
from datetime import datetime
from typing import List, Literal
from decimal import Decimal

class SaleItemCreate(BaseModel):
    product_id: int
    quantity: int
    unit_price: Decimal
    # Optional; rejected when it disagrees with quantity x unit_price
    total_price: Decimal | None = None

class SaleCreate(BaseModel):
    customer_name: str = Field(..., min_length=1, max_length=200)
    customer_phone: str | None = None
    customer_email: EmailStr | None = None
    location: Literal["utawala", "kamulu"]
    payment_method: Literal["cash", "bank_transfer", "mpesa", "cheque"]
    payment_reference: str | None = None
    # Inventory request this sale fulfils
    request_id: int | None = None
    items: List[SaleItemCreate]

class SaleStatusUpdate(BaseModel):
    status: Literal["approved", "rejected"]

class SaleItemResponse(BaseModel):
    id: int
    product_id: int
    product_name: str
    quantity: int
    unit_price: Decimal
    total_price: Decimal
    returned_quantity: int
    effective_quantity: int

    class Config:
        from_attributes = True

class SaleResponse(BaseModel):
    id: int
    customer_name: str
    customer_phone: str | None
    customer_email: str | None
    location: str
    total_amount: Decimal
    payment_method: str
    payment_reference: str | None
    status: str
    created_by: int
    created_by_name: str | None
    approved_by: int | None
    approved_by_name: str | None
    created_at: datetime
    items: List[SaleItemResponse]
