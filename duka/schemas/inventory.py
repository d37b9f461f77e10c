from pydantic import BaseModel, Field
from datetime import datetime
from typing import Literal

Location = Literal["utawala", "kamulu"]


class InventoryAdjust(BaseModel):
    product_id: int
    location: Location
    # Signed: positive adds stock, negative removes it
    quantity: int
    reason: str | None = Field(None, max_length=200)


class InventoryAdjustResponse(BaseModel):
    product_id: int
    location: Location
    quantity: int


class InventoryResponse(BaseModel):
    id: int
    product_id: int
    location: str
    quantity: int
    updated_at: datetime

    class Config:
        from_attributes = True


class InventoryTransactionResponse(BaseModel):
    id: int
    product_id: int
    transaction_type: str
    from_location: str | None
    to_location: str | None
    quantity: int
    reference: str | None
    created_by: int
    created_at: datetime

    class Config:
        from_attributes = True


class InventoryRequestCreate(BaseModel):
    product_id: int
    location: Location
    quantity: int
    notes: str | None = None


class InventoryRequestResponse(BaseModel):
    id: int
    product_id: int
    location: str
    quantity: int
    status: str
    notes: str | None
    requested_by: int
    approved_by: int | None
    sale_id: int | None
    created_at: datetime

    class Config:
        from_attributes = True
