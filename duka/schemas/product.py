from pydantic import BaseModel, Field
from datetime import datetime
from typing import Literal


class ProductCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: str | None = None
    min_stock_level: int = Field(0, ge=0)
    category_id: int | None = None


class ProductUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=200)
    description: str | None = None
    min_stock_level: int | None = Field(None, ge=0)
    category_id: int | None = None


class ProductStock(BaseModel):
    location: str
    quantity: int

    class Config:
        from_attributes = True


class ProductResponse(BaseModel):
    id: int
    name: str
    description: str | None
    min_stock_level: int
    category_id: int | None
    created_at: datetime
    inventory: list[ProductStock] = []

    class Config:
        from_attributes = True


class LocationProductResponse(BaseModel):
    id: int
    name: str
    description: str | None
    min_stock_level: int
    category_id: int | None
    location: Literal["utawala", "kamulu"]
    quantity: int
    low_stock: bool


class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)


class CategoryResponse(BaseModel):
    id: int
    name: str

    class Config:
        from_attributes = True
