# schemas/report.py

from pydantic import BaseModel
from typing import List


class InventoryReportRow(BaseModel):
    product_id: int
    product_name: str
    description: str | None
    min_stock_level: int
    utawala: int
    kamulu: int
    total_quantity: int
    low_stock: bool
    out_of_stock: bool


class InventoryReportResponse(BaseModel):
    location: str
    total_products: int
    total_quantity: int
    low_stock_count: int
    out_of_stock_count: int
    results: List[InventoryReportRow]
