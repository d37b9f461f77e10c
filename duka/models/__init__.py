"""Import every model so Base.metadata and relationship lookups see them all."""

from duka.models.users import User
from duka.models.categories import ProductCategory
from duka.models.products import Product
from duka.models.inventory import Inventory
from duka.models.inventory_transactions import InventoryTransaction
from duka.models.inventory_requests import InventoryRequest
from duka.models.sales import Sale
from duka.models.sale_items import SaleItem
from duka.models.sale_returns import SaleReturn
from duka.models.sale_return_items import SaleReturnItem

__all__ = [
    "User",
    "ProductCategory",
    "Product",
    "Inventory",
    "InventoryTransaction",
    "InventoryRequest",
    "Sale",
    "SaleItem",
    "SaleReturn",
    "SaleReturnItem",
]
