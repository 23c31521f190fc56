from .catalog import Product, Warehouse
from .auth import User
from .inventory import InventoryRecord
from .sales import Sale, SaleItem
from .transfers import StockTransfer, StockTransferItem
from .packing import Packing

__all__ = [
    'Product', 'Warehouse',
    'User',
    'InventoryRecord',
    'Sale', 'SaleItem',
    'StockTransfer', 'StockTransferItem',
    'Packing',
]
