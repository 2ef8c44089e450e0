from .inventory import Product, InventorySummary, StockTransaction, TRANSACTION_TYPES

__all__ = [
    'Product', 'InventorySummary', 'StockTransaction', 'TRANSACTION_TYPES',
]
