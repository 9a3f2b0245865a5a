from .business import Business
from .products import Product, ProductIngredient
from .inventory import InventoryItem, InventoryTransaction

__all__ = [
    'Business',
    'Product', 'ProductIngredient',
    'InventoryItem', 'InventoryTransaction',
]
