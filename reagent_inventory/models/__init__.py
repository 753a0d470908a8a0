from reagent_inventory.models.user import User
from reagent_inventory.models.machine import Machine
from reagent_inventory.models.category import Category
from reagent_inventory.models.reagent import Reagent
from reagent_inventory.models.stock_transaction import StockTransaction
from reagent_inventory.models.notification import Notification

__all__ = [
    'User',
    'Category',
    'Machine',
    'Reagent',
    'StockTransaction',
    'Notification',
]
