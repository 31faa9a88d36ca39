"""Models package - exports all SQLAlchemy models."""
# Reference models
from marketplace.models.seller import Seller
from marketplace.models.category import Category, AdminCategory

# Inventory models
from marketplace.models.product import Product, ProductAvailability
from marketplace.models.order import Order, OrderItem, OrderStatus, IN_FLIGHT_STATUSES
from marketplace.models.abandoned_cart import AbandonedCart, AbandonedCartItem, CartStatus
from marketplace.models.inventory_movement import InventoryMovement, MovementType

__all__ = [
    'Seller', 'Category', 'AdminCategory',
    'Product', 'ProductAvailability',
    'Order', 'OrderItem', 'OrderStatus', 'IN_FLIGHT_STATUSES',
    'AbandonedCart', 'AbandonedCartItem', 'CartStatus',
    'InventoryMovement', 'MovementType',
]
