from .base import Base
from .delivery import Delivery
from .order import Order
from .order_item import OrderItem
from .rider import Rider
from .status_audit import StatusAudit

__all__ = [
    "Base",
    "Delivery",
    "Order",
    "OrderItem",
    "Rider",
    "StatusAudit",
]
