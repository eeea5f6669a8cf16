from .outlets import Outlet
from .auth import User, SessionToken
from .catalog import Category, Product, RawMaterial
from .material_orders import MaterialOrder, MaterialOrderItem
from .sales import Order, OrderItem
from .cash import DailyCash

__all__ = [
    'Outlet',
    'User', 'SessionToken',
    'Category', 'Product', 'RawMaterial',
    'MaterialOrder', 'MaterialOrderItem',
    'Order', 'OrderItem',
    'DailyCash',
]
