from .user import User
from .product import Product
from .cart import CartItem
from .order import Order, OrderItem, OrderStatus
