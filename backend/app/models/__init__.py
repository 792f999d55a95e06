from app.models.nutritional import Nutritional
from app.models.product import Product
from app.models.review import Review
from app.models.user import User
from app.models.order import Order, OrderProduct

__all__ = [
    "Nutritional",
    "Product",
    "Review",
    "User",
    "Order",
    "OrderProduct",
]
