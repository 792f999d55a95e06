from app.schemas.product import (
    Nutritional, Product, ProductCreate, ProductUpdate, ProductDetail,
    ProductsPage, PageMeta, BestSellingProduct,
)
from app.schemas.review import Review, ReviewCreate, ReviewUpdate
from app.schemas.user import User, UserCreate

__all__ = [
    "Nutritional", "Product", "ProductCreate", "ProductUpdate", "ProductDetail",
    "ProductsPage", "PageMeta", "BestSellingProduct",
    "Review", "ReviewCreate", "ReviewUpdate",
    "User", "UserCreate",
]
