from app.client.products_store import ProductsStore, ProductForm, NutritionalForm
from app.client.storage import LocalStorage, SessionStorage

__all__ = [
    "ProductsStore",
    "ProductForm",
    "NutritionalForm",
    "LocalStorage",
    "SessionStorage",
]
