from pydantic import BaseModel, Field
from datetime import datetime

from app.schemas.review import Review


class NutritionalBase(BaseModel):
    proteins: int = Field(ge=0)
    fats: int = Field(ge=0)
    carbohydrates: int = Field(ge=0)


class Nutritional(NutritionalBase):
    id: int

    class Config:
        from_attributes = True


class ProductCreate(BaseModel):
    """Fields of a new product. The image travels separately as a file."""
    name: str = Field(min_length=1, max_length=255)
    description: str
    composition: str
    price: int = Field(ge=0)  # Smallest currency unit
    proteins: int = Field(ge=0)
    fats: int = Field(ge=0)
    carbohydrates: int = Field(ge=0)


class ProductUpdate(BaseModel):
    """
    Fields of a product update.

    Everything is optional: a partial patch applies only what was sent,
    a full replace treats missing strings as "" and missing numbers as 0.
    """
    name: str | None = Field(default=None, max_length=255)
    description: str | None = None
    composition: str | None = None
    price: int | None = Field(default=None, ge=0)
    proteins: int | None = Field(default=None, ge=0)
    fats: int | None = Field(default=None, ge=0)
    carbohydrates: int | None = Field(default=None, ge=0)


class Product(BaseModel):
    id: int
    name: str
    description: str
    composition: str
    price: int
    img_path: str | None = None
    image_url: str | None = None  # Public URL, derived from img_path
    nutritional: Nutritional | None = None
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class ProductDetail(Product):
    """Product with its reviews."""
    reviews: list[Review] = []


class PageMeta(BaseModel):
    current_page: int
    per_page: int
    total: int
    last_page: int


class ProductsPage(BaseModel):
    data: list[Product]
    meta: PageMeta


class BestSellingProduct(BaseModel):
    product_id: int
    total_count: int
