from pydantic import BaseModel, Field
from datetime import datetime


class ReviewCreate(BaseModel):
    body: str
    rating: int = Field(ge=1, le=5)


class ReviewUpdate(BaseModel):
    body: str | None = None
    rating: int | None = Field(default=None, ge=1, le=5)


class Review(BaseModel):
    id: int
    body: str
    rating: int
    user_id: int
    product_id: int
    created_at: datetime | None = None

    class Config:
        from_attributes = True
