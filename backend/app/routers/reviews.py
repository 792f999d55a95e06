"""
Review endpoints: customers rating the products they bought.
"""
from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session
from typing import Optional

from app.database import get_db
from app.models import Product, Review, User
from app.routers.auth import get_current_user, require_auth
from app.routers.products import get_active_product, get_product_service, require_every_field
from app.schemas.review import Review as ReviewSchema, ReviewCreate, ReviewUpdate
from app.services.product_service import ProductService, UpdateMode

router = APIRouter(tags=["reviews"])


@router.post(
    "/products/{product_id}/reviews",
    response_model=ReviewSchema,
    status_code=status.HTTP_201_CREATED
)
def store_review(
    data: ReviewCreate,
    product: Product = Depends(get_active_product),
    user: Optional[User] = Depends(get_current_user),
    service: ProductService = Depends(get_product_service)
):
    """Review a product as the authenticated user."""
    return service.store_review(data, user, product=product)


@router.api_route("/reviews/update/{review_id}", methods=["POST", "PUT", "PATCH"], response_model=ReviewSchema)
def update_review(
    review_id: int,
    data: ReviewUpdate,
    request: Request,
    user: User = Depends(require_auth),
    db: Session = Depends(get_db),
    service: ProductService = Depends(get_product_service)
):
    """
    Update one of your reviews.

    PUT replaces body and rating and needs both; POST and PATCH change
    only what is sent.
    """
    review = db.query(Review).filter(Review.id == review_id).first()
    if not review:
        raise HTTPException(status_code=404, detail="Review not found")

    if review.user_id != user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only edit your own reviews"
        )

    mode = UpdateMode.from_method(request.method)
    if mode == UpdateMode.REPLACE:
        require_every_field(ReviewCreate, data.model_dump())

    return service.update_review(data, mode, review=review)
