"""
Product Service

Mutating product and review operations, plus sales statistics.

Every operation that writes more than one row runs in a single database
transaction. An image stored before a transaction that later fails is
deleted again, so no orphaned files are left on the public disk.
"""
import calendar
import logging
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from app.models import Nutritional, Order, OrderProduct, Product, Review, User
from app.schemas.product import ProductCreate, ProductUpdate, BestSellingProduct
from app.schemas.review import ReviewCreate, ReviewUpdate
from app.services.storage import FileStorage, UploadedFile, get_storage, upload_image

logger = logging.getLogger(__name__)

PRODUCT_STRING_FIELDS = ("name", "description", "composition")
PRODUCT_INT_FIELDS = ("price",)
NUTRITIONAL_FIELDS = ("proteins", "fats", "carbohydrates")


class UpdateMode(str, Enum):
    """How an update treats fields missing from the request."""
    REPLACE = "replace"  # PUT: every field is sent and overwritten
    PATCH = "patch"  # anything else: missing fields are kept

    @classmethod
    def from_method(cls, method: Optional[str]) -> "UpdateMode":
        if method and method.upper() == "PUT":
            return cls.REPLACE
        return cls.PATCH


def _as_str(value) -> str:
    return "" if value is None else str(value)


def _as_int(value) -> int:
    return 0 if value is None else int(value)


def month_bounds(year: int, month: int) -> tuple[datetime, datetime]:
    """First and last instant of a calendar month."""
    if not 1 <= month <= 12:
        raise ValueError(f"Month must be between 1 and 12, got {month}")
    last_day = calendar.monthrange(year, month)[1]
    start = datetime(year, month, 1)
    end = datetime(year, month, last_day, 23, 59, 59, 999999)
    return start, end


class ProductService:
    """
    Product and review writes for one request.

    The target product or review can be bound with set_product/set_review
    or passed to each operation; an explicit argument always wins.
    """

    def __init__(self, db: Session, storage: Optional[FileStorage] = None):
        self.db = db
        self.storage = storage or get_storage()
        self.product: Optional[Product] = None
        self.review: Optional[Review] = None

    def set_product(self, product: Product) -> "ProductService":
        self.product = product
        return self

    def set_review(self, review: Review) -> "ProductService":
        self.review = review
        return self

    # ============== Products ==============

    def store(self, data: ProductCreate, image: UploadedFile) -> Product:
        """
        Create a product with its nutritional record and image.

        Raises:
            StorageError: if the image cannot be stored; nothing is written
            SQLAlchemyError: if an insert fails; the stored image is removed
        """
        path = upload_image(self.storage, image)

        try:
            nutritional = Nutritional(
                proteins=data.proteins,
                fats=data.fats,
                carbohydrates=data.carbohydrates,
            )
            self.db.add(nutritional)
            self.db.flush()

            product = Product(
                name=data.name,
                description=data.description,
                composition=data.composition,
                price=data.price,
                img_path=path,
                nutritional_id=nutritional.id,
            )
            self.db.add(product)
            self.db.commit()
        except Exception:
            self.db.rollback()
            self._discard_upload(path)
            raise

        self.db.refresh(product)
        logger.info(f"Created product {product.id}: {product.name}")
        return product

    def update(
        self,
        data: ProductUpdate,
        mode: UpdateMode = UpdateMode.PATCH,
        image: Optional[UploadedFile] = None,
        product: Optional[Product] = None
    ) -> Product:
        """
        Update a product and its nutritional record together.

        A new image, if given, replaces the stored image path.
        """
        product = self._require_product(product)
        path = upload_image(self.storage, image)

        try:
            if path:
                product.img_path = path

            if mode == UpdateMode.REPLACE:
                values = {field: _as_str(getattr(data, field)) for field in PRODUCT_STRING_FIELDS}
                values.update({field: _as_int(getattr(data, field)) for field in PRODUCT_INT_FIELDS})
                macros = {field: _as_int(getattr(data, field)) for field in NUTRITIONAL_FIELDS}
            else:
                supplied = data.model_dump(exclude_unset=True, exclude_none=True)
                values = {k: v for k, v in supplied.items() if k in PRODUCT_STRING_FIELDS + PRODUCT_INT_FIELDS}
                macros = {k: v for k, v in supplied.items() if k in NUTRITIONAL_FIELDS}

            for field, value in values.items():
                setattr(product, field, value)

            nutritional = product.nutritional
            for field, value in macros.items():
                setattr(nutritional, field, value)

            self.db.commit()
        except Exception:
            self.db.rollback()
            self._discard_upload(path)
            raise

        self.db.refresh(product)
        logger.info(f"Updated product {product.id} ({mode.value})")
        return product

    def destroy(self, product: Optional[Product] = None) -> Product:
        """Soft delete a product. Its orders and reviews are kept."""
        product = self._require_product(product)
        product.deleted_at = datetime.now(timezone.utc)
        self.db.commit()
        logger.info(f"Deleted product {product.id}")
        return product

    # ============== Reviews ==============

    def store_review(
        self,
        data: ReviewCreate,
        user: Optional[User],
        product: Optional[Product] = None
    ) -> Review:
        """Create a review by user on product."""
        if user is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Not authenticated",
                headers={"WWW-Authenticate": "Bearer"},
            )
        product = self._require_product(product)

        review = Review(
            body=data.body,
            rating=data.rating,
            user_id=user.id,
            product_id=product.id,
        )
        self.db.add(review)
        self.db.commit()
        self.db.refresh(review)
        return review

    def update_review(
        self,
        data: ReviewUpdate,
        mode: UpdateMode = UpdateMode.PATCH,
        review: Optional[Review] = None
    ) -> Review:
        review = review if review is not None else self.review
        if review is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="No review selected"
            )

        if mode == UpdateMode.REPLACE:
            review.body = _as_str(data.body)
            review.rating = _as_int(data.rating)
        else:
            for field, value in data.model_dump(exclude_unset=True, exclude_none=True).items():
                setattr(review, field, value)

        self.db.commit()
        self.db.refresh(review)
        return review

    # ============== Statistics ==============

    def monthly_best_selling(self, year: int, month: int) -> list[BestSellingProduct]:
        """
        Total ordered quantity per product for orders created in a month.

        Rows come back in no particular order.
        """
        start, end = month_bounds(year, month)
        # Compare strictly after the previous month's last instant: SQLite
        # compares text, and "YYYY-MM-01 00:00:00" from CURRENT_TIMESTAMP
        # sorts below "YYYY-MM-01 00:00:00.000000".
        after = start - timedelta(microseconds=1)

        rows = self.db.query(
            OrderProduct.product_id,
            func.sum(OrderProduct.count).label("total_count")
        ).join(
            Order, Order.id == OrderProduct.order_id
        ).filter(
            Order.created_at > after,
            Order.created_at <= end
        ).group_by(
            OrderProduct.product_id
        ).all()

        return [
            BestSellingProduct(product_id=row.product_id, total_count=int(row.total_count))
            for row in rows
        ]

    # ============== Helpers ==============

    def _require_product(self, product: Optional[Product]) -> Product:
        product = product if product is not None else self.product
        if product is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="No product selected"
            )
        return product

    def _discard_upload(self, path: Optional[str]):
        if not path:
            return
        try:
            self.storage.delete(path)
            logger.warning(f"Removed {path} after failed transaction")
        except Exception as e:
            logger.error(f"Could not remove orphaned upload {path}: {e}")
