import math
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Request, UploadFile, status
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from sqlalchemy.orm import Session, joinedload

from app.config import get_settings
from app.database import get_db
from app.models import Product, User
from app.routers.auth import require_auth
from app.schemas.product import (
    Product as ProductSchema, ProductCreate, ProductUpdate, ProductDetail,
    ProductsPage, PageMeta, BestSellingProduct,
)
from app.services.cache import cache
from app.services.product_service import ProductService, UpdateMode
from app.services.storage import FileStorage, UploadedFile, get_storage, public_url

router = APIRouter(prefix="/products", tags=["products"])


# ============== Dependencies ==============

def get_product_service(
    db: Session = Depends(get_db),
    storage: FileStorage = Depends(get_storage)
) -> ProductService:
    """A fresh service per request."""
    return ProductService(db, storage)


def get_active_product(product_id: int, db: Session = Depends(get_db)) -> Product:
    product = db.query(Product).options(
        joinedload(Product.nutritional)
    ).filter(
        Product.id == product_id,
        Product.deleted_at.is_(None)
    ).first()
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


def serialize_product(product: Product, storage: FileStorage, schema=ProductSchema):
    result = schema.model_validate(product)
    result.image_url = public_url(storage, product.img_path)
    return result


def require_every_field(schema, values: dict):
    """A full replace needs every field; reject it like any invalid body."""
    try:
        schema(**values)
    except ValidationError as e:
        raise RequestValidationError(e.errors(include_url=False))


async def read_upload(image: Optional[UploadFile]) -> Optional[UploadedFile]:
    if image is None or not image.filename:
        return None
    return UploadedFile(
        filename=image.filename,
        content=await image.read(),
        content_type=image.content_type
    )


# ============== Endpoints ==============

@router.get("/index", response_model=ProductsPage)
async def list_products(
    page: int = Query(1, ge=1),
    per_page: int | None = Query(None, ge=1, le=100),
    db: Session = Depends(get_db),
    storage: FileStorage = Depends(get_storage)
):
    """List products, newest last, one page at a time."""
    per_page = per_page or get_settings().products_per_page
    params = {"page": page, "per_page": per_page}

    cached = await cache.get_products(params)
    if cached is not None:
        return cached

    query = db.query(Product).filter(Product.deleted_at.is_(None))
    total = query.count()
    products = query.options(
        joinedload(Product.nutritional)
    ).order_by(Product.id).offset((page - 1) * per_page).limit(per_page).all()

    result = ProductsPage(
        data=[serialize_product(p, storage) for p in products],
        meta=PageMeta(
            current_page=page,
            per_page=per_page,
            total=total,
            last_page=max(1, math.ceil(total / per_page))
        )
    )

    await cache.set_products(params, result.model_dump(mode="json"))
    return result


@router.get("/statistics/monthly-best-selling", response_model=list[BestSellingProduct])
async def monthly_best_selling(
    year: int = Query(..., ge=1970, le=9999),
    month: int = Query(..., ge=1, le=12),
    service: ProductService = Depends(get_product_service)
):
    """Total quantity ordered per product during a calendar month."""
    params = {"year": year, "month": month}

    cached = await cache.get_stats(params)
    if cached is not None:
        return cached

    rows = service.monthly_best_selling(year, month)

    # Only closed months are final
    now = datetime.now()
    if (year, month) < (now.year, now.month):
        await cache.set_stats(params, [row.model_dump() for row in rows])

    return rows


@router.get("/show/{product_id}", response_model=ProductDetail)
def show_product(
    product: Product = Depends(get_active_product),
    storage: FileStorage = Depends(get_storage)
):
    """Get a product with its nutritional facts and reviews."""
    return serialize_product(product, storage, ProductDetail)


@router.post("/store", response_model=ProductSchema, status_code=status.HTTP_201_CREATED)
async def store_product(
    name: str = Form(..., min_length=1, max_length=255),
    description: str = Form(...),
    composition: str = Form(...),
    price: int = Form(..., ge=0),
    proteins: int = Form(..., ge=0),
    fats: int = Form(..., ge=0),
    carbohydrates: int = Form(..., ge=0),
    image: UploadFile = File(...),
    user: User = Depends(require_auth),
    service: ProductService = Depends(get_product_service)
):
    """Create a product with its nutritional facts and image. Requires authentication."""
    upload = await read_upload(image)
    if upload is None:
        raise HTTPException(status_code=422, detail="Image is required")

    data = ProductCreate(
        name=name,
        description=description,
        composition=composition,
        price=price,
        proteins=proteins,
        fats=fats,
        carbohydrates=carbohydrates,
    )
    product = service.store(data, upload)
    await cache.invalidate_products()
    return serialize_product(product, service.storage)


@router.api_route("/update/{product_id}", methods=["POST", "PUT", "PATCH"], response_model=ProductSchema)
async def update_product(
    request: Request,
    name: str | None = Form(None, max_length=255),
    description: str | None = Form(None),
    composition: str | None = Form(None),
    price: int | None = Form(None, ge=0),
    proteins: int | None = Form(None, ge=0),
    fats: int | None = Form(None, ge=0),
    carbohydrates: int | None = Form(None, ge=0),
    method_override: str | None = Form(None, alias="_method"),
    image: UploadFile | None = File(None),
    product: Product = Depends(get_active_product),
    user: User = Depends(require_auth),
    service: ProductService = Depends(get_product_service)
):
    """
    Update a product. Requires authentication.

    PUT (or POST with `_method=PUT`) replaces every field and needs all
    of them; any other method applies only the fields sent. Omit `image`
    to keep the current one.
    """
    supplied = {
        "name": name,
        "description": description,
        "composition": composition,
        "price": price,
        "proteins": proteins,
        "fats": fats,
        "carbohydrates": carbohydrates,
    }
    data = ProductUpdate(**{k: v for k, v in supplied.items() if v is not None})
    mode = UpdateMode.from_method(method_override or request.method)
    if mode == UpdateMode.REPLACE:
        require_every_field(ProductCreate, supplied)

    product = service.update(data, mode, image=await read_upload(image), product=product)
    await cache.invalidate_products()
    return serialize_product(product, service.storage)


@router.delete("/destroy/{product_id}")
async def destroy_product(
    product: Product = Depends(get_active_product),
    user: User = Depends(require_auth),
    service: ProductService = Depends(get_product_service)
):
    """Delete a product. Requires authentication."""
    service.destroy(product)
    await cache.invalidate_products()
    return {"message": "Product deleted", "id": product.id}
