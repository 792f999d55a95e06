"""Pytest configuration: in-memory database, temporary disk, test client."""

import os
import tempfile
from io import BytesIO

# Must be set before the app reads its settings
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("STORAGE_ROOT", tempfile.mkdtemp(prefix="nutrishop-storage-"))

import pytest
from fastapi.testclient import TestClient
from PIL import Image
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.database import Base, get_db
from app.main import app as api
from app.models import User
from app.schemas.product import ProductCreate
from app.services.auth import issue_token
from app.services.product_service import ProductService
from app.services.storage import LocalFileStorage, UploadedFile, get_storage


def make_png(color="red", size=(8, 8)) -> bytes:
    """A small valid PNG."""
    output = BytesIO()
    Image.new("RGB", size, color).save(output, format="PNG")
    return output.getvalue()


@pytest.fixture
def engine():
    """Fresh in-memory SQLite database shared by every connection."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    yield session
    session.close()


@pytest.fixture
def storage(tmp_path):
    return LocalFileStorage(root=tmp_path / "public", url_prefix="/storage")


@pytest.fixture
def png_bytes():
    return make_png()


@pytest.fixture
def image(png_bytes):
    return UploadedFile(filename="oats.png", content=png_bytes, content_type="image/png")


@pytest.fixture
def service(db, storage):
    return ProductService(db, storage)


@pytest.fixture
def product_data():
    return ProductCreate(
        name="Rolled oats",
        description="Whole grain oats",
        composition="100% oats",
        price=349,
        proteins=13,
        fats=7,
        carbohydrates=60,
    )


@pytest.fixture
def product(service, product_data, image):
    return service.store(product_data, image)


@pytest.fixture
def user(db):
    user = User(email="ann@example.com", name="Ann")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def other_user(db):
    user = User(email="bob@example.com", name="Bob")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def bearer(user: User) -> dict:
    return {"Authorization": f"Bearer {issue_token(user)}"}


@pytest.fixture
def auth_headers(user):
    return bearer(user)


@pytest.fixture
def client(db, storage):
    """FastAPI test client bound to the test database and disk."""

    def override_get_db():
        yield db

    api.dependency_overrides[get_db] = override_get_db
    api.dependency_overrides[get_storage] = lambda: storage
    yield TestClient(api)
    api.dependency_overrides.clear()
