import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from app.config import get_settings
from app.database import init_db
from app.routers.auth import router as auth_router
from app.routers.products import router as products_router
from app.routers.reviews import router as reviews_router
from app.services.cache import cache
from app.services.storage import StorageError

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

settings = get_settings()

# Public disk for uploaded images
STORAGE_DIR = settings.storage_root
STORAGE_DIR.mkdir(parents=True, exist_ok=True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize database and cache on startup."""
    logger.info("Starting up... Initializing database")
    init_db()
    logger.info("Connecting to Redis cache...")
    await cache.connect()
    yield
    logger.info("Shutting down...")
    await cache.disconnect()


app = FastAPI(
    title="Nutrishop API",
    description="Product catalog with nutritional facts, reviews and sales statistics",
    version="1.0.0",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Uploaded images
app.mount(settings.storage_url_prefix, StaticFiles(directory=str(STORAGE_DIR)), name="storage")

# Include routers
app.include_router(auth_router, prefix=settings.api_prefix)
app.include_router(products_router, prefix=settings.api_prefix)
app.include_router(reviews_router, prefix=settings.api_prefix)


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError):
    logger.error(f"Upload rejected on {request.url.path}: {exc}")
    return JSONResponse(status_code=422, content={"detail": str(exc)})


@app.get("/")
def root():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "app": "Nutrishop API",
        "version": "1.0.0"
    }
