"""
Client-side products store.

Keeps a cached copy of the product list and the shopper's basket. The
basket is written to local storage on every change and read back when a
store is created, so it survives restarts. Catalog changes go to the
backend and, on success, the cached list is refreshed.

Usage:
    async with ProductsStore() as store:
        await store.get_all()
        store.add_to_basket(7, "+")
"""
import json
import logging
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from app.client.config import ClientSettings, get_client_settings
from app.client.storage import LocalStorage, SessionStorage, WebStorage

logger = logging.getLogger(__name__)

INCREMENT = "+"
DECREMENT = "-"


@dataclass
class NutritionalForm:
    proteins: int
    fats: int
    carbohydrates: int


@dataclass
class ProductForm:
    """
    A product as entered in the catalog editor.

    img is an httpx file tuple: (filename, content, content_type). Leave it
    None on update to keep the current image.
    """
    name: str
    description: str
    composition: str
    price: int
    nutritional: NutritionalForm
    img: Optional[tuple] = None
    id: Optional[int] = None


class ProductsStore:
    """Product list cache and persisted basket."""

    def __init__(
        self,
        local_storage: Optional[WebStorage] = None,
        session_storage: Optional[WebStorage] = None,
        client: Optional[httpx.AsyncClient] = None,
        settings: Optional[ClientSettings] = None
    ):
        self.settings = settings or get_client_settings()
        self.local_storage = local_storage or LocalStorage(self.settings.local_storage_path)
        self.session_storage = session_storage or SessionStorage()

        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            base_url=self.settings.api_base_url,
            timeout=self.settings.timeout
        )

        self.list: list[dict[str, Any]] = []
        self.list_in_basket: dict[str, dict[str, Any]] = self._load_basket()

        # Read once; a token rotated later in the session is not picked up
        raw_token = self.session_storage.get_item(self.settings.token_key)
        self.token: Optional[str] = f"Bearer {raw_token}" if raw_token else None

        self._generation = 0

    async def __aenter__(self) -> "ProductsStore":
        return self

    async def __aexit__(self, *exc_info):
        await self.close()

    async def close(self):
        if self._owns_client:
            await self.client.aclose()

    # ============== Catalog (backend) ==============

    async def create(self, form: ProductForm) -> bool:
        """Create a product. True on success, False on any failure."""
        data, files = self._build_payload(form)
        return await self._send("POST", "/products/store", data=data, files=files)

    async def update(self, form: ProductForm) -> bool:
        """Update a product; the image is only sent if a new one was chosen."""
        data, files = self._build_payload(form)
        return await self._send("POST", f"/products/update/{form.id}", data=data, files=files)

    async def delete_from_db(self, product_id) -> bool:
        return await self._send("DELETE", f"/products/destroy/{product_id}")

    async def get_all(self) -> bool:
        """
        Replace the cached list with the backend's.

        Each item gets a count of 0 for the UI to play with. If another
        get_all was started while this one was in flight, this response is
        stale and is dropped; returns False in that case.
        """
        self._generation += 1
        generation = self._generation

        response = await self.client.get("/products/index")
        response.raise_for_status()
        items = response.json()["data"]

        if generation != self._generation:
            logger.debug(f"Dropping stale product list (request {generation}, latest {self._generation})")
            return False

        self.list = [{**item, "count": 0} for item in items]
        return True

    def get_product_by_id(self, product_id) -> Optional[dict]:
        return next(
            (product for product in self.list if str(product.get("id")) == str(product_id)),
            None
        )

    # ============== Basket (local) ==============

    def add_to_basket(self, product_id, direction: str):
        """
        Add ("+") or remove (anything else) one unit of a product.

        An entry whose count drops to zero is removed.
        """
        key = str(product_id)
        entry = self.list_in_basket.setdefault(key, {"id": product_id, "count": 0})

        if direction == INCREMENT:
            entry["count"] += 1
        else:
            entry["count"] -= 1
            if entry["count"] <= 0:
                del self.list_in_basket[key]

        self._persist_basket()

    def remove_by_id(self, product_id):
        self.list_in_basket.pop(str(product_id), None)
        self._persist_basket()

    def get_product_in_basket_by_id(self, product_id) -> Optional[dict]:
        return self.list_in_basket.get(str(product_id))

    # ============== Helpers ==============

    def _load_basket(self) -> dict[str, dict[str, Any]]:
        raw = self.local_storage.get_item(self.settings.basket_key)
        if not raw:
            return {}
        try:
            basket = json.loads(raw)
        except ValueError:
            logger.warning("Stored basket is not valid JSON, starting empty")
            return {}
        if not isinstance(basket, dict):
            return {}
        return {str(key): entry for key, entry in basket.items()}

    def _persist_basket(self):
        self.local_storage.set_item(self.settings.basket_key, json.dumps(self.list_in_basket))

    def _auth_headers(self) -> dict[str, str]:
        return {"Authorization": self.token} if self.token else {}

    def _build_payload(self, form: ProductForm) -> tuple[dict[str, str], Optional[dict]]:
        data = {
            "name": form.name,
            "description": form.description,
            "proteins": str(form.nutritional.proteins),
            "fats": str(form.nutritional.fats),
            "carbohydrates": str(form.nutritional.carbohydrates),
            "composition": form.composition,
            "price": str(form.price),
        }
        files = {"image": form.img} if form.img else None
        return data, files

    async def _send(self, method: str, url: str, data: Optional[dict] = None, files: Optional[dict] = None) -> bool:
        """Send a catalog change; refresh the list if it went through."""
        try:
            response = await self.client.request(
                method,
                url,
                data=data,
                files=files,
                headers=self._auth_headers()
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(f"{method} {url} failed: {e}")
            return False

        try:
            await self.get_all()
        except (httpx.HTTPError, ValueError, KeyError) as e:
            logger.warning(f"Product list refresh failed: {e}")

        return True
