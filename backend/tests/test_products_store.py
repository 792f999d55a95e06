"""Tests for the client-side products store and its persisted basket."""

import asyncio
import json

import httpx
import pytest

from app.client.config import ClientSettings
from app.client.products_store import NutritionalForm, ProductForm, ProductsStore
from app.client.storage import LocalStorage, SessionStorage
from tests.conftest import make_png

PRODUCTS = [
    {"id": 1, "name": "Oats", "price": 349},
    {"id": 2, "name": "Honey", "price": 500},
]


@pytest.fixture
def settings(tmp_path):
    return ClientSettings(
        api_base_url="http://testserver/api",
        local_storage_path=tmp_path / "local_storage.json",
    )


@pytest.fixture
def local_storage(settings):
    return LocalStorage(settings.local_storage_path)


@pytest.fixture
def session_storage():
    return SessionStorage({"token": "abc123"})


@pytest.fixture
def requests_seen():
    return []


@pytest.fixture
def responses():
    """Status code per (method, path); anything else answers 200."""
    return {}


@pytest.fixture
def transport(requests_seen, responses):
    def handler(request: httpx.Request) -> httpx.Response:
        requests_seen.append(request)
        status_code = responses.get((request.method, request.url.path), 200)
        if request.url.path == "/api/products/index":
            return httpx.Response(status_code, json={"data": PRODUCTS, "meta": {}})
        return httpx.Response(status_code, json={})

    return httpx.MockTransport(handler)


def make_store(settings, local_storage, session_storage, transport) -> ProductsStore:
    client = httpx.AsyncClient(transport=transport, base_url=settings.api_base_url)
    return ProductsStore(local_storage, session_storage, client=client, settings=settings)


@pytest.fixture
def store(settings, local_storage, session_storage, transport):
    return make_store(settings, local_storage, session_storage, transport)


@pytest.fixture
def form():
    return ProductForm(
        name="Oats",
        description="Whole grain",
        composition="oats",
        price=349,
        nutritional=NutritionalForm(proteins=13, fats=7, carbohydrates=60),
        img=("oats.png", make_png(), "image/png"),
    )


class TestBasket:

    def test_increment_on_absent_id_creates_entry(self, store):
        store.add_to_basket(7, "+")

        assert store.get_product_in_basket_by_id(7) == {"id": 7, "count": 1}

    def test_add_add_remove_scenario(self, store):
        store.add_to_basket(7, "+")
        store.add_to_basket(7, "+")
        store.add_to_basket(7, "-")

        assert store.list_in_basket == {"7": {"id": 7, "count": 1}}

        store.add_to_basket(7, "-")

        assert store.list_in_basket == {}

    def test_decrement_never_leaves_empty_entry(self, store):
        store.add_to_basket(3, "-")
        store.add_to_basket(3, "-")

        assert store.get_product_in_basket_by_id(3) is None
        assert store.list_in_basket == {}

    def test_every_change_is_persisted(self, store, settings):
        store.add_to_basket(5, "+")

        on_disk = json.loads(settings.local_storage_path.read_text())
        assert json.loads(on_disk["basket"]) == {"5": {"id": 5, "count": 1}}

    def test_remove_by_id_ignores_count(self, store, local_storage):
        for _ in range(4):
            store.add_to_basket(9, "+")

        store.remove_by_id(9)

        assert store.get_product_in_basket_by_id(9) is None
        assert json.loads(local_storage.get_item("basket")) == {}

    def test_basket_survives_restart(self, store, settings, session_storage, transport):
        store.add_to_basket(7, "+")
        store.add_to_basket(7, "+")
        store.add_to_basket(2, "+")

        reloaded = make_store(settings, LocalStorage(settings.local_storage_path), session_storage, transport)

        assert reloaded.list_in_basket == store.list_in_basket

    def test_unreadable_basket_starts_empty(self, settings, session_storage, transport):
        local_storage = LocalStorage(settings.local_storage_path)
        local_storage.set_item("basket", "{not json")

        store = make_store(settings, local_storage, session_storage, transport)

        assert store.list_in_basket == {}

    def test_lookup_accepts_string_or_int_id(self, store):
        store.add_to_basket(4, "+")
        assert store.get_product_in_basket_by_id("4") == {"id": 4, "count": 1}


class TestCatalog:

    def test_token_read_from_session_storage(self, store):
        assert store.token == "Bearer abc123"

    def test_no_token_sends_no_header(self, settings, local_storage, transport, requests_seen, form):
        store = make_store(settings, local_storage, SessionStorage(), transport)

        assert store.token is None
        asyncio.run(store.create(form))
        assert "authorization" not in requests_seen[0].headers

    def test_get_all_tags_items_with_zero_count(self, store):
        assert asyncio.run(store.get_all()) is True

        assert store.list == [
            {"id": 1, "name": "Oats", "price": 349, "count": 0},
            {"id": 2, "name": "Honey", "price": 500, "count": 0},
        ]

    def test_get_product_by_id_is_loose(self, store):
        asyncio.run(store.get_all())

        assert store.get_product_by_id("2")["name"] == "Honey"
        assert store.get_product_by_id(2)["name"] == "Honey"
        assert store.get_product_by_id(42) is None

    def test_create_sends_multipart_and_refreshes(self, store, form, requests_seen):
        assert asyncio.run(store.create(form)) is True

        sent = requests_seen[0]
        assert (sent.method, sent.url.path) == ("POST", "/api/products/store")
        assert sent.headers["authorization"] == "Bearer abc123"
        assert sent.headers["content-type"].startswith("multipart/form-data")
        for field in (b'name="name"', b'name="image"', b'name="proteins"', b'name="price"'):
            assert field in sent.content
        assert requests_seen[1].url.path == "/api/products/index"
        assert len(store.list) == 2

    def test_create_failure_returns_false(self, store, form, responses, requests_seen):
        responses[("POST", "/api/products/store")] = 422

        assert asyncio.run(store.create(form)) is False
        assert len(requests_seen) == 1
        assert store.list == []

    def test_network_error_returns_false(self, settings, local_storage, session_storage, form):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        store = make_store(settings, local_storage, session_storage, httpx.MockTransport(handler))

        assert asyncio.run(store.create(form)) is False

    def test_update_without_image_omits_it(self, store, form, requests_seen):
        form.id = 1
        form.img = None

        assert asyncio.run(store.update(form)) is True

        sent = requests_seen[0]
        assert (sent.method, sent.url.path) == ("POST", "/api/products/update/1")
        assert b"image" not in sent.content
        assert b"price=349" in sent.content

    def test_update_with_image_sends_it(self, store, form, requests_seen):
        form.id = 1

        asyncio.run(store.update(form))

        assert b'name="image"' in requests_seen[0].content

    def test_delete_from_db(self, store, requests_seen):
        assert asyncio.run(store.delete_from_db(2)) is True

        sent = requests_seen[0]
        assert (sent.method, sent.url.path) == ("DELETE", "/api/products/destroy/2")
        assert sent.headers["authorization"] == "Bearer abc123"
        assert len(store.list) == 2

    def test_delete_failure_returns_false(self, store, responses):
        responses[("DELETE", "/api/products/destroy/2")] = 403
        assert asyncio.run(store.delete_from_db(2)) is False

    def test_stale_list_response_is_dropped(self, settings, local_storage, session_storage):
        calls = []

        async def scenario():
            first_arrived = asyncio.Event()
            release_first = asyncio.Event()

            async def handler(request):
                calls.append(request)
                if len(calls) == 1:
                    first_arrived.set()
                    await release_first.wait()
                    return httpx.Response(200, json={"data": [{"id": 1, "name": "old"}]})
                return httpx.Response(200, json={"data": [{"id": 2, "name": "new"}]})

            store = make_store(settings, local_storage, session_storage, httpx.MockTransport(handler))
            first = asyncio.create_task(store.get_all())
            await first_arrived.wait()

            assert await store.get_all() is True
            release_first.set()
            assert await first is False
            return store

        store = asyncio.run(scenario())

        assert store.list == [{"id": 2, "name": "new", "count": 0}]
