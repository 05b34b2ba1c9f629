# tests/api/test_links.py
"""API tests for the shorten form and short-link redirects."""

import re
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI, status
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from shrnq.core.config import Settings
from shrnq.core.rate_limit import limiter
from shrnq.db.kv import get_kv_store
from shrnq.db.session import get_async_session
from shrnq.exceptions import StoreUnavailableError
from shrnq.main import create_app
from tests.utils.memory_kv import InMemoryKVStore


async def shorten_form(client: AsyncClient, url: str, **overrides: str) -> dict:
    """Loads the index page and returns a correctly filled shorten form."""
    response = await client.get("/")
    assert response.status_code == status.HTTP_200_OK, response.text
    page = response.json()
    honeypot = page["honeypot"]
    form = {
        "url": url,
        "csrf": page["csrfToken"],
        honeypot["nameFieldName"]: "",
        honeypot["validFromFieldName"]: honeypot["encryptedValidFrom"],
    }
    form.update(overrides)
    return form


@pytest.mark.asyncio
async def test_index_page_data(test_client: AsyncClient) -> None:
    test_client.cookies.set("theme", "dark")
    response = await test_client.get("/")

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["requestInfo"] == {
        "origin": "https://test",
        "path": "/",
        "userPrefs": {"theme": "dark"},
    }
    assert data["csrfToken"]
    assert data["honeypot"]["nameFieldName"] == "name__confirm"
    assert data["user"] is None


@pytest.mark.asyncio
async def test_shorten_and_follow(test_client: AsyncClient, kv_store: InMemoryKVStore) -> None:
    form = await shorten_form(test_client, "https://example.com/page")

    response = await test_client.post("/", data=form)

    assert response.status_code == status.HTTP_200_OK, response.text
    data = response.json()
    assert data["status"] == "success"
    match = re.fullmatch(r"test/([0-9A-Za-z]{5})", data["url"])
    assert match is not None
    slug = match.group(1)
    assert kv_store.data[slug] == "https://example.com/page"

    redirect = await test_client.get(f"/{slug}")
    assert redirect.status_code == status.HTTP_301_MOVED_PERMANENTLY
    assert redirect.headers["location"] == "https://example.com/page"


@pytest.mark.asyncio
async def test_shorten_uses_base_url(
    app: FastAPI, test_client: AsyncClient, kv_store: InMemoryKVStore
) -> None:
    app.state.settings = app.state.settings.model_copy(update={"BASE_URL": "https://sho.rt"})
    form = await shorten_form(test_client, "https://example.com")

    response = await test_client.post("/", data=form)

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["url"].startswith("sho.rt/")


@pytest.mark.asyncio
async def test_shorten_rejects_non_https(
    test_client: AsyncClient, kv_store: InMemoryKVStore
) -> None:
    form = await shorten_form(test_client, "http://example.com")

    response = await test_client.post("/", data=form)

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    data = response.json()
    assert data["status"] == "error"
    assert data["errors"]["url"] == ["URL must start with https://"]
    assert kv_store.data == {}


@pytest.mark.asyncio
async def test_shorten_rejects_invalid_url(test_client: AsyncClient) -> None:
    form = await shorten_form(test_client, "not a url")

    response = await test_client.post("/", data=form)

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["errors"]["url"] == ["Invalid url"]


@pytest.mark.asyncio
async def test_shorten_requires_url_field(test_client: AsyncClient) -> None:
    form = await shorten_form(test_client, "")
    del form["url"]

    response = await test_client.post("/", data=form)

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert "url" in response.json()["errors"]


@pytest.mark.asyncio
async def test_shorten_rejects_bad_csrf(
    test_client: AsyncClient, kv_store: InMemoryKVStore
) -> None:
    form = await shorten_form(test_client, "https://example.com", csrf="forged")

    response = await test_client.post("/", data=form)

    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.text == "Invalid CSRF token"
    assert kv_store.data == {}


@pytest.mark.asyncio
async def test_shorten_rejects_filled_honeypot(
    test_client: AsyncClient, kv_store: InMemoryKVStore
) -> None:
    form = await shorten_form(test_client, "https://example.com", name__confirm="I am a bot")

    response = await test_client.post("/", data=form)

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.text == "Form not submitted properly"
    assert kv_store.data == {}


@pytest.mark.asyncio
async def test_shorten_store_failure(test_client: AsyncClient, kv_store: InMemoryKVStore) -> None:
    kv_store.put_if_absent = AsyncMock(side_effect=StoreUnavailableError())
    form = await shorten_form(test_client, "https://example.com")

    response = await test_client.post("/", data=form)

    assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    assert response.json() == {"status": "error", "error": "Something went wrong"}


@pytest.mark.asyncio
async def test_shorten_allocation_exhausted(
    test_client: AsyncClient, kv_store: InMemoryKVStore
) -> None:
    kv_store.put_if_absent = AsyncMock(return_value=False)
    form = await shorten_form(test_client, "https://example.com")

    response = await test_client.post("/", data=form)

    assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
    assert response.json()["status"] == "error"
    assert kv_store.put_if_absent.await_count == 10


@pytest.mark.asyncio
async def test_unknown_slug_is_not_found(test_client: AsyncClient) -> None:
    response = await test_client.get("/zzzzz")

    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json() == {"status": "error", "error": "Not found"}


@pytest.mark.asyncio
async def test_redirect_store_failure(test_client: AsyncClient, kv_store: InMemoryKVStore) -> None:
    kv_store.get = AsyncMock(side_effect=StoreUnavailableError())

    response = await test_client.get("/abc12")

    assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    assert response.json() == {"status": "error", "error": "Something went wrong"}


@pytest.mark.asyncio
async def test_request_id_header(test_client: AsyncClient) -> None:
    generated = await test_client.get("/health")
    assert generated.status_code == status.HTTP_200_OK
    assert generated.json() == {"status": "healthy"}
    assert re.fullmatch(r"[0-9a-f]{32}", generated.headers["x-request-id"])

    echoed = await test_client.get("/health", headers={"X-Request-ID": "abc123"})
    assert echoed.headers["x-request-id"] == "abc123"

    replaced = await test_client.get("/health", headers={"X-Request-ID": "../../etc"})
    assert replaced.headers["x-request-id"] != "../../etc"


@pytest.mark.asyncio
async def test_shorten_rate_limit_follows_app_settings(
    test_settings: Settings, db_session: AsyncSession, kv_store: InMemoryKVStore
) -> None:
    limiter.reset()
    app = create_app(
        test_settings.model_copy(
            update={"RATE_LIMIT_ENABLED": True, "RATE_LIMIT_SHORTEN": "1/minute"}
        )
    )

    async def override_get_async_session():
        yield db_session

    async def override_get_kv_store():
        return kv_store

    app.dependency_overrides[get_async_session] = override_get_async_session
    app.dependency_overrides[get_kv_store] = override_get_kv_store

    codes = []
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        headers={"X-Forwarded-For": "203.0.113.9"},
    ) as client:
        for _ in range(2):
            form = await shorten_form(client, "https://example.com")
            codes.append((await client.post("/", data=form)).status_code)

    assert codes == [status.HTTP_200_OK, status.HTTP_429_TOO_MANY_REQUESTS]
    assert len(kv_store.data) == 1
