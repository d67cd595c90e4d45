"""Scenario 1: Happy Path

A client submits a form with an idempotency key, then retries it:
- The first request runs the handler
- The retry gets the exact same status, header pairs and body
- The handler ran exactly once
- Requests outside the protected surface pass straight through
"""

import pytest
import pytest_asyncio
from fastapi import FastAPI, Response
from httpx import ASGITransport, AsyncClient

from newsletter_idempotency.adapters.asgi import ASGIIdempotencyMiddleware
from newsletter_idempotency.config import IdempotencyConfig
from newsletter_idempotency.storage.memory import MemoryStorageAdapter


@pytest.fixture
def calls() -> list[str]:
    return []


@pytest.fixture
def app(storage: MemoryStorageAdapter, calls: list[str]) -> FastAPI:
    app = FastAPI()
    app.add_middleware(ASGIIdempotencyMiddleware, storage=storage, config=IdempotencyConfig())

    @app.post("/admin/newsletters")
    async def publish() -> Response:
        calls.append("publish")
        response = Response(
            content=f"issue #{len(calls)} accepted",
            status_code=303,
            media_type="text/plain",
            headers={"location": "/admin/newsletters"},
        )
        response.set_cookie("flash", "Issue published")
        response.set_cookie("last_issue", str(len(calls)))
        return response

    @app.get("/admin/newsletters")
    async def listing() -> dict:
        calls.append("list")
        return {"issues": len([c for c in calls if c == "publish"])}

    return app


@pytest_asyncio.fixture
async def client(app: FastAPI):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c


HEADERS = {"X-User-Id": "U1", "Idempotency-Key": "abc-123"}


@pytest.mark.asyncio
async def test_retry_replays_the_exact_response(client, calls):
    first = await client.post("/admin/newsletters", headers=HEADERS)
    second = await client.post("/admin/newsletters", headers=HEADERS)

    assert calls == ["publish"]
    assert first.status_code == second.status_code == 303
    assert first.content == second.content == b"issue #1 accepted"
    assert first.headers.multi_items() == second.headers.multi_items()
    assert len(second.headers.get_list("set-cookie")) == 2
    assert second.headers["location"] == "/admin/newsletters"


@pytest.mark.asyncio
async def test_replay_carries_no_extra_headers(client):
    first = await client.post("/admin/newsletters", headers=HEADERS)
    second = await client.post("/admin/newsletters", headers=HEADERS)

    assert [name for name, _ in second.headers.multi_items()] == [
        name for name, _ in first.headers.multi_items()
    ]


@pytest.mark.asyncio
async def test_different_keys_execute_separately(client, calls):
    await client.post("/admin/newsletters", headers=HEADERS)
    other = await client.post(
        "/admin/newsletters", headers={"X-User-Id": "U1", "Idempotency-Key": "abc-124"}
    )

    assert calls == ["publish", "publish"]
    assert other.content == b"issue #2 accepted"


@pytest.mark.asyncio
async def test_same_key_for_different_owners_executes_separately(client, calls):
    await client.post("/admin/newsletters", headers=HEADERS)
    other = await client.post(
        "/admin/newsletters", headers={"X-User-Id": "U2", "Idempotency-Key": "abc-123"}
    )

    assert calls == ["publish", "publish"]
    assert other.content == b"issue #2 accepted"


@pytest.mark.asyncio
async def test_request_without_key_is_not_protected(client, calls, storage):
    await client.post("/admin/newsletters", headers={"X-User-Id": "U1"})
    await client.post("/admin/newsletters", headers={"X-User-Id": "U1"})

    assert calls == ["publish", "publish"]
    assert await storage.count() == 0


@pytest.mark.asyncio
async def test_anonymous_request_is_not_protected(client, calls, storage):
    await client.post("/admin/newsletters", headers={"Idempotency-Key": "abc-123"})
    await client.post("/admin/newsletters", headers={"Idempotency-Key": "abc-123"})

    assert calls == ["publish", "publish"]
    assert await storage.count() == 0


@pytest.mark.asyncio
async def test_get_is_not_protected(client, calls, storage):
    await client.get("/admin/newsletters", headers=HEADERS)
    await client.get("/admin/newsletters", headers=HEADERS)

    assert calls == ["list", "list"]
    assert await storage.count() == 0


@pytest.mark.asyncio
async def test_saved_response_matches_what_the_client_saw(client, storage, key):
    response = await client.post("/admin/newsletters", headers=HEADERS)

    record = await storage.get("U1", key)
    assert record.response.status_code == response.status_code
    assert record.response.body == response.content
    assert list(record.response.headers) == [
        (name.lower(), value) for name, value in response.headers.multi_items()
    ]
