"""Scenario 6: Newsletter Publication

Publishing an issue through the demo application:
- A retried publication sends every subscriber exactly one email
- Two publications fired at once also send exactly one email each
"""

import asyncio
import uuid

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

import demo_app


@pytest_asyncio.fixture
async def client():
    demo_app.subscribers.clear()
    demo_app.outbox.clear()
    async with AsyncClient(
        transport=ASGITransport(app=demo_app.app), base_url="http://test"
    ) as c:
        for email in ("ursula_le_guin@gmail.com", "octavia@example.com"):
            response = await c.post(
                "/subscriptions", json={"email": email, "name": email.split("@")[0]}
            )
            assert response.status_code == 201
        yield c


ISSUE = {"title": "Newsletter title", "html": "<p>Body as HTML</p>", "text": "Body as text"}


def admin_headers() -> dict[str, str]:
    return {"X-User-Id": "admin-1", "Idempotency-Key": str(uuid.uuid4())}


@pytest.mark.asyncio
async def test_newsletter_creation_is_idempotent(client):
    headers = admin_headers()

    first = await client.post("/admin/newsletters", json=ISSUE, headers=headers)
    second = await client.post("/admin/newsletters", json=ISSUE, headers=headers)

    assert first.status_code == 200
    assert first.json()["recipients"] == 2
    assert second.content == first.content

    outbox = (await client.get("/admin/outbox")).json()
    assert outbox["count"] == 2
    assert {email["recipient"] for email in outbox["emails"]} == {
        "ursula_le_guin@gmail.com",
        "octavia@example.com",
    }


@pytest.mark.asyncio
async def test_concurrent_publications_send_one_email_per_subscriber(client):
    headers = admin_headers()

    first, second = await asyncio.gather(
        client.post("/admin/newsletters", json=ISSUE, headers=headers),
        client.post("/admin/newsletters", json=ISSUE, headers=headers),
    )

    assert first.status_code == second.status_code == 200
    assert first.content == second.content
    assert (await client.get("/admin/outbox")).json()["count"] == 2


@pytest.mark.asyncio
async def test_new_key_publishes_again(client):
    await client.post("/admin/newsletters", json=ISSUE, headers=admin_headers())
    await client.post("/admin/newsletters", json=ISSUE, headers=admin_headers())

    assert (await client.get("/admin/outbox")).json()["count"] == 4
