"""Demo newsletter application with idempotent publishing.

Publishing an issue "sends" it to every confirmed subscriber through an
in-process outbox. Retrying the publication with the same Idempotency-Key
returns the original response and sends nothing twice.

Run with: python demo_app.py
Then try:
    curl -X POST localhost:8000/admin/newsletters \\
        -H 'X-User-Id: admin-1' -H 'Idempotency-Key: issue-42' \\
        -H 'content-type: application/json' \\
        -d '{"title": "Hello", "html": "<p>Hi</p>", "text": "Hi"}'
"""

import uuid
from contextlib import asynccontextmanager
from datetime import UTC, datetime

import uvicorn
from fastapi import FastAPI
from pydantic import BaseModel

from newsletter_idempotency.adapters.asgi import ASGIIdempotencyMiddleware
from newsletter_idempotency.config import IdempotencyConfig
from newsletter_idempotency.core.cleanup import start_sweeper_task, stop_sweeper_task
from newsletter_idempotency.observability.logging import configure_logging, get_logger
from newsletter_idempotency.storage import SQLStorageAdapter, create_storage

logger = get_logger("demo_app")

config = IdempotencyConfig.from_env()
storage = create_storage(config)


class NewsletterIssue(BaseModel):
    title: str
    html: str
    text: str


class SubscriberIn(BaseModel):
    email: str
    name: str


# Stand-ins for the subscriptions table and the email transport
subscribers: dict[str, dict[str, str]] = {}
outbox: list[dict[str, str]] = []


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(level="INFO", json_output=False)
    if isinstance(storage, SQLStorageAdapter):
        await storage.create_schema()
    sweeper = await start_sweeper_task(
        storage,
        interval_seconds=config.sweep_interval_seconds,
        max_age_seconds=config.retention_seconds,
    )
    yield
    await stop_sweeper_task(sweeper)
    if isinstance(storage, SQLStorageAdapter):
        await storage.dispose()


app = FastAPI(
    title="Newsletter Demo",
    description="Demo API showing idempotent newsletter publishing",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    ASGIIdempotencyMiddleware,
    storage=storage,
    config=config,
)


@app.post("/subscriptions", status_code=201)
async def subscribe(subscriber: SubscriberIn):
    """Register a subscriber. Confirmation is out of scope: subscribers start confirmed."""
    subscribers[subscriber.email] = {"name": subscriber.name, "status": "confirmed"}
    return {"email": subscriber.email, "status": "confirmed"}


@app.post("/admin/newsletters")
async def publish_newsletter(issue: NewsletterIssue):
    """Publish an issue to all confirmed subscribers."""
    issue_id = str(uuid.uuid4())
    recipients = [email for email, s in subscribers.items() if s["status"] == "confirmed"]
    for email in recipients:
        outbox.append(
            {
                "issue_id": issue_id,
                "recipient": email,
                "subject": issue.title,
                "html": issue.html,
                "text": issue.text,
            }
        )
    logger.info("newsletter.published", issue_id=issue_id, recipients=len(recipients))
    return {
        "issue_id": issue_id,
        "status": "accepted",
        "recipients": len(recipients),
        "published_at": datetime.now(UTC).isoformat(),
    }


@app.get("/admin/outbox")
async def get_outbox():
    return {"count": len(outbox), "emails": outbox}


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
