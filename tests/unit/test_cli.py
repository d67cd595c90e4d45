"""Unit tests for the sweep command."""

import asyncio
from datetime import UTC, datetime, timedelta

import pytest

from newsletter_idempotency.cli import build_parser, main
from newsletter_idempotency.config import IdempotencyConfig
from newsletter_idempotency.key import IdempotencyKey
from newsletter_idempotency.storage.sql import SQLStorageAdapter


@pytest.fixture
def database_url(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'idempotency.db'}"


async def seed(database_url: str) -> None:
    storage = SQLStorageAdapter.from_url(database_url)
    try:
        await storage.create_schema()
        now = datetime.now(UTC)
        await storage.insert_processing("U1", IdempotencyKey.parse("old"), now - timedelta(days=2))
        await storage.insert_processing("U1", IdempotencyKey.parse("fresh"), now)
    finally:
        await storage.dispose()


async def remaining(database_url: str) -> int:
    storage = SQLStorageAdapter.from_url(database_url)
    try:
        return await storage.count()
    finally:
        await storage.dispose()


def test_parser_defaults_come_from_config():
    config = IdempotencyConfig(retention_seconds=3600, database_url="sqlite+aiosqlite:///x.db")

    args = build_parser(config).parse_args([])

    assert args.max_age_seconds == 3600
    assert args.database_url == "sqlite+aiosqlite:///x.db"
    assert args.log_level == "WARNING"


def test_parser_reads_environment(monkeypatch):
    monkeypatch.setenv("IDEMPOTENCY_RETENTION_SECONDS", "60")

    args = build_parser(IdempotencyConfig.from_env()).parse_args([])

    assert args.max_age_seconds == 60


def test_sweep_deletes_expired_records(database_url, capsys):
    asyncio.run(seed(database_url))

    exit_code = main(["--database-url", database_url, "--max-age-seconds", "86400"])

    assert exit_code == 0
    assert capsys.readouterr().out.strip().splitlines()[-1] == "1"
    assert asyncio.run(remaining(database_url)) == 1


def test_sweep_fails_without_schema(database_url):
    assert main(["--database-url", database_url]) == 1
