"""Operator command running one expiry sweep against the SQL store.

Meant to be scheduled by a process supervisor (cron, a Kubernetes CronJob)
independently of request traffic::

    newsletter-idempotency-sweep --max-age-seconds 86400 \\
        --database-url postgresql+asyncpg://app@db/newsletter

Defaults come from ``IdempotencyConfig.from_env()``. The number of deleted
records is printed on stdout.
"""

import argparse
import asyncio
from collections.abc import Sequence
from datetime import UTC, datetime, timedelta

from newsletter_idempotency.config import IdempotencyConfig
from newsletter_idempotency.core.cleanup import delete_expired
from newsletter_idempotency.exceptions import PersistenceError
from newsletter_idempotency.observability.logging import configure_logging, get_logger
from newsletter_idempotency.storage.sql import SQLStorageAdapter

logger = get_logger(__name__)


def build_parser(config: IdempotencyConfig) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="newsletter-idempotency-sweep",
        description="Delete saved idempotent requests older than the retention window.",
    )
    parser.add_argument(
        "--max-age-seconds",
        type=int,
        default=config.retention_seconds,
        help="retention window in seconds (default: %(default)s)",
    )
    parser.add_argument(
        "--database-url",
        default=config.database_url,
        help="SQLAlchemy async database URL (default: %(default)s)",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        help="log level (default: %(default)s)",
    )
    return parser


async def run_sweep(database_url: str, max_age_seconds: int) -> int:
    """Run one sweep and return the number of deleted records."""
    storage = SQLStorageAdapter.from_url(database_url)
    try:
        return await delete_expired(
            storage,
            now=datetime.now(UTC),
            max_age=timedelta(seconds=max_age_seconds),
        )
    finally:
        await storage.dispose()


def main(argv: Sequence[str] | None = None) -> int:
    config = IdempotencyConfig.from_env()
    args = build_parser(config).parse_args(argv)

    configure_logging(level=args.log_level, json_output=True)

    try:
        count = asyncio.run(run_sweep(args.database_url, args.max_age_seconds))
    except PersistenceError as e:
        logger.error("sweeper.failed", error=e.message)
        return 1

    logger.info("sweeper.completed", records_removed=count)
    print(count)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
