"""Worker process that delivers queued notifications.

Polls the notification queue every ``notification_poll_seconds`` and sends
pending items through the configured sender. Failed sends stay queued until
they reach ``notification_max_retries``.
"""

from __future__ import annotations

import asyncio
import logging

from app.config import get_settings
from app.db import dispose_engine, get_session_factory

logger = logging.getLogger(__name__)


async def dispatch_once() -> int:
    """Dispatch one batch across all companies.

    Returns the number of items that left the queue (sent or failed). Items
    waiting for a retry are not counted, so they are retried on the next poll.
    """
    from app.services.notification import dispatch_pending

    async with get_session_factory()() as session:
        result = await dispatch_pending(session)
    return result.sent + result.failed


async def run_notification_loop() -> None:
    """Drain the queue, then sleep until the next poll."""
    settings = get_settings()
    logger.info("Notification worker started (poll every %ds)", settings.notification_poll_seconds)

    try:
        while True:
            try:
                # A full batch of settled items means more may be waiting.
                while await dispatch_once() >= settings.notification_batch_size:
                    pass
            except Exception:
                logger.exception("Notification dispatch failed")
            await asyncio.sleep(settings.notification_poll_seconds)
    finally:
        await dispose_engine()


def main() -> None:
    """Entry point for the worker process."""
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    asyncio.run(run_notification_loop())


if __name__ == "__main__":
    main()
