"""arq worker for external event cache maintenance.

Runs as a separate process. The only scheduled job deletes cached events
that are past the retention window and that nobody marked as attended.
"""

from __future__ import annotations

import logging

from arq import cron
from arq.connections import RedisSettings

from gtg.config import get_settings
from gtg.database import close_db, get_session_factory, init_db
from gtg.events.cache_service import cleanup_expired_events

logger = logging.getLogger(__name__)


async def startup(ctx: dict) -> None:  # type: ignore[type-arg]
    """Open the database pool on worker startup."""
    settings = get_settings()
    await init_db(settings.database_url)
    ctx["session_factory"] = get_session_factory()
    logger.info("Event cache worker started")


async def shutdown(ctx: dict) -> None:  # type: ignore[type-arg]
    """Clean up on worker shutdown."""
    ctx.pop("session_factory", None)
    await close_db()
    logger.info("Event cache worker shut down")


async def cleanup_events(ctx: dict) -> int:  # type: ignore[type-arg]
    """Daily task: delete expired, unattended cached events."""
    async with ctx["session_factory"]() as session:
        deleted = await cleanup_expired_events(session)
    if deleted > 0:
        logger.info("Cleaned up %d expired events", deleted)
    return deleted


class WorkerSettings:
    """arq worker settings for event cache maintenance."""

    functions = [cleanup_events]
    cron_jobs = [
        cron(cleanup_events, hour=3, minute=0, run_at_startup=False),
    ]
    on_startup = startup
    on_shutdown = shutdown
    redis_settings = RedisSettings.from_dsn(get_settings().arq_redis_url)
    max_jobs = 4
