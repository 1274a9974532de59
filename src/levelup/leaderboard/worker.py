"""Leaderboard snapshot arq worker.

Writes the daily all-time snapshot that ``top_movers`` compares against.
"""

from __future__ import annotations

import logging

from arq import cron
from arq.connections import RedisSettings
from sqlalchemy.ext.asyncio import AsyncSession

from levelup.config import get_settings
from levelup.database import close_db, get_session, init_db
from levelup.gamification.streaks import today_utc
from levelup.leaderboard.service import save_snapshot

logger = logging.getLogger(__name__)


async def _get_db_session() -> AsyncSession:
    """Get a database session for the worker."""
    async for session in get_session():
        return session
    raise RuntimeError("Failed to get database session")


async def snapshot_leaderboard(ctx: dict) -> int:
    """Snapshot today's all-time ranking. Runs daily shortly after midnight UTC."""
    db = await _get_db_session()
    try:
        count = await save_snapshot(db, today_utc())
        await db.commit()
        return count
    except Exception:
        await db.rollback()
        logger.exception("Leaderboard snapshot failed")
        raise
    finally:
        await db.close()


async def leaderboard_startup(ctx: dict) -> None:
    """Initialize DB connections on worker startup."""
    settings = get_settings()
    await init_db(settings.database_url)
    logger.info("Leaderboard worker started")


async def leaderboard_shutdown(ctx: dict) -> None:
    """Clean up on worker shutdown."""
    await close_db()
    logger.info("Leaderboard worker shut down")


class LeaderboardWorkerSettings:
    """arq worker settings for leaderboard snapshots."""

    functions = [snapshot_leaderboard]
    cron_jobs = [
        cron(snapshot_leaderboard, hour={0}, minute={5}),  # 00:05 UTC
    ]
    on_startup = leaderboard_startup
    on_shutdown = leaderboard_shutdown
    redis_settings = RedisSettings.from_dsn(get_settings().redis_url or "redis://localhost:6379/0")
    max_jobs = 1
