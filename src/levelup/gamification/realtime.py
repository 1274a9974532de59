"""Realtime channel publishing over Redis pub/sub.

Channels mirror the ones the web client subscribes to:
``gamification:{user_id}`` for a learner's own counters and
``leaderboard:global`` for anything that may reorder the board.
"""

from __future__ import annotations

import json
import logging

logger = logging.getLogger(__name__)

LEADERBOARD_CHANNEL = "leaderboard:global"
LEVEL_UP_CHANNEL = "pubsub:level_up"


def learner_channel(user_id: str) -> str:
    return f"gamification:{user_id}"


async def publish(redis: object | None, channel: str, payload: dict) -> None:
    """Publish a JSON message. A missing client or a publish failure never fails the caller."""
    if redis is None:
        return
    try:
        await redis.publish(channel, json.dumps(payload, default=str))  # type: ignore[attr-defined]
    except Exception:
        logger.warning("Failed to publish realtime message on %s", channel, exc_info=True)
