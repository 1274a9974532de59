"""arq worker settings module.

Import path for arq CLI: arq levelup.workers.settings.WorkerSettings
"""

from __future__ import annotations

from levelup.leaderboard.worker import LeaderboardWorkerSettings as WorkerSettings

__all__ = ["WorkerSettings"]
