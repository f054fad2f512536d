"""Leaderboard domain services: storage contract, ranking and cleanup.

Routes and background tasks import from here, keeping transport concerns
separated from the ranking rules.
"""

from .store import RankStore, SqlRankStore, UpsertResult
from .engine import RankingEngine, RankValidationError, build_engine
from .scheduler import CleanupScheduler
