"""
Build the spaced-repetition engine for a request.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from src.db.repositories import (
    SqlAchievementStore,
    SqlAttemptLog,
    SqlItemCatalog,
    SqlLearnerDirectory,
    SqlPlanTemplateStore,
    SqlScheduleStore,
    SqlSessionStateHolder,
    SqlStreakStore,
)
from src.db.session import get_db
from src.srs import EngineConfig, SpacedRepetitionEngine


def build_engine(db: AsyncSession, config: EngineConfig | None = None) -> SpacedRepetitionEngine:
    """
    Wire SQL-backed stores into an engine.

    The AsyncSession doubles as the engine's transaction, so the schedule
    upsert and the attempt append commit or roll back together.
    """
    return SpacedRepetitionEngine(
        schedules=SqlScheduleStore(db),
        attempts=SqlAttemptLog(db),
        catalog=SqlItemCatalog(db),
        learners=SqlLearnerDirectory(db),
        streaks=SqlStreakStore(db),
        achievements=SqlAchievementStore(db),
        sessions=SqlSessionStateHolder(db),
        templates=SqlPlanTemplateStore(db),
        transaction=db,
        config=config or EngineConfig.from_env(),
    )


async def get_engine(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> SpacedRepetitionEngine:
    return build_engine(db)
