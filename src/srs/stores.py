"""
Collaborator interfaces consumed by the engine.

The engine never talks to a database directly. Anything that exposes these
async methods can back it: the SQLAlchemy repositories in `src.db`, or
simple in-memory fakes in tests.
"""

from __future__ import annotations

from typing import Iterable, List, Optional, Protocol, Sequence

from src.srs.records import (
    Achievement,
    Attempt,
    ItemRecord,
    ItemSet,
    ScheduleState,
    SessionState,
    Streak,
    StudyPlanTemplate,
)


class ScheduleStore(Protocol):
    async def get(self, learner_id: str, item_id: str) -> Optional[ScheduleState]:
        ...

    async def upsert(self, learner_id: str, item_id: str, state: ScheduleState) -> None:
        ...

    async def list_by_learner(self, learner_id: str) -> List[ScheduleState]:
        ...


class AttemptLog(Protocol):
    async def append(self, attempt: Attempt) -> None:
        """Raises `DuplicateAttempt` when the (learner, key) pair already exists."""
        ...

    async def count_by_learner(self, learner_id: str) -> int:
        ...

    async def find_by_key(self, learner_id: str, idempotency_key: str) -> Optional[Attempt]:
        ...


class SessionStateHolder(Protocol):
    async def save(self, learner_id: str, set_id: str, state: SessionState) -> None:
        ...

    async def load(self, learner_id: str, set_id: str) -> Optional[SessionState]:
        ...

    async def clear(self, learner_id: str, set_id: str) -> None:
        ...


class ItemCatalog(Protocol):
    async def get_item(self, item_id: str) -> Optional[ItemRecord]:
        ...

    async def get_sets(self, set_ids: Sequence[str]) -> List[ItemSet]:
        ...

    async def list_items_in_sets(self, set_ids: Iterable[str]) -> List[ItemRecord]:
        ...


class LearnerDirectory(Protocol):
    async def exists(self, learner_id: str) -> bool:
        ...


class StreakStore(Protocol):
    async def get(self, learner_id: str) -> Optional[Streak]:
        ...

    async def upsert(self, streak: Streak) -> None:
        ...


class AchievementStore(Protocol):
    async def exists(self, learner_id: str, achievement_type: str) -> bool:
        ...

    async def insert(self, achievement: Achievement) -> bool:
        """Insert once; return False if the (learner, type) pair already exists."""
        ...

    async def list_by_learner(self, learner_id: str) -> List[Achievement]:
        ...


class PlanTemplateStore(Protocol):
    async def create(self, template: StudyPlanTemplate) -> StudyPlanTemplate:
        ...

    async def get(self, template_id: str) -> Optional[StudyPlanTemplate]:
        ...

    async def assign(self, template_id: str, learner_id: str) -> None:
        ...

    async def get_assignment(self, learner_id: str) -> Optional[StudyPlanTemplate]:
        ...


class Transaction(Protocol):
    """Unit of work shared by the stores; `AsyncSession` satisfies it."""

    async def commit(self) -> None:
        ...

    async def rollback(self) -> None:
        ...
