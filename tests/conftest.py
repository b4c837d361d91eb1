"""
In-memory collaborators for engine tests.

Each fake store keeps plain dicts and can be told to fail a number of times
with `StoreUnavailable`. `FakeTransaction` snapshots every store on commit and
restores the snapshot on rollback, so atomicity can be asserted without a DB.
"""

from __future__ import annotations

import asyncio
import copy
import datetime as dt
from typing import Dict, List, Optional, Sequence, Tuple

import pytest

from src.srs import EngineConfig, SpacedRepetitionEngine
from src.srs.errors import DuplicateAttempt, StoreUnavailable
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


class _FakeStore:
    """Shared failure injection and snapshot support."""

    _state_attrs: Tuple[str, ...] = ()

    def __init__(self) -> None:
        self.failures: Dict[str, int] = {}
        self.delays: Dict[str, Tuple[float, int]] = {}

    def fail(self, method: str, times: int = 1) -> None:
        self.failures[method] = times

    def slow(self, method: str, seconds: float, times: int = 1) -> None:
        self.delays[method] = (seconds, times)

    async def _enter(self, method: str) -> None:
        seconds, remaining = self.delays.get(method, (0.0, 0))
        if remaining > 0:
            self.delays[method] = (seconds, remaining - 1)
            await asyncio.sleep(seconds)
        self._maybe_fail(method)

    def _maybe_fail(self, method: str) -> None:
        remaining = self.failures.get(method, 0)
        if remaining > 0:
            self.failures[method] = remaining - 1
            raise StoreUnavailable(f"{type(self).__name__}.{method} unavailable")

    def snapshot(self) -> dict:
        return {name: copy.deepcopy(getattr(self, name)) for name in self._state_attrs}

    def restore(self, snap: dict) -> None:
        for name, value in snap.items():
            setattr(self, name, copy.deepcopy(value))


class InMemoryScheduleStore(_FakeStore):
    _state_attrs = ("rows",)

    def __init__(self) -> None:
        super().__init__()
        self.rows: Dict[Tuple[str, str], ScheduleState] = {}

    async def get(self, learner_id: str, item_id: str) -> Optional[ScheduleState]:
        await self._enter("get")
        return self.rows.get((learner_id, item_id))

    async def upsert(self, learner_id: str, item_id: str, state: ScheduleState) -> None:
        await self._enter("upsert")
        self.rows[(learner_id, item_id)] = state

    async def list_by_learner(self, learner_id: str) -> List[ScheduleState]:
        await self._enter("list_by_learner")
        return [s for (lid, _), s in self.rows.items() if lid == learner_id]


class InMemoryAttemptLog(_FakeStore):
    """
    Unique on (learner, idempotency key). `stale_lookups` makes that many
    `find_by_key` calls miss, as a reader racing a concurrent insert would.
    """

    _state_attrs = ("attempts",)

    def __init__(self) -> None:
        super().__init__()
        self.attempts: List[Attempt] = []
        self.stale_lookups = 0

    async def append(self, attempt: Attempt) -> None:
        await self._enter("append")
        if attempt.idempotency_key and any(
            a.learner_id == attempt.learner_id and a.idempotency_key == attempt.idempotency_key
            for a in self.attempts
        ):
            raise DuplicateAttempt(attempt.learner_id, attempt.idempotency_key)
        self.attempts.append(attempt)

    async def count_by_learner(self, learner_id: str) -> int:
        await self._enter("count_by_learner")
        return sum(1 for a in self.attempts if a.learner_id == learner_id)

    async def find_by_key(self, learner_id: str, idempotency_key: str) -> Optional[Attempt]:
        if self.stale_lookups > 0:
            self.stale_lookups -= 1
            return None
        for attempt in self.attempts:
            if attempt.learner_id == learner_id and attempt.idempotency_key == idempotency_key:
                return attempt
        return None


class InMemorySessionHolder(_FakeStore):
    _state_attrs = ("sessions",)

    def __init__(self) -> None:
        super().__init__()
        self.sessions: Dict[Tuple[str, str], SessionState] = {}

    async def save(self, learner_id: str, set_id: str, state: SessionState) -> None:
        await self._enter("save")
        self.sessions[(learner_id, set_id)] = copy.deepcopy(state)

    async def load(self, learner_id: str, set_id: str) -> Optional[SessionState]:
        state = self.sessions.get((learner_id, set_id))
        return copy.deepcopy(state) if state is not None else None

    async def clear(self, learner_id: str, set_id: str) -> None:
        self.sessions.pop((learner_id, set_id), None)


class InMemoryCatalog:
    def __init__(self) -> None:
        self.items: Dict[str, ItemRecord] = {}
        self.sets: Dict[str, str] = {}

    def add_set(self, set_id: str, title: str, item_ids: Sequence[str], *, choices: int = 4) -> None:
        self.sets[set_id] = title
        for item_id in item_ids:
            self.items[item_id] = ItemRecord(
                item_id=item_id,
                set_id=set_id,
                correct_answer_index=0,
                choice_count=choices,
            )

    async def get_item(self, item_id: str) -> Optional[ItemRecord]:
        return self.items.get(item_id)

    async def get_sets(self, set_ids: Sequence[str]) -> List[ItemSet]:
        return [
            ItemSet(
                set_id=set_id,
                title=self.sets[set_id],
                total_items=sum(1 for i in self.items.values() if i.set_id == set_id),
            )
            for set_id in set_ids
            if set_id in self.sets
        ]

    async def list_items_in_sets(self, set_ids) -> List[ItemRecord]:
        wanted = set(set_ids)
        return [item for item in self.items.values() if item.set_id in wanted]


class InMemoryLearners:
    def __init__(self, *learner_ids: str) -> None:
        self.learner_ids = set(learner_ids)

    async def exists(self, learner_id: str) -> bool:
        return learner_id in self.learner_ids


class InMemoryStreakStore(_FakeStore):
    _state_attrs = ("rows",)

    def __init__(self) -> None:
        super().__init__()
        self.rows: Dict[str, Streak] = {}

    async def get(self, learner_id: str) -> Optional[Streak]:
        await self._enter("get")
        streak = self.rows.get(learner_id)
        return copy.deepcopy(streak) if streak is not None else None

    async def upsert(self, streak: Streak) -> None:
        await self._enter("upsert")
        self.rows[streak.learner_id] = copy.deepcopy(streak)


class InMemoryAchievementStore(_FakeStore):
    """
    Unique on (learner, type). With `stale_exists` set, `exists` always
    answers False, as a reader racing a concurrent grant would.
    """

    _state_attrs = ("rows",)

    def __init__(self) -> None:
        super().__init__()
        self.rows: Dict[Tuple[str, str], Achievement] = {}
        self.stale_exists = False
        self.rejected = 0

    async def exists(self, learner_id: str, achievement_type: str) -> bool:
        if self.stale_exists:
            return False
        return (learner_id, achievement_type) in self.rows

    async def insert(self, achievement: Achievement) -> bool:
        await self._enter("insert")
        key = (achievement.learner_id, achievement.achievement_type)
        if key in self.rows:
            self.rejected += 1
            return False
        self.rows[key] = achievement
        return True

    async def list_by_learner(self, learner_id: str) -> List[Achievement]:
        return [a for (lid, _), a in self.rows.items() if lid == learner_id]


class InMemoryTemplateStore:
    def __init__(self) -> None:
        self.templates: Dict[str, StudyPlanTemplate] = {}
        self.assignments: Dict[str, str] = {}

    async def create(self, template: StudyPlanTemplate) -> StudyPlanTemplate:
        self.templates[template.template_id] = template
        return template

    async def get(self, template_id: str) -> Optional[StudyPlanTemplate]:
        return self.templates.get(template_id)

    async def assign(self, template_id: str, learner_id: str) -> None:
        self.assignments[learner_id] = template_id

    async def get_assignment(self, learner_id: str) -> Optional[StudyPlanTemplate]:
        template_id = self.assignments.get(learner_id)
        return self.templates.get(template_id) if template_id else None


class FakeTransaction:
    def __init__(self, *stores: _FakeStore) -> None:
        self.stores = stores
        self.commits = 0
        self.rollbacks = 0
        self._committed = [store.snapshot() for store in stores]

    async def commit(self) -> None:
        self.commits += 1
        self._committed = [store.snapshot() for store in self.stores]

    async def rollback(self) -> None:
        self.rollbacks += 1
        for store, snap in zip(self.stores, self._committed):
            store.restore(snap)


class World:
    """One learner, two sets, every store in memory."""

    def __init__(self) -> None:
        self.schedules = InMemoryScheduleStore()
        self.attempts = InMemoryAttemptLog()
        self.sessions = InMemorySessionHolder()
        self.catalog = InMemoryCatalog()
        self.learners = InMemoryLearners("alice")
        self.streaks = InMemoryStreakStore()
        self.achievements = InMemoryAchievementStore()
        self.templates = InMemoryTemplateStore()

        self.catalog.add_set("os", "Operating Systems", ["os-1", "os-2", "os-3"])
        self.catalog.add_set("net", "Networks", ["net-1", "net-2"])
        self.catalog.add_set("db", "Databases", ["db-1"])

    def transaction(self) -> FakeTransaction:
        return FakeTransaction(
            self.schedules,
            self.attempts,
            self.sessions,
            self.streaks,
            self.achievements,
        )

    def engine(
        self,
        *,
        transaction: Optional[FakeTransaction] = None,
        timezone: str = "UTC",
        max_retries: int = 3,
        timeout: float = 1.0,
    ) -> SpacedRepetitionEngine:
        config = EngineConfig(
            timezone=timezone,
            store_timeout_seconds=timeout,
            store_max_retries=max_retries,
            store_backoff_seconds=0.0,
        )
        return SpacedRepetitionEngine(
            schedules=self.schedules,
            attempts=self.attempts,
            catalog=self.catalog,
            learners=self.learners,
            streaks=self.streaks,
            achievements=self.achievements,
            sessions=self.sessions,
            templates=self.templates,
            transaction=transaction,
            config=config,
        )


@pytest.fixture
def world() -> World:
    return World()


@pytest.fixture
def now() -> dt.datetime:
    return dt.datetime(2025, 3, 10, 14, 30, tzinfo=dt.timezone.utc)


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"
