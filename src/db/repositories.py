"""
SQLAlchemy implementations of the engine's collaborator protocols.

All repositories share one AsyncSession and only flush; committing is left to
whoever owns the session (the engine commits through it as its transaction).
"""

from __future__ import annotations

import datetime as dt
import functools
from typing import Any, Awaitable, Callable, Iterable, List, Optional, Sequence, TypeVar

from sqlalchemy import func, select
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncSession

from src.db.models import (
    AchievementRecord,
    AttemptRecord,
    Learner,
    PracticeSessionRecord,
    Question,
    QuestionSet,
    ScheduleRecord,
    StreakRecord,
    StudyPlanAssignmentRecord,
    StudyPlanTemplateRecord,
)
from src.srs.errors import DuplicateAttempt, StoreUnavailable
from src.srs.records import (
    Achievement,
    Attempt,
    ItemRecord,
    ItemSet,
    ScheduleState,
    SessionResult,
    SessionState,
    Streak,
    StudyPlanTemplate,
)

T = TypeVar("T")


def _store_call(fn: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
    """Translate driver and pool failures into `StoreUnavailable`."""

    @functools.wraps(fn)
    async def wrapper(*args: Any, **kwargs: Any) -> T:
        try:
            return await fn(*args, **kwargs)
        except IntegrityError:
            raise
        except (DBAPIError, PoolTimeoutError, OSError) as e:
            raise StoreUnavailable(f"{fn.__qualname__} failed") from e

    return wrapper


def _aware(value: Optional[dt.datetime]) -> Optional[dt.datetime]:
    # SQLite hands back naive datetimes; everything is stored as UTC.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=dt.timezone.utc)
    return value


def _parse_dt(value: Optional[str]) -> Optional[dt.datetime]:
    return _aware(dt.datetime.fromisoformat(value)) if value else None


def _schedule_from_row(row: ScheduleRecord) -> ScheduleState:
    return ScheduleState(
        learner_id=row.learner_id,
        item_id=row.item_id,
        ease_factor=float(row.ease_factor),
        interval_days=int(row.interval_days),
        repetitions=int(row.repetitions),
        next_review_date=_aware(row.next_review_date),
        last_reviewed_at=_aware(row.last_reviewed_at),
        last_quality_rating=row.last_quality_rating,
    )


def _attempt_from_row(row: AttemptRecord) -> Attempt:
    return Attempt(
        learner_id=row.learner_id,
        item_id=row.item_id,
        selected_index=row.selected_index,
        is_correct=row.is_correct,
        response_time_ms=row.response_time_ms,
        quality_rating=row.quality_rating,
        attempted_at=_aware(row.attempted_at),
        idempotency_key=row.idempotency_key,
    )


def _template_from_row(row: StudyPlanTemplateRecord) -> StudyPlanTemplate:
    return StudyPlanTemplate(
        template_id=row.id,
        title=row.title,
        set_ids=list(row.set_ids or []),
        target_date=row.target_date,
        strategy=row.strategy,
        created_by=row.created_by,
    )


def session_state_to_json(state: SessionState) -> dict:
    return {
        "item_ids": list(state.item_ids),
        "current_index": state.current_index,
        "results": [
            {
                "item_id": r.item_id,
                "is_correct": r.is_correct,
                "quality_rating": r.quality_rating,
            }
            for r in state.results
        ],
        "started_at": state.started_at.isoformat() if state.started_at else None,
        "updated_at": state.updated_at.isoformat() if state.updated_at else None,
    }


def session_state_from_json(data: dict) -> SessionState:
    return SessionState(
        item_ids=list(data.get("item_ids") or []),
        current_index=int(data.get("current_index") or 0),
        results=[
            SessionResult(
                item_id=r["item_id"],
                is_correct=bool(r["is_correct"]),
                quality_rating=int(r["quality_rating"]),
            )
            for r in data.get("results") or []
        ],
        started_at=_parse_dt(data.get("started_at")),
        updated_at=_parse_dt(data.get("updated_at")),
    )


class SqlScheduleStore:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def _row(self, learner_id: str, item_id: str) -> Optional[ScheduleRecord]:
        result = await self.db.execute(
            select(ScheduleRecord).where(
                ScheduleRecord.learner_id == learner_id,
                ScheduleRecord.item_id == item_id,
            )
        )
        return result.scalar_one_or_none()

    @_store_call
    async def get(self, learner_id: str, item_id: str) -> Optional[ScheduleState]:
        row = await self._row(learner_id, item_id)
        return _schedule_from_row(row) if row is not None else None

    @staticmethod
    def _apply(row: ScheduleRecord, state: ScheduleState) -> None:
        row.ease_factor = state.ease_factor
        row.interval_days = state.interval_days
        row.repetitions = state.repetitions
        row.next_review_date = state.next_review_date
        row.last_reviewed_at = state.last_reviewed_at
        row.last_quality_rating = state.last_quality_rating

    @_store_call
    async def upsert(self, learner_id: str, item_id: str, state: ScheduleState) -> None:
        row = await self._row(learner_id, item_id)
        if row is not None:
            self._apply(row, state)
            await self.db.flush()
            return

        row = ScheduleRecord(learner_id=learner_id, item_id=item_id)
        self._apply(row, state)
        try:
            async with self.db.begin_nested():
                self.db.add(row)
        except IntegrityError:
            # Lost an insert race on (learner, item): last writer wins.
            existing = await self._row(learner_id, item_id)
            if existing is None:
                raise
            self._apply(existing, state)
            await self.db.flush()

    @_store_call
    async def list_by_learner(self, learner_id: str) -> List[ScheduleState]:
        result = await self.db.execute(
            select(ScheduleRecord).where(ScheduleRecord.learner_id == learner_id)
        )
        return [_schedule_from_row(row) for row in result.scalars().all()]


class SqlAttemptLog:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    @_store_call
    async def append(self, attempt: Attempt) -> None:
        row = AttemptRecord(
            learner_id=attempt.learner_id,
            item_id=attempt.item_id,
            selected_index=attempt.selected_index,
            is_correct=attempt.is_correct,
            response_time_ms=attempt.response_time_ms,
            quality_rating=attempt.quality_rating,
            attempted_at=attempt.attempted_at,
            idempotency_key=attempt.idempotency_key,
        )
        try:
            async with self.db.begin_nested():
                self.db.add(row)
        except IntegrityError as e:
            if not attempt.idempotency_key:
                raise
            raise DuplicateAttempt(attempt.learner_id, attempt.idempotency_key) from e

    @_store_call
    async def count_by_learner(self, learner_id: str) -> int:
        result = await self.db.execute(
            select(func.count(AttemptRecord.id)).where(AttemptRecord.learner_id == learner_id)
        )
        return int(result.scalar_one() or 0)

    @_store_call
    async def find_by_key(self, learner_id: str, idempotency_key: str) -> Optional[Attempt]:
        result = await self.db.execute(
            select(AttemptRecord).where(
                AttemptRecord.learner_id == learner_id,
                AttemptRecord.idempotency_key == idempotency_key,
            )
        )
        row = result.scalar_one_or_none()
        return _attempt_from_row(row) if row is not None else None


class SqlSessionStateHolder:
    """One row per (learner, set); saving twice updates the same row."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def _row(self, learner_id: str, set_id: str) -> Optional[PracticeSessionRecord]:
        result = await self.db.execute(
            select(PracticeSessionRecord).where(
                PracticeSessionRecord.learner_id == learner_id,
                PracticeSessionRecord.set_id == set_id,
            )
        )
        return result.scalar_one_or_none()

    @_store_call
    async def save(self, learner_id: str, set_id: str, state: SessionState) -> None:
        payload = session_state_to_json(state)
        row = await self._row(learner_id, set_id)
        if row is None:
            self.db.add(PracticeSessionRecord(learner_id=learner_id, set_id=set_id, state_json=payload))
        else:
            row.state_json = payload
        await self.db.flush()

    @_store_call
    async def load(self, learner_id: str, set_id: str) -> Optional[SessionState]:
        row = await self._row(learner_id, set_id)
        return session_state_from_json(row.state_json) if row is not None else None

    @_store_call
    async def clear(self, learner_id: str, set_id: str) -> None:
        row = await self._row(learner_id, set_id)
        if row is not None:
            await self.db.delete(row)
            await self.db.flush()


class SqlItemCatalog:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    @staticmethod
    def _item(row: Question) -> ItemRecord:
        return ItemRecord(
            item_id=row.id,
            set_id=row.set_id,
            correct_answer_index=row.correct_answer_index,
            choice_count=len(row.choices or []),
        )

    @_store_call
    async def get_item(self, item_id: str) -> Optional[ItemRecord]:
        result = await self.db.execute(select(Question).where(Question.id == item_id))
        row = result.scalar_one_or_none()
        return self._item(row) if row is not None else None

    @_store_call
    async def get_sets(self, set_ids: Sequence[str]) -> List[ItemSet]:
        if not set_ids:
            return []
        result = await self.db.execute(
            select(QuestionSet.id, QuestionSet.title, func.count(Question.id))
            .outerjoin(Question, Question.set_id == QuestionSet.id)
            .where(QuestionSet.id.in_(list(set_ids)))
            .group_by(QuestionSet.id, QuestionSet.title)
        )
        by_id = {
            set_id: ItemSet(set_id=set_id, title=title, total_items=int(count))
            for set_id, title, count in result.all()
        }
        return [by_id[set_id] for set_id in set_ids if set_id in by_id]

    @_store_call
    async def list_items_in_sets(self, set_ids: Iterable[str]) -> List[ItemRecord]:
        ids = list(set_ids)
        if not ids:
            return []
        result = await self.db.execute(
            select(Question).where(Question.set_id.in_(ids)).order_by(Question.set_id, Question.id)
        )
        return [self._item(row) for row in result.scalars().all()]


class SqlLearnerDirectory:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    @_store_call
    async def exists(self, learner_id: str) -> bool:
        result = await self.db.execute(
            select(Learner.id).where(Learner.id == learner_id, Learner.is_active.is_(True))
        )
        return result.scalar_one_or_none() is not None


class SqlStreakStore:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    @_store_call
    async def get(self, learner_id: str) -> Optional[Streak]:
        row = await self.db.get(StreakRecord, learner_id)
        if row is None:
            return None
        return Streak(
            learner_id=row.learner_id,
            current_streak_days=row.current_streak_days,
            longest_streak_days=row.longest_streak_days,
            last_practice_date=row.last_practice_date,
            total_items_learned=row.total_items_learned,
            total_items_mastered=row.total_items_mastered,
        )

    @_store_call
    async def upsert(self, streak: Streak) -> None:
        row = await self.db.get(StreakRecord, streak.learner_id)
        if row is None:
            row = StreakRecord(learner_id=streak.learner_id)
            self.db.add(row)
        row.current_streak_days = streak.current_streak_days
        row.longest_streak_days = streak.longest_streak_days
        row.last_practice_date = streak.last_practice_date
        row.total_items_learned = streak.total_items_learned
        row.total_items_mastered = streak.total_items_mastered
        await self.db.flush()


class SqlAchievementStore:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    @_store_call
    async def exists(self, learner_id: str, achievement_type: str) -> bool:
        result = await self.db.execute(
            select(AchievementRecord.id).where(
                AchievementRecord.learner_id == learner_id,
                AchievementRecord.achievement_type == achievement_type,
            )
        )
        return result.scalar_one_or_none() is not None

    @_store_call
    async def insert(self, achievement: Achievement) -> bool:
        row = AchievementRecord(
            learner_id=achievement.learner_id,
            achievement_type=achievement.achievement_type,
            achievement_name=achievement.achievement_name,
            earned_at=achievement.earned_at,
        )
        try:
            async with self.db.begin_nested():
                self.db.add(row)
        except IntegrityError:
            return False
        return True

    @_store_call
    async def list_by_learner(self, learner_id: str) -> List[Achievement]:
        result = await self.db.execute(
            select(AchievementRecord)
            .where(AchievementRecord.learner_id == learner_id)
            .order_by(AchievementRecord.earned_at)
        )
        return [
            Achievement(
                learner_id=row.learner_id,
                achievement_type=row.achievement_type,
                achievement_name=row.achievement_name,
                earned_at=_aware(row.earned_at),
            )
            for row in result.scalars().all()
        ]


class SqlPlanTemplateStore:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    @_store_call
    async def create(self, template: StudyPlanTemplate) -> StudyPlanTemplate:
        self.db.add(
            StudyPlanTemplateRecord(
                id=template.template_id,
                title=template.title,
                set_ids=list(template.set_ids),
                target_date=template.target_date,
                strategy=template.strategy,
                created_by=template.created_by,
            )
        )
        await self.db.flush()
        return template

    @_store_call
    async def get(self, template_id: str) -> Optional[StudyPlanTemplate]:
        row = await self.db.get(StudyPlanTemplateRecord, template_id)
        return _template_from_row(row) if row is not None else None

    @_store_call
    async def assign(self, template_id: str, learner_id: str) -> None:
        row = await self.db.get(StudyPlanAssignmentRecord, learner_id)
        if row is None:
            self.db.add(StudyPlanAssignmentRecord(learner_id=learner_id, template_id=template_id))
        else:
            row.template_id = template_id
            row.assigned_at = dt.datetime.now(dt.timezone.utc)
        await self.db.flush()

    @_store_call
    async def get_assignment(self, learner_id: str) -> Optional[StudyPlanTemplate]:
        result = await self.db.execute(
            select(StudyPlanTemplateRecord)
            .join(
                StudyPlanAssignmentRecord,
                StudyPlanAssignmentRecord.template_id == StudyPlanTemplateRecord.id,
            )
            .where(StudyPlanAssignmentRecord.learner_id == learner_id)
        )
        row = result.scalar_one_or_none()
        return _template_from_row(row) if row is not None else None
