from __future__ import annotations

import asyncio
import datetime as dt
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional, TypeVar

from src.srs.config import ClassifierConfig
from src.srs.dates import utc_now
from src.srs.errors import (
    Degraded,
    DuplicateAttempt,
    ItemNotFound,
    LearnerNotFound,
    ValidationError,
)
from src.srs.quality import classify_quality
from src.srs.records import (
    Achievement,
    Attempt,
    ItemRecord,
    ScheduleState,
    SessionResult,
    SessionState,
)
from src.srs.scheduler import ReviewScheduler, SM2Scheduler
from src.srs.stores import (
    AttemptLog,
    ItemCatalog,
    LearnerDirectory,
    ScheduleStore,
    SessionStateHolder,
    Transaction,
)
from src.srs.streaks import StreakTracker

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class AttemptResult:
    is_correct: bool
    quality_rating: int
    schedule: ScheduleState
    achievement: Optional[Achievement] = None
    session: Optional[SessionState] = None
    replayed: bool = False
    degraded: List[str] = field(default_factory=list)
    attempt: Optional[Attempt] = field(default=None, repr=False)


def validate_selected_index(selected_index: int, item: ItemRecord) -> None:
    if isinstance(selected_index, bool) or not isinstance(selected_index, int):
        raise ValidationError(f"selected_index must be an int, got {selected_index!r}")
    if selected_index < 0 or selected_index >= item.choice_count:
        raise ValidationError(
            f"selected_index {selected_index} out of range for item {item.item_id} "
            f"with {item.choice_count} choices"
        )


class AttemptRecorder:
    """
    Orchestrates one answer event end to end.

    The schedule write and the attempt write form one unit: when a
    `transaction` is given both are committed together, otherwise the
    schedule is written first so an attempt never exists without its
    schedule update. Streak, achievement and session hooks run afterwards
    and can only degrade the result, never fail it.

    `record_review` and `run_hooks` are the two phases separately: callers
    that retry the durable write must not retry the hooks with it. Each
    hook is bounded by `hook_timeout` seconds when set.
    """

    def __init__(
        self,
        *,
        catalog: ItemCatalog,
        learners: LearnerDirectory,
        schedules: ScheduleStore,
        attempts: AttemptLog,
        tracker: Optional[StreakTracker] = None,
        sessions: Optional[SessionStateHolder] = None,
        scheduler: Optional[ReviewScheduler] = None,
        classifier_config: Optional[ClassifierConfig] = None,
        transaction: Optional[Transaction] = None,
        hook_timeout: Optional[float] = None,
    ) -> None:
        self.catalog = catalog
        self.learners = learners
        self.schedules = schedules
        self.attempts = attempts
        self.tracker = tracker
        self.sessions = sessions
        self.scheduler = scheduler or SM2Scheduler()
        self.classifier_config = classifier_config or ClassifierConfig()
        self.transaction = transaction
        self.hook_timeout = hook_timeout

    async def record_attempt(
        self,
        learner_id: str,
        item_id: str,
        selected_index: int,
        response_time_ms: Optional[int] = None,
        *,
        idempotency_key: Optional[str] = None,
        session_set_id: Optional[str] = None,
        now: Optional[dt.datetime] = None,
    ) -> AttemptResult:
        now = now or utc_now()
        result = await self.record_review(
            learner_id,
            item_id,
            selected_index,
            response_time_ms,
            idempotency_key=idempotency_key,
            now=now,
        )
        if not result.replayed:
            await self.run_hooks(result, session_set_id=session_set_id, now=now)
        return result

    async def record_review(
        self,
        learner_id: str,
        item_id: str,
        selected_index: int,
        response_time_ms: Optional[int] = None,
        *,
        idempotency_key: Optional[str] = None,
        now: Optional[dt.datetime] = None,
    ) -> AttemptResult:
        """Validate, schedule and durably record one answer; no hooks."""
        now = now or utc_now()

        if not await self.learners.exists(learner_id):
            raise LearnerNotFound(learner_id)
        item = await self.catalog.get_item(item_id)
        if item is None:
            raise ItemNotFound(item_id)
        validate_selected_index(selected_index, item)

        if idempotency_key:
            previous = await self.attempts.find_by_key(learner_id, idempotency_key)
            if previous is not None:
                return await self._replay(previous)

        is_correct = selected_index == item.correct_answer_index
        quality = classify_quality(is_correct, response_time_ms, config=self.classifier_config)

        current = await self.schedules.get(learner_id, item_id)
        if current is None:
            current = self.scheduler.initial_state(learner_id, item_id, now=now)
        updated = self.scheduler.compute_next(current, quality, now=now)

        attempt = Attempt(
            learner_id=learner_id,
            item_id=item_id,
            selected_index=selected_index,
            is_correct=is_correct,
            response_time_ms=response_time_ms,
            quality_rating=quality,
            attempted_at=now,
            idempotency_key=idempotency_key,
        )
        try:
            await self._persist(updated, attempt)
        except DuplicateAttempt:
            # A concurrent request with the same key committed first.
            previous = await self.attempts.find_by_key(learner_id, idempotency_key)
            if previous is None:
                raise
            return await self._replay(previous)
        logger.info(
            "Recorded attempt learner=%s item=%s quality=%s interval=%s",
            learner_id,
            item_id,
            quality,
            updated.interval_days,
        )

        return AttemptResult(
            is_correct=is_correct,
            quality_rating=quality,
            schedule=updated,
            attempt=attempt,
        )

    async def _replay(self, previous: Attempt) -> AttemptResult:
        state = await self.schedules.get(previous.learner_id, previous.item_id)
        if state is None:
            # Attempts are only written after their schedule, so this means
            # the schedule was removed since (cascade delete).
            raise ItemNotFound(previous.item_id)
        logger.info(
            "Replayed attempt learner=%s item=%s key=%s",
            previous.learner_id,
            previous.item_id,
            previous.idempotency_key,
        )
        return AttemptResult(
            is_correct=previous.is_correct,
            quality_rating=previous.quality_rating,
            schedule=state,
            replayed=True,
            attempt=previous,
        )

    async def _persist(self, state: ScheduleState, attempt: Attempt) -> None:
        try:
            await self.schedules.upsert(state.learner_id, state.item_id, state)
            await self.attempts.append(attempt)
            if self.transaction is not None:
                await self.transaction.commit()
        except Exception:
            if self.transaction is not None:
                await self.transaction.rollback()
            raise

    async def run_hooks(
        self,
        result: AttemptResult,
        *,
        session_set_id: Optional[str] = None,
        now: Optional[dt.datetime] = None,
    ) -> None:
        """Streak, achievement and session updates for a recorded review."""
        attempt = result.attempt
        if attempt is None:
            raise ValueError("run_hooks needs the result of record_review")
        now = now or attempt.attempted_at
        if self.tracker is not None:
            streak = await self._guarded(
                "streak update",
                result,
                lambda: self.tracker.update(attempt.learner_id, now=now),
            )
            if streak is not None:
                result.achievement = await self._guarded(
                    "achievement check",
                    result,
                    lambda: self.tracker.check_achievements(attempt.learner_id, streak, now=now),
                )
        if self.sessions is not None and session_set_id:
            result.session = await self._guarded(
                "session save",
                result,
                lambda: self._advance_session(attempt, session_set_id, result, now),
            )

    async def _guarded(
        self,
        hook: str,
        result: AttemptResult,
        operation: Callable[[], Awaitable[T]],
    ) -> Optional[T]:
        try:
            value = await asyncio.wait_for(operation(), self.hook_timeout)
            if self.transaction is not None:
                await self.transaction.commit()
            return value
        except Exception as e:
            degraded = Degraded(hook, e)
            logger.warning("Degraded attempt for learner %s: %s", result.schedule.learner_id, degraded)
            result.degraded.append(hook)
            if self.transaction is not None:
                try:
                    await self.transaction.rollback()
                except Exception as rollback_error:
                    logger.warning("Rollback after %s failed: %r", hook, rollback_error)
            return None

    async def _advance_session(
        self,
        attempt: Attempt,
        set_id: str,
        result: AttemptResult,
        now: dt.datetime,
    ) -> Optional[SessionState]:
        state = await self.sessions.load(attempt.learner_id, set_id)
        if state is None or state.completed:
            return state
        if state.item_ids[state.current_index] != attempt.item_id:
            logger.debug(
                "Attempt on %s does not match session position %s for learner %s",
                attempt.item_id,
                state.current_index,
                attempt.learner_id,
            )
            return state

        state.results.append(
            SessionResult(
                item_id=attempt.item_id,
                is_correct=result.is_correct,
                quality_rating=result.quality_rating,
            )
        )
        state.current_index += 1
        state.updated_at = now
        if state.completed:
            await self.sessions.clear(attempt.learner_id, set_id)
        else:
            await self.sessions.save(attempt.learner_id, set_id, state)
        return state
