from __future__ import annotations

import datetime as dt
from typing import Awaitable, Callable, List, Optional, Sequence, TypeVar

from src.srs.config import EngineConfig
from src.srs.dates import utc_now
from src.srs.due import DueSetResolver, ForecastDay
from src.srs.errors import ItemNotFound, LearnerNotFound, SetNotFound, ValidationError
from src.srs.planner import StudyPlan, StudyPlanForecaster
from src.srs.records import Achievement, ScheduleState, SessionState, StudyPlanTemplate
from src.srs.recorder import AttemptRecorder, AttemptResult
from src.srs.retry import call_with_retry
from src.srs.scheduler import ReviewScheduler, SM2Scheduler
from src.srs.stores import (
    AchievementStore,
    AttemptLog,
    ItemCatalog,
    LearnerDirectory,
    PlanTemplateStore,
    ScheduleStore,
    SessionStateHolder,
    StreakStore,
    Transaction,
)
from src.srs.streaks import MasteryBreakdown, StreakSummary, StreakTracker


T = TypeVar("T")


class SpacedRepetitionEngine:
    """
    Entry point for the surrounding application.

    Wires the pure scheduler into the recorder, resolver, tracker and
    forecaster, and wraps every store-touching operation with a timeout and
    bounded retries.
    """

    def __init__(
        self,
        *,
        schedules: ScheduleStore,
        attempts: AttemptLog,
        catalog: ItemCatalog,
        learners: LearnerDirectory,
        streaks: StreakStore,
        achievements: AchievementStore,
        sessions: Optional[SessionStateHolder] = None,
        templates: Optional[PlanTemplateStore] = None,
        transaction: Optional[Transaction] = None,
        scheduler: Optional[ReviewScheduler] = None,
        config: Optional[EngineConfig] = None,
    ) -> None:
        self.config = config or EngineConfig()
        self.schedules = schedules
        self.attempts = attempts
        self.catalog = catalog
        self.learners = learners
        self.sessions = sessions
        self.transaction = transaction
        self.scheduler = scheduler or SM2Scheduler(
            self.config.scheduler,
            timezone=self.config.timezone,
        )
        self.tracker = StreakTracker(
            streaks=streaks,
            schedules=schedules,
            achievements=achievements,
            attempts=attempts,
            timezone=self.config.timezone,
        )
        self.achievements = achievements
        self.recorder = AttemptRecorder(
            catalog=catalog,
            learners=learners,
            schedules=schedules,
            attempts=attempts,
            tracker=self.tracker,
            sessions=sessions,
            scheduler=self.scheduler,
            classifier_config=self.config.classifier,
            transaction=transaction,
            hook_timeout=self.config.store_timeout_seconds,
        )
        self.resolver = DueSetResolver(schedules, timezone=self.config.timezone)
        self.forecaster = StudyPlanForecaster(
            catalog=catalog,
            schedules=schedules,
            templates=templates,
            timezone=self.config.timezone,
            review_ratio=self.config.review_ratio,
        )

    async def _call(
        self,
        label: str,
        operation: Callable[[], Awaitable[T]],
        *,
        retry: bool = True,
    ) -> T:
        return await call_with_retry(
            operation,
            timeout=self.config.store_timeout_seconds,
            max_retries=self.config.store_max_retries if retry else 1,
            backoff_seconds=self.config.store_backoff_seconds,
            label=label,
        )

    async def _commit(self) -> None:
        if self.transaction is not None:
            await self.transaction.commit()

    async def _require_learner(self, learner_id: str) -> None:
        if not await self.learners.exists(learner_id):
            raise LearnerNotFound(learner_id)

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
        # Only the durable write is retried, and only when a failed attempt
        # is rolled back as a whole. Without a transaction the schedule may
        # already be advanced when the attempt write fails.
        now = now or utc_now()
        result = await self._call(
            "record_attempt",
            lambda: self.recorder.record_review(
                learner_id,
                item_id,
                selected_index,
                response_time_ms,
                idempotency_key=idempotency_key,
                now=now,
            ),
            retry=self.transaction is not None,
        )
        if not result.replayed:
            await self.recorder.run_hooks(result, session_set_id=session_set_id, now=now)
        return result

    async def get_due_items(self, learner_id: str, as_of: Optional[dt.datetime] = None) -> List[str]:
        await self._require_learner(learner_id)
        return await self._call("get_due_items", lambda: self.resolver.due_now(learner_id, as_of))

    async def get_forecast(
        self,
        learner_id: str,
        horizon_days: int,
        *,
        now: Optional[dt.datetime] = None,
    ) -> List[ForecastDay]:
        await self._require_learner(learner_id)
        return await self._call(
            "get_forecast",
            lambda: self.resolver.forecast(learner_id, horizon_days, now=now),
        )

    async def get_streak(self, learner_id: str) -> StreakSummary:
        await self._require_learner(learner_id)
        return await self._call("get_streak", lambda: self.tracker.get_summary(learner_id))

    async def list_achievements(self, learner_id: str) -> List[Achievement]:
        await self._require_learner(learner_id)
        return await self._call(
            "list_achievements",
            lambda: self.achievements.list_by_learner(learner_id),
        )

    async def mastery_breakdown(self, learner_id: str) -> MasteryBreakdown:
        await self._require_learner(learner_id)
        return await self._call(
            "mastery_breakdown",
            lambda: self.tracker.mastery_breakdown(learner_id),
        )

    async def plan_study_schedule(
        self,
        set_ids: Sequence[str],
        target_date: dt.date,
        strategy: str,
        learner_id: str,
        *,
        today: Optional[dt.date] = None,
    ) -> StudyPlan:
        await self._require_learner(learner_id)
        return await self._call(
            "plan_study_schedule",
            lambda: self.forecaster.plan(set_ids, target_date, strategy, learner_id, today=today),
        )

    async def initialize_schedule(
        self,
        item_id: str,
        learner_id: str,
        *,
        now: Optional[dt.datetime] = None,
    ) -> ScheduleState:
        """Create the fresh schedule for a pair; returns the existing one if present."""
        await self._require_learner(learner_id)
        if await self.catalog.get_item(item_id) is None:
            raise ItemNotFound(item_id)
        existing = await self.schedules.get(learner_id, item_id)
        if existing is not None:
            return existing
        state = self.scheduler.initial_state(learner_id, item_id, now=now or utc_now())
        await self.schedules.upsert(learner_id, item_id, state)
        await self._commit()
        return state

    async def initialize_set(
        self,
        set_id: str,
        learner_id: str,
        *,
        now: Optional[dt.datetime] = None,
    ) -> List[ScheduleState]:
        """Eagerly add every item of a set to a learner's deck."""
        await self._require_learner(learner_id)
        if not await self.catalog.get_sets([set_id]):
            raise SetNotFound(set_id)
        now = now or utc_now()
        out: List[ScheduleState] = []
        for item in await self.catalog.list_items_in_sets([set_id]):
            existing = await self.schedules.get(learner_id, item.item_id)
            if existing is None:
                existing = self.scheduler.initial_state(learner_id, item.item_id, now=now)
                await self.schedules.upsert(learner_id, item.item_id, existing)
            out.append(existing)
        await self._commit()
        return out

    def _require_sessions(self) -> SessionStateHolder:
        if self.sessions is None:
            raise RuntimeError("SpacedRepetitionEngine was built without a session holder")
        return self.sessions

    async def save_session(self, learner_id: str, set_id: str, state: SessionState) -> None:
        await self._require_learner(learner_id)
        if state.current_index < 0 or state.current_index > len(state.item_ids):
            raise ValidationError("current_index must be within the session's items")
        state.updated_at = utc_now()
        if state.started_at is None:
            state.started_at = state.updated_at
        await self._require_sessions().save(learner_id, set_id, state)
        await self._commit()

    async def load_session(self, learner_id: str, set_id: str) -> Optional[SessionState]:
        await self._require_learner(learner_id)
        return await self._require_sessions().load(learner_id, set_id)

    async def clear_session(self, learner_id: str, set_id: str) -> None:
        await self._require_learner(learner_id)
        await self._require_sessions().clear(learner_id, set_id)
        await self._commit()

    async def create_plan_template(
        self,
        *,
        title: str,
        set_ids: Sequence[str],
        target_date: dt.date,
        strategy: str,
        created_by: Optional[str] = None,
    ) -> StudyPlanTemplate:
        template = await self.forecaster.create_template(
            title=title,
            set_ids=set_ids,
            target_date=target_date,
            strategy=strategy,
            created_by=created_by,
        )
        await self._commit()
        return template

    async def assign_plan_template(self, template_id: str, learner_id: str) -> StudyPlanTemplate:
        await self._require_learner(learner_id)
        template = await self.forecaster.assign_template(template_id, learner_id)
        await self._commit()
        return template

    async def plan_for_assignment(
        self,
        learner_id: str,
        *,
        today: Optional[dt.date] = None,
    ) -> Optional[StudyPlan]:
        await self._require_learner(learner_id)
        return await self._call(
            "plan_for_assignment",
            lambda: self.forecaster.plan_for_assignment(learner_id, today=today),
        )
