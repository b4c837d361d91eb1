from __future__ import annotations

import datetime as dt
from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from src.api.deps import get_engine
from src.api.models import (
    AchievementOut,
    AssignTemplateRequest,
    AttemptRequest,
    AttemptResponse,
    DueItemsResponse,
    ForecastDayOut,
    ForecastResponse,
    InitializeScheduleRequest,
    MasteryResponse,
    PlanTemplateOut,
    PlanTemplateRequest,
    ScheduleOut,
    SessionResultOut,
    SessionStateIn,
    SessionStateOut,
    StreakResponse,
    StudyPlanDayOut,
    StudyPlanRequest,
    StudyPlanResponse,
)
from src.srs import SpacedRepetitionEngine
from src.srs.dates import utc_now
from src.srs.planner import StudyPlan
from src.srs.records import (
    Achievement,
    ScheduleState,
    SessionResult,
    SessionState,
    StudyPlanTemplate,
    classify_mastery,
)


router = APIRouter(prefix="/api/srs", tags=["srs"])

EngineDep = Annotated[SpacedRepetitionEngine, Depends(get_engine)]


def _schedule_out(state: ScheduleState) -> ScheduleOut:
    return ScheduleOut(
        item_id=state.item_id,
        ease_factor=state.ease_factor,
        interval_days=state.interval_days,
        repetitions=state.repetitions,
        next_review_date=state.next_review_date,
        last_reviewed_at=state.last_reviewed_at,
        last_quality_rating=state.last_quality_rating,
        mastery=classify_mastery(state),
    )


def _achievement_out(achievement: Achievement) -> AchievementOut:
    return AchievementOut(
        achievement_type=achievement.achievement_type,
        achievement_name=achievement.achievement_name,
        earned_at=achievement.earned_at,
    )


def _plan_out(plan: StudyPlan) -> StudyPlanResponse:
    return StudyPlanResponse(
        daily_new_target=plan.daily_new_target,
        days_remaining=plan.days_remaining,
        remaining_items=plan.remaining_items,
        total_items=plan.total_items,
        mastered_items=plan.mastered_items,
        strategy=plan.strategy,
        schedule=[
            StudyPlanDayOut(
                day=day.day,
                date=day.date,
                sets_label=day.sets_label,
                new_cards=day.new_cards,
                est_reviews=day.est_reviews,
                total_load=day.total_load,
            )
            for day in plan.schedule
        ],
    )


def _template_out(template: StudyPlanTemplate) -> PlanTemplateOut:
    return PlanTemplateOut(
        template_id=template.template_id,
        title=template.title,
        set_ids=list(template.set_ids),
        target_date=template.target_date,
        strategy=template.strategy,
        created_by=template.created_by,
    )


def _session_out(state: SessionState) -> SessionStateOut:
    return SessionStateOut(
        item_ids=list(state.item_ids),
        current_index=state.current_index,
        results=[
            SessionResultOut(
                item_id=r.item_id,
                is_correct=r.is_correct,
                quality_rating=r.quality_rating,
            )
            for r in state.results
        ],
        started_at=state.started_at,
        updated_at=state.updated_at,
        completed=state.completed,
    )


@router.post("/learners/{learner_id}/attempts", response_model=AttemptResponse)
async def record_attempt(
    learner_id: str,
    payload: AttemptRequest,
    engine: EngineDep,
) -> AttemptResponse:
    """
    Record one answer and reschedule the item.

    Streak, achievement and session bookkeeping failures are reported in
    `degraded` rather than failing the request.
    """
    result = await engine.record_attempt(
        learner_id,
        payload.item_id,
        payload.selected_index,
        payload.response_time_ms,
        idempotency_key=payload.idempotency_key,
        session_set_id=payload.session_set_id,
    )
    return AttemptResponse(
        is_correct=result.is_correct,
        quality_rating=result.quality_rating,
        schedule=_schedule_out(result.schedule),
        achievement=_achievement_out(result.achievement) if result.achievement else None,
        replayed=result.replayed,
        degraded=list(result.degraded),
    )


@router.get("/learners/{learner_id}/due", response_model=DueItemsResponse)
async def get_due_items(
    learner_id: str,
    engine: EngineDep,
    as_of: Optional[dt.datetime] = None,
) -> DueItemsResponse:
    as_of = as_of or utc_now()
    item_ids = await engine.get_due_items(learner_id, as_of)
    return DueItemsResponse(
        learner_id=learner_id,
        as_of=as_of,
        item_ids=item_ids,
        count=len(item_ids),
    )


@router.get("/learners/{learner_id}/forecast", response_model=ForecastResponse)
async def get_forecast(
    learner_id: str,
    engine: EngineDep,
    days: int = Query(default=7, ge=0, le=365),
) -> ForecastResponse:
    forecast = await engine.get_forecast(learner_id, days)
    return ForecastResponse(
        learner_id=learner_id,
        days=[ForecastDayOut(date=day.date, count=day.count) for day in forecast],
    )


@router.get("/learners/{learner_id}/streak", response_model=StreakResponse)
async def get_streak(learner_id: str, engine: EngineDep) -> StreakResponse:
    summary = await engine.get_streak(learner_id)
    return StreakResponse(
        current_streak_days=summary.current_streak_days,
        longest_streak_days=summary.longest_streak_days,
        total_mastered=summary.total_mastered,
        total_learned=summary.total_learned,
    )


@router.get("/learners/{learner_id}/achievements", response_model=List[AchievementOut])
async def list_achievements(learner_id: str, engine: EngineDep) -> List[AchievementOut]:
    return [_achievement_out(a) for a in await engine.list_achievements(learner_id)]


@router.get("/learners/{learner_id}/mastery", response_model=MasteryResponse)
async def get_mastery(learner_id: str, engine: EngineDep) -> MasteryResponse:
    breakdown = await engine.mastery_breakdown(learner_id)
    return MasteryResponse(
        mastered=breakdown.mastered,
        learning=breakdown.learning,
        struggling=breakdown.struggling,
        learned=breakdown.learned,
        total=breakdown.total,
    )


@router.post(
    "/learners/{learner_id}/schedules",
    response_model=ScheduleOut,
    status_code=status.HTTP_201_CREATED,
)
async def initialize_schedule(
    learner_id: str,
    payload: InitializeScheduleRequest,
    engine: EngineDep,
) -> ScheduleOut:
    state = await engine.initialize_schedule(payload.item_id, learner_id)
    return _schedule_out(state)


@router.post(
    "/learners/{learner_id}/sets/{set_id}/schedules",
    response_model=List[ScheduleOut],
    status_code=status.HTTP_201_CREATED,
)
async def initialize_set(learner_id: str, set_id: str, engine: EngineDep) -> List[ScheduleOut]:
    return [_schedule_out(s) for s in await engine.initialize_set(set_id, learner_id)]


@router.post("/learners/{learner_id}/study-plan", response_model=StudyPlanResponse)
async def plan_study_schedule(
    learner_id: str,
    payload: StudyPlanRequest,
    engine: EngineDep,
) -> StudyPlanResponse:
    plan = await engine.plan_study_schedule(
        payload.set_ids,
        payload.target_date,
        payload.strategy,
        learner_id,
    )
    return _plan_out(plan)


@router.get("/learners/{learner_id}/study-plan", response_model=StudyPlanResponse)
async def get_assigned_plan(learner_id: str, engine: EngineDep) -> StudyPlanResponse:
    """Recompute the plan from the learner's assigned template as of today."""
    plan = await engine.plan_for_assignment(learner_id)
    if plan is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No study plan assigned",
        )
    return _plan_out(plan)


@router.post(
    "/plan-templates",
    response_model=PlanTemplateOut,
    status_code=status.HTTP_201_CREATED,
)
async def create_plan_template(payload: PlanTemplateRequest, engine: EngineDep) -> PlanTemplateOut:
    template = await engine.create_plan_template(
        title=payload.title,
        set_ids=payload.set_ids,
        target_date=payload.target_date,
        strategy=payload.strategy,
        created_by=payload.created_by,
    )
    return _template_out(template)


@router.post("/plan-templates/{template_id}/assign", response_model=PlanTemplateOut)
async def assign_plan_template(
    template_id: str,
    payload: AssignTemplateRequest,
    engine: EngineDep,
) -> PlanTemplateOut:
    template = await engine.assign_plan_template(template_id, payload.learner_id)
    return _template_out(template)


@router.put("/learners/{learner_id}/sessions/{set_id}", response_model=SessionStateOut)
async def save_session(
    learner_id: str,
    set_id: str,
    payload: SessionStateIn,
    engine: EngineDep,
) -> SessionStateOut:
    state = SessionState(
        item_ids=list(payload.item_ids),
        current_index=payload.current_index,
        results=[
            SessionResult(
                item_id=r.item_id,
                is_correct=r.is_correct,
                quality_rating=r.quality_rating,
            )
            for r in payload.results
        ],
        started_at=payload.started_at,
    )
    await engine.save_session(learner_id, set_id, state)
    return _session_out(state)


@router.get("/learners/{learner_id}/sessions/{set_id}", response_model=SessionStateOut)
async def load_session(learner_id: str, set_id: str, engine: EngineDep) -> SessionStateOut:
    state = await engine.load_session(learner_id, set_id)
    if state is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No saved session",
        )
    return _session_out(state)


@router.delete(
    "/learners/{learner_id}/sessions/{set_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def clear_session(learner_id: str, set_id: str, engine: EngineDep) -> Response:
    await engine.clear_session(learner_id, set_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
