from __future__ import annotations

import datetime as dt

import pytest

from src.srs.errors import SetNotFound, TemplateNotFound, ValidationError
from src.srs.planner import StudyPlanForecaster, sets_label, simulate_plan
from src.srs.records import ItemSet, ScheduleState


TODAY = dt.date(2025, 3, 10)

OS = ItemSet("os", "Operating Systems", 3)
NET = ItemSet("net", "Networks", 2)
DB = ItemSet("db", "Databases", 1)


def _forecaster(world) -> StudyPlanForecaster:
    return StudyPlanForecaster(
        catalog=world.catalog,
        schedules=world.schedules,
        templates=world.templates,
    )


def _mastered(item_id: str) -> ScheduleState:
    return ScheduleState(
        learner_id="alice",
        item_id=item_id,
        ease_factor=3.0,
        interval_days=25,
        repetitions=6,
        next_review_date=dt.datetime(2025, 4, 1, tzinfo=dt.timezone.utc),
    )


def test_backlog_spread_over_remaining_days():
    plan = simulate_plan(
        total_items=10,
        mastered_items=2,
        target_date=TODAY + dt.timedelta(days=3),
        today=TODAY,
        strategy="balanced",
        sets=[OS, NET],
    )

    assert plan.remaining_items == 8
    assert plan.days_remaining == 3
    assert plan.daily_new_target == 3
    assert [d.new_cards for d in plan.schedule] == [3, 3, 2]
    assert [d.est_reviews for d in plan.schedule] == [0, 0, 1]
    assert [d.total_load for d in plan.schedule] == [3, 3, 3]
    assert [d.day for d in plan.schedule] == [1, 2, 3]
    assert plan.schedule[0].date == TODAY
    assert plan.schedule[-1].date == TODAY + dt.timedelta(days=2)


def test_plan_stays_consistent_for_many_inputs():
    for total in (0, 1, 7, 50, 333):
        for mastered in (0, 3, 60, 400):
            for days in (-5, 0, 1, 4, 30):
                plan = simulate_plan(
                    total_items=total,
                    mastered_items=mastered,
                    target_date=TODAY + dt.timedelta(days=days),
                    today=TODAY,
                    strategy="sequential",
                    sets=[OS, NET, DB],
                )
                assert plan.remaining_items >= 0
                assert plan.days_remaining >= 0
                assert plan.daily_new_target >= 0
                assert len(plan.schedule) == plan.days_remaining
                assert sum(d.new_cards for d in plan.schedule) == (
                    plan.remaining_items if plan.days_remaining else 0
                )
                for day in plan.schedule:
                    assert 0 <= day.new_cards <= plan.daily_new_target
                    assert day.est_reviews >= 0
                    assert day.total_load == day.new_cards + day.est_reviews


def test_target_today_or_past_gives_empty_plan():
    for target in (TODAY, TODAY - dt.timedelta(days=4)):
        plan = simulate_plan(
            total_items=10,
            mastered_items=0,
            target_date=target,
            today=TODAY,
            strategy="balanced",
        )
        assert plan.days_remaining == 0
        assert plan.daily_new_target == 0
        assert plan.schedule == []


def test_everything_mastered_still_lists_each_day():
    plan = simulate_plan(
        total_items=5,
        mastered_items=9,
        target_date=TODAY + dt.timedelta(days=2),
        today=TODAY,
        strategy="balanced",
    )

    assert plan.remaining_items == 0
    assert plan.daily_new_target == 0
    assert [d.total_load for d in plan.schedule] == [0, 0]


def test_unknown_strategy_is_rejected():
    with pytest.raises(ValidationError):
        simulate_plan(
            total_items=1,
            mastered_items=0,
            target_date=TODAY + dt.timedelta(days=1),
            today=TODAY,
            strategy="random",
        )


def test_balanced_labels():
    assert sets_label("balanced", [OS, NET], 0, 5) == "Operating Systems, Networks"
    assert sets_label("balanced", [OS, NET, DB], 0, 5) == "3 sets (Balanced)"
    assert sets_label("balanced", [], 0, 5) == "Various Sets"


def test_sequential_labels_walk_through_sets():
    labels = [sets_label("sequential", [OS, NET], i, 4) for i in range(4)]
    assert labels == ["Operating Systems", "Operating Systems", "Networks", "Networks"]

    labels = [sets_label("sequential", [OS, NET, DB], i, 2) for i in range(2)]
    assert labels == ["Operating Systems", "Networks"]


@pytest.mark.anyio
async def test_forecaster_counts_mastered_items_within_sets(world):
    await world.schedules.upsert("alice", "os-1", _mastered("os-1"))
    await world.schedules.upsert("alice", "db-1", _mastered("db-1"))

    plan = await _forecaster(world).plan(
        ["os", "net", "os"],
        TODAY + dt.timedelta(days=2),
        "sequential",
        "alice",
        today=TODAY,
    )

    assert plan.total_items == 5
    assert plan.mastered_items == 1
    assert plan.remaining_items == 4
    assert plan.daily_new_target == 2
    assert [d.sets_label for d in plan.schedule] == ["Operating Systems", "Networks"]


@pytest.mark.anyio
async def test_forecaster_unknown_set_raises(world):
    with pytest.raises(SetNotFound):
        await _forecaster(world).plan(["os", "nope"], TODAY, "balanced", "alice", today=TODAY)


@pytest.mark.anyio
async def test_template_assignment_recomputes_from_today(world):
    forecaster = _forecaster(world)
    template = await forecaster.create_template(
        title="  Finals  ",
        set_ids=["os", "net"],
        target_date=TODAY + dt.timedelta(days=5),
        strategy="balanced",
        created_by="instructor-1",
    )
    assert template.title == "Finals"

    assert await forecaster.plan_for_assignment("alice", today=TODAY) is None

    await forecaster.assign_template(template.template_id, "alice")
    early = await forecaster.plan_for_assignment("alice", today=TODAY)
    late = await forecaster.plan_for_assignment("alice", today=TODAY + dt.timedelta(days=4))

    assert early.days_remaining == 5
    assert early.daily_new_target == 1
    assert late.days_remaining == 1
    assert late.daily_new_target == 5


@pytest.mark.anyio
async def test_template_validation(world):
    forecaster = _forecaster(world)
    target = TODAY + dt.timedelta(days=5)

    with pytest.raises(ValidationError):
        await forecaster.create_template(title="x", set_ids=[], target_date=target, strategy="balanced")
    with pytest.raises(ValidationError):
        await forecaster.create_template(title=" ", set_ids=["os"], target_date=target, strategy="balanced")
    with pytest.raises(SetNotFound):
        await forecaster.create_template(title="x", set_ids=["zzz"], target_date=target, strategy="balanced")
    with pytest.raises(TemplateNotFound):
        await forecaster.assign_template("missing", "alice")
