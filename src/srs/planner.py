from __future__ import annotations

import datetime as dt
import math
import uuid
from dataclasses import dataclass, field
from typing import List, Optional, Sequence
from zoneinfo import ZoneInfo

from src.srs.dates import local_date, utc_now
from src.srs.errors import SetNotFound, TemplateNotFound, ValidationError
from src.srs.records import MASTERED, ItemSet, StudyPlanTemplate, classify_mastery
from src.srs.stores import ItemCatalog, PlanTemplateStore, ScheduleStore


BALANCED = "balanced"
SEQUENTIAL = "sequential"
STRATEGIES = (BALANCED, SEQUENTIAL)


@dataclass
class StudyPlanDay:
    day: int
    date: dt.date
    sets_label: str
    new_cards: int
    est_reviews: int
    total_load: int


@dataclass
class StudyPlan:
    daily_new_target: int
    days_remaining: int
    remaining_items: int
    total_items: int
    mastered_items: int
    strategy: str
    schedule: List[StudyPlanDay] = field(default_factory=list)


def validate_strategy(strategy: str) -> None:
    if strategy not in STRATEGIES:
        raise ValidationError(f"strategy must be one of {STRATEGIES}, got {strategy!r}")


def sets_label(strategy: str, sets: Sequence[ItemSet], day_index: int, days_remaining: int) -> str:
    """Human-readable "which set(s) today"; has no effect on quotas."""
    if not sets:
        return "Various Sets"
    if strategy == BALANCED:
        if len(sets) > 2:
            return f"{len(sets)} sets (Balanced)"
        return ", ".join(s.title for s in sets)
    index = min(math.floor(day_index * len(sets) / days_remaining), len(sets) - 1)
    return sets[index].title


def simulate_plan(
    *,
    total_items: int,
    mastered_items: int,
    target_date: dt.date,
    today: dt.date,
    strategy: str,
    sets: Sequence[ItemSet] = (),
    review_ratio: float = 0.3,
) -> StudyPlan:
    """
    Spread the unmastered backlog evenly over the days left before `target_date`.

    `est_reviews` is a display heuristic: `review_ratio` of the cards
    introduced on earlier days. It never feeds back into real scheduling.
    """
    validate_strategy(strategy)
    if review_ratio < 0:
        raise ValidationError("review_ratio must be non-negative")

    remaining = max(0, total_items - mastered_items)
    days_remaining = max(0, (target_date - today).days)
    daily_new_target = math.ceil(remaining / days_remaining) if days_remaining > 0 else 0

    schedule: List[StudyPlanDay] = []
    undistributed = remaining
    introduced_pool = 0
    for i in range(days_remaining):
        new_cards = min(daily_new_target, undistributed)
        est_reviews = 0 if i == 0 else math.floor(introduced_pool * review_ratio)
        schedule.append(
            StudyPlanDay(
                day=i + 1,
                date=today + dt.timedelta(days=i),
                sets_label=sets_label(strategy, sets, i, days_remaining),
                new_cards=new_cards,
                est_reviews=est_reviews,
                total_load=new_cards + est_reviews,
            )
        )
        introduced_pool += new_cards
        undistributed -= new_cards

    return StudyPlan(
        daily_new_target=daily_new_target,
        days_remaining=days_remaining,
        remaining_items=remaining,
        total_items=total_items,
        mastered_items=min(mastered_items, total_items),
        strategy=strategy,
        schedule=schedule,
    )


class StudyPlanForecaster:
    """
    Read-only planning aid. The review scheduler stays the only source of
    truth for real due dates.
    """

    def __init__(
        self,
        *,
        catalog: ItemCatalog,
        schedules: ScheduleStore,
        templates: Optional[PlanTemplateStore] = None,
        timezone: str = "UTC",
        review_ratio: float = 0.3,
    ) -> None:
        self.catalog = catalog
        self.schedules = schedules
        self.templates = templates
        self.tz = ZoneInfo(timezone)
        self.review_ratio = review_ratio

    async def plan(
        self,
        set_ids: Sequence[str],
        target_date: dt.date,
        strategy: str,
        learner_id: str,
        *,
        today: Optional[dt.date] = None,
    ) -> StudyPlan:
        validate_strategy(strategy)
        today = today or local_date(utc_now(), self.tz)

        unique_ids = list(dict.fromkeys(set_ids))
        sets_by_id = {s.set_id: s for s in await self.catalog.get_sets(unique_ids)}
        for set_id in unique_ids:
            if set_id not in sets_by_id:
                raise SetNotFound(set_id)
        sets = [sets_by_id[set_id] for set_id in unique_ids]

        items = await self.catalog.list_items_in_sets(unique_ids)
        item_ids = {item.item_id for item in items}
        mastered = sum(
            1
            for state in await self.schedules.list_by_learner(learner_id)
            if state.item_id in item_ids and classify_mastery(state) == MASTERED
        )

        return simulate_plan(
            total_items=len(item_ids),
            mastered_items=mastered,
            target_date=target_date,
            today=today,
            strategy=strategy,
            sets=sets,
            review_ratio=self.review_ratio,
        )

    def _require_templates(self) -> PlanTemplateStore:
        if self.templates is None:
            raise RuntimeError("StudyPlanForecaster was built without a template store")
        return self.templates

    async def create_template(
        self,
        *,
        title: str,
        set_ids: Sequence[str],
        target_date: dt.date,
        strategy: str,
        created_by: Optional[str] = None,
    ) -> StudyPlanTemplate:
        validate_strategy(strategy)
        if not set_ids:
            raise ValidationError("a study plan needs at least one set")
        if not title.strip():
            raise ValidationError("title must not be empty")
        existing = {s.set_id for s in await self.catalog.get_sets(list(set_ids))}
        for set_id in set_ids:
            if set_id not in existing:
                raise SetNotFound(set_id)
        template = StudyPlanTemplate(
            template_id=str(uuid.uuid4()),
            title=title.strip(),
            set_ids=list(dict.fromkeys(set_ids)),
            target_date=target_date,
            strategy=strategy,
            created_by=created_by,
        )
        return await self._require_templates().create(template)

    async def assign_template(self, template_id: str, learner_id: str) -> StudyPlanTemplate:
        store = self._require_templates()
        template = await store.get(template_id)
        if template is None:
            raise TemplateNotFound(template_id)
        await store.assign(template_id, learner_id)
        return template

    async def plan_for_assignment(
        self,
        learner_id: str,
        *,
        today: Optional[dt.date] = None,
    ) -> Optional[StudyPlan]:
        """Recompute the assigned plan as of `today`; None if nothing is assigned."""
        template = await self._require_templates().get_assignment(learner_id)
        if template is None:
            return None
        return await self.plan(
            template.set_ids,
            template.target_date,
            template.strategy,
            learner_id,
            today=today,
        )
