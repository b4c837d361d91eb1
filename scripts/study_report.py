"""
Print a learner's review outlook: due items, forecast, streak and mastery,
plus their assigned study plan if there is one.

Usage:
    python -m scripts.study_report alice --days 14
"""

from __future__ import annotations

import argparse
import asyncio

from src.api.deps import build_engine
from src.db.session import AsyncSessionLocal


async def report(learner_id: str, days: int) -> None:
    async with AsyncSessionLocal() as session:
        engine = build_engine(session)

        due = await engine.get_due_items(learner_id)
        print(f"Due now: {len(due)}")

        print(f"\nForecast ({days} days):")
        for day in await engine.get_forecast(learner_id, days):
            print(f"  {day.date.isoformat()}  {day.count:4d}")

        streak = await engine.get_streak(learner_id)
        print(
            f"\nStreak: {streak.current_streak_days} days "
            f"(longest {streak.longest_streak_days})"
        )

        breakdown = await engine.mastery_breakdown(learner_id)
        print(
            f"Mastery: {breakdown.mastered} mastered, {breakdown.learning} learning, "
            f"{breakdown.struggling} struggling"
        )

        plan = await engine.plan_for_assignment(learner_id)
        if plan is None:
            return
        print(
            f"\nStudy plan: {plan.remaining_items} items over {plan.days_remaining} days "
            f"({plan.daily_new_target}/day, {plan.strategy})"
        )
        for day in plan.schedule:
            print(
                f"  Day {day.day:3d} {day.date.isoformat()}  new={day.new_cards:3d} "
                f"reviews~{day.est_reviews:3d}  {day.sets_label}"
            )


def main() -> None:
    parser = argparse.ArgumentParser(description="Show a learner's spaced-repetition outlook.")
    parser.add_argument("learner_id")
    parser.add_argument("--days", type=int, default=7, help="Forecast horizon in days")
    args = parser.parse_args()
    asyncio.run(report(args.learner_id, args.days))


if __name__ == "__main__":
    main()
