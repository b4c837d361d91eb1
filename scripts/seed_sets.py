"""
Utility script for seeding question sets and learners.

Input is JSONL, one question per line:
    {"set_id": "os", "set_title": "Operating Systems", "question_id": "os-1",
     "question": "...", "choices": ["a", "b", "c"], "correct_answer_index": 0}

Two modes:
- Default (dry-run): summarize the file (questions per set, invalid lines),
  no DB writes.
- Apply mode (--apply): create sets, questions and the given learners.
"""

from __future__ import annotations

import argparse
import asyncio
import json
from collections import Counter
from pathlib import Path
from typing import Dict, List

from sqlalchemy import select

from src.db.models import Learner, Question, QuestionSet
from src.db.session import AsyncSessionLocal


REQUIRED_KEYS = ("set_id", "question_id", "question", "choices", "correct_answer_index")


def is_valid(q: Dict) -> bool:
    if any(key not in q for key in REQUIRED_KEYS):
        return False
    choices = q["choices"]
    index = q["correct_answer_index"]
    return (
        isinstance(choices, list)
        and len(choices) >= 2
        and isinstance(index, int)
        and 0 <= index < len(choices)
    )


def load_questions(path: Path) -> List[Dict]:
    questions: List[Dict] = []
    with path.open("r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            try:
                questions.append(json.loads(line))
            except json.JSONDecodeError:
                continue
    return questions


def summarize_questions(questions: List[Dict]) -> None:
    valid = [q for q in questions if is_valid(q)]
    print(f"Loaded {len(questions)} questions ({len(questions) - len(valid)} invalid)")

    by_set: Counter = Counter(q["set_id"] for q in valid)
    print("\nBy set:")
    for set_id, count in sorted(by_set.items()):
        print(f"  {set_id:20s}: {count:5d}")


async def apply_seed(questions: List[Dict], learner_ids: List[str]) -> None:
    valid = [q for q in questions if is_valid(q)]
    async with AsyncSessionLocal() as session:
        set_titles = {q["set_id"]: q.get("set_title") or q["set_id"] for q in valid}
        if set_titles:
            result = await session.execute(select(QuestionSet.id).where(QuestionSet.id.in_(set_titles)))
            existing_sets = set(result.scalars().all())
            for set_id, title in set_titles.items():
                if set_id not in existing_sets:
                    session.add(QuestionSet(id=set_id, title=title))
            await session.flush()

        inserted = 0
        skipped_existing = 0
        for q in valid:
            if await session.get(Question, q["question_id"]) is not None:
                skipped_existing += 1
                continue
            session.add(
                Question(
                    id=q["question_id"],
                    set_id=q["set_id"],
                    question_text=q["question"],
                    choices=q["choices"],
                    correct_answer_index=q["correct_answer_index"],
                    explanation=q.get("explanation"),
                    difficulty=q.get("difficulty"),
                )
            )
            inserted += 1

        created_learners = 0
        for learner_id in learner_ids:
            if await session.get(Learner, learner_id) is None:
                session.add(Learner(id=learner_id))
                created_learners += 1

        await session.commit()

    print("\nSeeding complete.")
    print(f"  Sets:                  {len(set_titles)}")
    print(f"  Inserted questions:    {inserted}")
    print(f"  Skipped existing:      {skipped_existing}")
    print(f"  Created learners:      {created_learners}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed question sets for the SRS engine.")
    parser.add_argument("path", type=Path, help="JSONL file with one question per line")
    parser.add_argument("--learner", action="append", default=[], help="Learner id to create (repeatable)")
    parser.add_argument("--apply", action="store_true", help="Write to the database")
    args = parser.parse_args()

    questions = load_questions(args.path)
    summarize_questions(questions)
    if args.apply:
        asyncio.run(apply_seed(questions, args.learner))


if __name__ == "__main__":
    main()
