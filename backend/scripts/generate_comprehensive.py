#!/usr/bin/env python3
"""
Comprehensive question generation across the whole subject catalog.

One-shot pass that walks every catalog subject of the chosen exams and
generates its target number of questions in batches, split across
difficulty levels. Failed batches are reported and skipped; the pass keeps
going. Subject progress rows are not touched, so this can run alongside the
background tracker.

Usage:
    cd backend
    python -m scripts.generate_comprehensive --category NCLEX
    python -m scripts.generate_comprehensive --subject "Mathematics" --count 40
    python -m scripts.generate_comprehensive --dry-run     # Generate, don't save
"""

import sys
import argparse
import asyncio
import logging
import time
from pathlib import Path
from typing import Dict, List, Optional

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv
load_dotenv()

from qbank.config import GenerationSettings
from qbank.database import SessionLocal, engine, Base
from qbank.models import models  # noqa: F401
from qbank.services import storage
from qbank.services.question_generator import GenerationError, QuestionGenerator
from qbank.services.subject_catalog import SUBJECT_CATALOG

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
logger = logging.getLogger("generate_comprehensive")

DIFFICULTY_MIX = {"easy": 0.3, "medium": 0.5, "hard": 0.2}


def split_by_difficulty(count: int) -> Dict[str, int]:
    """Split a subject's question count across difficulty levels."""
    split = {level: int(count * share) for level, share in DIFFICULTY_MIX.items()}
    split["medium"] += count - sum(split.values())
    return split


async def generate_subject(
    generator: QuestionGenerator,
    category: str,
    subject: str,
    topics: List[str],
    count: int,
    batch_size: int,
    delay: float,
    save: bool,
) -> Dict[str, int]:
    """Generate ``count`` questions for one subject. Returns generated/saved/failed batch counts."""
    print(f"\n{category} - {subject}: {count} questions")
    totals = {"generated": 0, "saved": 0, "failed_batches": 0}
    areas = ", ".join(topics) if topics else None

    for difficulty, wanted in split_by_difficulty(count).items():
        done = 0
        while done < wanted:
            batch = min(batch_size, wanted - done)
            try:
                result = await generator.generate_batch(
                    category=category,
                    count=batch,
                    subject=subject,
                    difficulty=difficulty,
                    areas_to_cover=areas,
                )
            except GenerationError as e:
                totals["failed_batches"] += 1
                print(f"   ✗ {difficulty} batch of {batch}: {e}")
                # Count the attempt so one broken prompt can't loop forever
                done += batch
                await asyncio.sleep(delay)
                continue

            saved = 0
            if save:
                db = SessionLocal()
                try:
                    saved = len(storage.save_questions(db, result.questions))
                finally:
                    db.close()

            done += batch
            totals["generated"] += len(result.questions)
            totals["saved"] += saved
            print(f"   ✓ {difficulty}: generated {len(result.questions)}/{batch}, saved {saved}")
            await asyncio.sleep(delay)

    return totals


async def run(
    categories: List[str],
    subject: Optional[str],
    count: Optional[int],
    batch_size: int,
    delay: float,
    save: bool,
) -> int:
    generator = QuestionGenerator.from_settings(GenerationSettings.from_env())
    model = await generator.resolve_model()

    print("=" * 70)
    print("COMPREHENSIVE NURSING EXAM QUESTION GENERATION")
    print(f"Model: {model} | Categories: {', '.join(categories)} | Save: {save}")
    print("=" * 70)

    started = time.time()
    grand = {"generated": 0, "saved": 0, "failed_batches": 0}

    for category, name, target, topics in SUBJECT_CATALOG:
        if category not in categories:
            continue
        if subject and name.lower() != subject.lower():
            continue

        totals = await generate_subject(
            generator, category, name, topics, count or target, batch_size, delay, save
        )
        for key, value in totals.items():
            grand[key] += value

    minutes = (time.time() - started) / 60
    print("\n" + "=" * 70)
    print(f"Done in {minutes:.1f} minutes")
    print(f"Generated: {grand['generated']}  Saved: {grand['saved']}  Failed batches: {grand['failed_batches']}")

    if save:
        db = SessionLocal()
        try:
            for category, total in sorted(storage.count_questions_by_category(db).items()):
                print(f"   {category}: {total} questions in bank")
        finally:
            db.close()
    print("=" * 70)

    return 0 if grand["generated"] else 1


def main():
    parser = argparse.ArgumentParser(description="Generate questions for every catalog subject")
    parser.add_argument(
        "--category",
        action="append",
        choices=["NCLEX", "TEAS", "HESI"],
        help="Exam category (repeatable; default: all)",
    )
    parser.add_argument("--subject", help="Only this subject name")
    parser.add_argument("--count", type=int, help="Questions per subject (default: catalog target)")
    parser.add_argument("--batch-size", type=int, default=20, help="Questions per model call")
    parser.add_argument("--delay", type=float, default=2.0, help="Seconds between batches")
    parser.add_argument("--dry-run", action="store_true", help="Generate but do not save")
    args = parser.parse_args()

    Base.metadata.create_all(bind=engine)

    try:
        exit_code = asyncio.run(run(
            categories=args.category or ["NCLEX", "TEAS", "HESI"],
            subject=args.subject,
            count=args.count,
            batch_size=args.batch_size,
            delay=args.delay,
            save=not args.dry_run,
        ))
    except GenerationError as e:
        print(f"\nGeneration failed: {e}")
        exit_code = 1

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
