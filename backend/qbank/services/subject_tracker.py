"""
Subject-Target Tracker.

Standing background goal: fill every catalog subject up to its question
target, one batch per tick. Subject rows cycle

    pending -> running -> pending | completed
    running -> error -> (picked up again next tick)

Errors are never terminal for subjects. When every subject has reached its
target the tracker switches its own persisted toggle off.
"""

import logging
import time
from typing import Callable, Dict

from sqlalchemy.orm import Session

from qbank.services import storage
from qbank.services.question_generator import QuestionGenerator
from qbank.services.scheduler import CycleResult
from qbank.services.subject_catalog import get_seed_rows, get_subject_topics

logger = logging.getLogger(__name__)


class SubjectTargetTracker:
    def __init__(
        self,
        session_factory: Callable[[], Session],
        generator: QuestionGenerator,
        batch_size: int = 10,
    ):
        self.session_factory = session_factory
        self.generator = generator
        self.batch_size = batch_size
        self._is_running = False

    @property
    def is_running(self) -> bool:
        return self._is_running

    async def tick(self) -> CycleResult:
        """Process one batch for the highest priority unfinished subject."""
        if self._is_running:
            logger.info("Subject tracker tick skipped: previous tick still running")
            return CycleResult(status="skipped")

        self._is_running = True
        db = None
        try:
            db = self.session_factory()
            return await self._run_cycle(db)
        finally:
            if db is not None:
                db.close()
            self._is_running = False

    async def run_now(self) -> CycleResult:
        """Manual trigger; shares the guard with scheduled ticks."""
        logger.info("Subject tracker cycle triggered manually")
        return await self.tick()

    async def _run_cycle(self, db: Session) -> CycleResult:
        if not storage.is_auto_generation_enabled(db):
            return CycleResult(status="disabled")

        reclaimed = storage.reclaim_stuck_subjects(db)
        if reclaimed:
            logger.warning(f"Reclaimed {len(reclaimed)} subject(s) stuck in running: {reclaimed}")

        subject = storage.next_subject(db, exclude_ids=reclaimed)
        if subject is None:
            if reclaimed:
                return CycleResult(status="idle", reclaimed=len(reclaimed))
            storage.set_auto_generation_enabled(db, False)
            logger.info("All subject targets reached; auto generation disabled")
            return CycleResult(status="catalog_complete")

        subject_id = subject.id
        category = subject.category
        name = subject.subject
        batch = min(self.batch_size, subject.target_count - subject.generated_count)

        storage.mark_subject_running(db, subject)
        logger.info(
            f"Generating {batch} {category} questions for {name} "
            f"({subject.generated_count}/{subject.target_count})"
        )

        topics = get_subject_topics(category, name)
        started = time.monotonic()
        try:
            result = await self.generator.generate_batch(
                category=category,
                count=batch,
                subject=name,
                areas_to_cover=", ".join(topics) if topics else None,
            )
            saved = storage.save_questions(db, result.questions)
        except Exception as e:
            db.rollback()
            duration_ms = int((time.monotonic() - started) * 1000)
            message = str(e) or e.__class__.__name__
            storage.record_subject_failure(db, subject_id, message)
            storage.append_log(
                db,
                subject_progress_id=subject_id,
                category=category,
                subject=name,
                questions_requested=batch,
                status="failed",
                error_message=message,
                duration_ms=duration_ms,
            )
            logger.error(f"Generation failed for {category}/{name}: {message}")
            return CycleResult(
                status="failed", subject_id=subject_id, requested=batch, error=message,
                reclaimed=len(reclaimed),
            )

        duration_ms = int((time.monotonic() - started) * 1000)
        updated = storage.record_subject_success(db, subject_id, len(saved))
        storage.append_log(
            db,
            subject_progress_id=subject_id,
            category=category,
            subject=name,
            questions_requested=batch,
            questions_generated=result.parsed_count,
            questions_saved=len(saved),
            status="success",
            duration_ms=duration_ms,
        )
        logger.info(
            f"Saved {len(saved)}/{batch} questions for {category}/{name} in {duration_ms}ms"
        )

        status = "completed" if updated is not None and updated.status == "completed" else "success"
        return CycleResult(
            status=status, subject_id=subject_id, requested=batch, saved=len(saved),
            reclaimed=len(reclaimed),
        )

    # ------------------------------------------------------------------
    # Operator controls
    # ------------------------------------------------------------------

    def set_enabled(self, db: Session, enabled: bool) -> None:
        storage.set_auto_generation_enabled(db, enabled)
        logger.info(f"Auto generation {'resumed' if enabled else 'paused'}")

    def overview(self, db: Session) -> Dict:
        """Totals plus the per-subject list, in priority order."""
        subjects = storage.list_subjects(db)
        total_target = sum(s.target_count for s in subjects)
        total_generated = sum(s.generated_count for s in subjects)

        by_category: Dict[str, Dict[str, int]] = {}
        for s in subjects:
            entry = by_category.setdefault(s.category, {"target": 0, "generated": 0})
            entry["target"] += s.target_count
            entry["generated"] += s.generated_count

        return {
            "enabled": storage.is_auto_generation_enabled(db),
            "is_running": self._is_running,
            "total_target": total_target,
            "total_generated": total_generated,
            "progress_percent": round(total_generated / total_target * 100, 1) if total_target else 100.0,
            "by_category": by_category,
            "subjects": subjects,
        }


def seed_subjects(db: Session) -> int:
    """Insert the subject catalog on first boot; no-op afterwards."""
    created = storage.seed_subject_progress(db, get_seed_rows())
    if created:
        logger.info(f"Seeded {created} subject progress rows")
    return created
