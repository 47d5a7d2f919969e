"""
Ad-hoc Job Queue.

Admin-requested generation jobs, processed one batch per tick, oldest first:

    pending -> running -> completed
    running -> failed            (after max_errors consecutive failures)
    pending/running -> paused    (admin)
    paused/failed -> pending     (admin resume, error count cleared)

Creating or resuming a job schedules an immediate extra tick so the job
starts without waiting for the regular polling interval.
"""

import asyncio
import logging
import re
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Set

from sqlalchemy.orm import Session

from qbank.models.models import GenerationJob
from qbank.services import storage
from qbank.services.question_generator import QuestionGenerator
from qbank.services.scheduler import CycleResult

logger = logging.getLogger(__name__)

TOPIC_SEPARATORS = re.compile(r"[,;\n]")


class JobNotFoundError(Exception):
    """Raised when a job id does not exist."""
    pass


class InvalidJobTransition(Exception):
    """Raised when an admin action is not allowed for the job's status."""
    pass


class JobValidationError(Exception):
    """Raised when a job request cannot be turned into jobs."""
    pass


@dataclass
class JobCreationResult:
    jobs: List[GenerationJob] = field(default_factory=list)

    @property
    def total_count(self) -> int:
        return sum(job.total_count for job in self.jobs)


def split_topics(areas_to_cover: Optional[str]) -> List[str]:
    """Split an areas-to-cover string into individual topics."""
    if not areas_to_cover:
        return []
    return [t.strip() for t in TOPIC_SEPARATORS.split(areas_to_cover) if t.strip()]


def distribute_evenly(total: int, parts: int) -> List[int]:
    """
    Split ``total`` into ``parts`` counts that differ by at most one.

    The remainder goes one each to the first parts: 23 over 3 -> [8, 8, 7].
    """
    base, remainder = divmod(total, parts)
    return [base + (1 if i < remainder else 0) for i in range(parts)]


class GenerationJobQueue:
    def __init__(
        self,
        session_factory: Callable[[], Session],
        generator: QuestionGenerator,
        max_errors: int = 3,
        default_batch_size: int = 5,
        kick_delay_seconds: float = 1.0,
    ):
        self.session_factory = session_factory
        self.generator = generator
        self.max_errors = max_errors
        self.default_batch_size = default_batch_size
        self.kick_delay_seconds = kick_delay_seconds
        self._is_running = False
        self._kick_tasks: Set[asyncio.Task] = set()
        self._stopped = False

    @property
    def is_running(self) -> bool:
        return self._is_running

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------

    async def tick(self) -> CycleResult:
        """Process one batch of the oldest active job."""
        if self._is_running:
            logger.debug("Job queue tick skipped: previous tick still running")
            return CycleResult(status="skipped")

        self._is_running = True
        db = None
        try:
            db = self.session_factory()
            return await self._process_next(db)
        finally:
            if db is not None:
                db.close()
            self._is_running = False

    async def _process_next(self, db: Session) -> CycleResult:
        job = storage.next_active_job(db)
        if job is None:
            return CycleResult(status="idle")

        if job.status == "pending":
            storage.update_job_status(db, job, "running")

        if job.generated_count >= job.total_count:
            storage.update_job_status(db, job, "completed")
            logger.info(f"Job {job.id} already at {job.generated_count}/{job.total_count}; completed")
            return CycleResult(status="completed", job_id=job.id)

        job_id = job.id
        category = job.category
        subject = job.subject or job.topic
        topic = job.topic
        batch = min(job.batch_size or self.default_batch_size, job.total_count - job.generated_count)

        logger.info(
            f"Job {job_id}: generating {batch} {category} questions on {topic} "
            f"({job.generated_count}/{job.total_count})"
        )

        started = time.monotonic()
        try:
            result = await self.generator.generate_batch(
                category=category,
                count=batch,
                subject=subject,
                difficulty=job.difficulty,
                sample_question=job.sample_question,
                areas_to_cover=job.areas_to_cover or topic,
                topic=topic,
            )
            saved = storage.save_questions(db, result.questions, topic=topic)
        except Exception as e:
            db.rollback()
            duration_ms = int((time.monotonic() - started) * 1000)
            message = str(e) or e.__class__.__name__
            updated = storage.record_job_failure(db, job_id, message, self.max_errors)
            if updated is None:
                logger.warning(f"Job {job_id} was deleted while its batch was in flight")
                return CycleResult(status="failed", job_id=job_id, requested=batch, error=message)

            storage.append_log(
                db,
                generation_job_id=job_id,
                category=category,
                subject=subject,
                questions_requested=batch,
                status="failed",
                error_message=message,
                duration_ms=duration_ms,
            )
            if updated.status == "failed":
                logger.error(f"Job {job_id} failed after {updated.error_count} consecutive errors: {message}")
            else:
                logger.warning(f"Job {job_id} batch failed ({updated.error_count}/{self.max_errors}): {message}")
            return CycleResult(status="failed", job_id=job_id, requested=batch, error=message)

        duration_ms = int((time.monotonic() - started) * 1000)
        updated = storage.record_job_success(db, job_id, len(saved))
        if updated is None:
            logger.warning(f"Job {job_id} was deleted while its batch was in flight; {len(saved)} questions kept")
            return CycleResult(status="success", job_id=job_id, requested=batch, saved=len(saved))

        storage.append_log(
            db,
            generation_job_id=job_id,
            category=category,
            subject=subject,
            questions_requested=batch,
            questions_generated=result.parsed_count,
            questions_saved=len(saved),
            status="success",
            duration_ms=duration_ms,
        )
        logger.info(
            f"Job {job_id}: saved {len(saved)}/{batch} "
            f"({updated.generated_count}/{updated.total_count}) in {duration_ms}ms"
        )

        status = "completed" if updated.status == "completed" else "success"
        return CycleResult(status=status, job_id=job_id, requested=batch, saved=len(saved))

    def kick(self) -> None:
        """Schedule one extra tick shortly, if an event loop is running."""
        if self._stopped:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        task = loop.create_task(self._delayed_tick())
        self._kick_tasks.add(task)
        task.add_done_callback(self._kick_done)

    @property
    def pending_kicks(self) -> int:
        return len(self._kick_tasks)

    async def _delayed_tick(self) -> CycleResult:
        await asyncio.sleep(self.kick_delay_seconds)
        return await self.tick()

    def _kick_done(self, task: asyncio.Task) -> None:
        self._kick_tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Immediate job tick failed: {task.exception()}")

    async def stop(self) -> None:
        """Cancel scheduled immediate ticks and refuse new ones."""
        self._stopped = True
        tasks = list(self._kick_tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info(f"Cancelled {len(tasks)} pending immediate job tick(s)")

    # ------------------------------------------------------------------
    # Admin operations
    # ------------------------------------------------------------------

    def create_job(
        self,
        db: Session,
        category: str,
        topic: str,
        total_count: int,
        subject: Optional[str] = None,
        difficulty: str = "medium",
        batch_size: Optional[int] = None,
        sample_question: Optional[str] = None,
        areas_to_cover: Optional[str] = None,
        created_by: Optional[str] = None,
        distribute: bool = True,
    ) -> JobCreationResult:
        """
        Create one job, or one job per topic when areas_to_cover lists
        several topics and ``distribute`` is set.

        Raises:
            JobValidationError: non-positive counts, or fewer questions
                than topics
        """
        if total_count < 1:
            raise JobValidationError("total_count must be at least 1")
        batch_size = batch_size or self.default_batch_size
        if batch_size < 1:
            raise JobValidationError("batch_size must be at least 1")

        topics = split_topics(areas_to_cover) if distribute else []
        common = dict(
            category=category,
            subject=subject or topic,
            difficulty=difficulty,
            batch_size=batch_size,
            sample_question=sample_question,
            created_by=created_by,
        )

        result = JobCreationResult()
        if len(topics) > 1:
            if total_count < len(topics):
                raise JobValidationError(
                    f"Cannot spread {total_count} questions over {len(topics)} topics"
                )
            for area, count in zip(topics, distribute_evenly(total_count, len(topics))):
                result.jobs.append(storage.create_job(
                    db, topic=area, total_count=count, areas_to_cover=area, **common
                ))
        else:
            result.jobs.append(storage.create_job(
                db, topic=topic, total_count=total_count, areas_to_cover=areas_to_cover, **common
            ))

        logger.info(
            f"Created {len(result.jobs)} generation job(s) for {result.total_count} "
            f"{category} questions (by {created_by or 'unknown'})"
        )
        self.kick()
        return result

    def get_job(self, db: Session, job_id: int) -> GenerationJob:
        job = storage.get_job(db, job_id)
        if not job:
            raise JobNotFoundError(f"Job {job_id} not found")
        return job

    def list_jobs(self, db: Session, status: Optional[str] = None, limit: int = 50) -> List[GenerationJob]:
        return storage.list_jobs(db, status=status, limit=limit)

    def pause_job(self, db: Session, job_id: int) -> GenerationJob:
        job = self.get_job(db, job_id)
        if job.status == "completed":
            raise InvalidJobTransition(f"Job {job_id} is already completed")
        storage.update_job_status(db, job, "paused")
        logger.info(f"Job {job_id} paused")
        return job

    def resume_job(self, db: Session, job_id: int) -> GenerationJob:
        job = self.get_job(db, job_id)
        if job.status not in ("paused", "failed"):
            raise InvalidJobTransition(f"Job {job_id} is {job.status}, only paused or failed jobs can be resumed")
        job.error_count = 0
        job.last_error = None
        storage.update_job_status(db, job, "pending")
        logger.info(f"Job {job_id} resumed")
        self.kick()
        return job

    def delete_job(self, db: Session, job_id: int) -> None:
        job = self.get_job(db, job_id)
        storage.delete_job(db, job)
        logger.info(f"Job {job_id} deleted")
