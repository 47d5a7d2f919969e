"""
Background generation runtime.

Owns the one QuestionGenerator, SubjectTargetTracker and GenerationJobQueue
of the process plus the tickers that drive them. Built once at startup from
GenerationSettings and stored on ``app.state.generation``.
"""

import logging
from typing import Callable, Optional

from sqlalchemy.orm import Session

from qbank.config import GenerationSettings
from qbank.database import SessionLocal
from qbank.services.job_queue import GenerationJobQueue
from qbank.services.question_generator import QuestionGenerator
from qbank.services.scheduler import IntervalTicker
from qbank.services.subject_tracker import SubjectTargetTracker, seed_subjects

logger = logging.getLogger(__name__)


class GenerationRuntime:
    def __init__(
        self,
        settings: GenerationSettings,
        session_factory: Callable[[], Session] = SessionLocal,
        generator: Optional[QuestionGenerator] = None,
        subject_ticker=None,
        job_ticker=None,
    ):
        self.settings = settings
        self.session_factory = session_factory
        self.generator = generator or QuestionGenerator.from_settings(settings)
        self.tracker = SubjectTargetTracker(
            session_factory,
            self.generator,
            batch_size=settings.subject_batch_size,
        )
        self.queue = GenerationJobQueue(
            session_factory,
            self.generator,
            max_errors=settings.max_job_errors,
            default_batch_size=settings.job_batch_size,
            kick_delay_seconds=settings.job_kick_delay_seconds,
        )
        self.subject_ticker = subject_ticker or IntervalTicker("subject-tracker")
        self.job_ticker = job_ticker or IntervalTicker("job-queue")
        self.started = False

    def seed(self) -> int:
        db = self.session_factory()
        try:
            return seed_subjects(db)
        finally:
            db.close()

    def start(self) -> None:
        """Seed the catalog and start both loops. Must run on the event loop."""
        self.seed()

        if not self.settings.background_enabled:
            logger.info("Background generation disabled via ENABLE_BACKGROUND_GENERATION=false")
            return

        self.subject_ticker.on_tick(
            self.tracker.tick,
            interval=self.settings.subject_tick_seconds,
            initial_delay=self.settings.startup_delay_seconds,
        )
        self.job_ticker.on_tick(
            self.queue.tick,
            interval=self.settings.job_tick_seconds,
            initial_delay=self.settings.startup_delay_seconds,
        )
        self.started = True
        logger.info(
            f"Generation schedulers started (subjects every {self.settings.subject_tick_seconds:.0f}s, "
            f"jobs every {self.settings.job_tick_seconds:.0f}s)"
        )

    async def stop(self) -> None:
        await self.subject_ticker.stop()
        await self.job_ticker.stop()
        await self.queue.stop()
        self.started = False
