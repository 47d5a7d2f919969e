"""
Tests for the Ad-hoc Job Queue.
"""

import asyncio

import pytest
from sqlalchemy.orm import Session

from qbank.models.models import GenerationJob, GenerationLog, Question
from qbank.services.job_queue import (
    GenerationJobQueue,
    InvalidJobTransition,
    JobNotFoundError,
    JobValidationError,
    distribute_evenly,
    split_topics,
)
from qbank.services.question_generator import QuestionGenerator
from tests.mocks import FakeLLMClient, mock_questions_json


def _reload(db: Session, job_id: int) -> GenerationJob:
    db.expire_all()
    return db.get(GenerationJob, job_id)


class TestHelpers:

    @pytest.mark.unit
    def test_split_topics(self):
        assert split_topics("Beta Blockers, ACE Inhibitors;Statins\nDiuretics ,") == [
            "Beta Blockers", "ACE Inhibitors", "Statins", "Diuretics",
        ]
        assert split_topics(None) == []
        assert split_topics("  ") == []

    @pytest.mark.unit
    def test_distribute_evenly(self):
        assert distribute_evenly(23, 3) == [8, 8, 7]
        assert distribute_evenly(9, 3) == [3, 3, 3]
        assert distribute_evenly(4, 4) == [1, 1, 1, 1]


class TestQueueTick:

    @pytest.mark.asyncio
    async def test_idle_when_no_jobs(self, queue):
        assert (await queue.tick()).status == "idle"

    @pytest.mark.asyncio
    async def test_pending_job_runs_one_batch(self, db: Session, queue, fake_llm, make_job):
        job = make_job(total_count=50, batch_size=5)

        result = await queue.tick()

        assert result.status == "success"
        assert fake_llm.requested_counts == [5]
        row = _reload(db, job.id)
        assert row.status == "running"
        assert row.generated_count == 5
        saved = db.query(Question).all()
        assert len(saved) == 5
        assert all(q.topic == "Cardiac Medications" for q in saved)

    @pytest.mark.asyncio
    async def test_job_settings_reach_prompt(self, queue, fake_llm, make_job):
        make_job(difficulty="hard", sample_question="Which drug lowers preload?",
                 areas_to_cover="Nitrates")
        await queue.tick()
        prompt = fake_llm.calls[0]["prompt"]
        assert "hard difficulty" in prompt
        assert "Which drug lowers preload?" in prompt
        assert "Nitrates" in prompt

    @pytest.mark.asyncio
    async def test_last_batch_requests_exact_remaining(self, db: Session, queue, fake_llm, make_job):
        job = make_job(total_count=12, batch_size=5, generated_count=10, status="running")

        result = await queue.tick()

        assert fake_llm.requested_counts == [2]
        assert result.status == "completed"
        row = _reload(db, job.id)
        assert row.status == "completed"
        assert row.generated_count == 12
        assert row.completed_at is not None

    @pytest.mark.asyncio
    async def test_job_runs_to_completion(self, db: Session, queue, fake_llm, make_job):
        job = make_job(total_count=12, batch_size=5)

        for _ in range(5):
            await queue.tick()

        assert fake_llm.requested_counts == [5, 5, 2]
        row = _reload(db, job.id)
        assert row.status == "completed"
        assert row.generated_count == 12
        assert db.query(GenerationLog).filter_by(generation_job_id=job.id).count() == 3

    @pytest.mark.asyncio
    async def test_already_complete_job_closed_without_call(self, db: Session, queue, fake_llm, make_job):
        job = make_job(total_count=10, generated_count=10, status="running")

        result = await queue.tick()

        assert result.status == "completed"
        assert fake_llm.calls == []
        assert _reload(db, job.id).status == "completed"

    @pytest.mark.asyncio
    async def test_oldest_job_first_and_paused_skipped(self, queue, make_job):
        make_job(status="paused")
        first = make_job()
        make_job()
        assert (await queue.tick()).job_id == first.id

    @pytest.mark.asyncio
    async def test_overshoot_clamped(self, db: Session, queue, fake_llm, make_job):
        job = make_job(total_count=8, batch_size=5, generated_count=5, status="running")
        fake_llm.queue(mock_questions_json(5))

        await queue.tick()

        row = _reload(db, job.id)
        assert row.generated_count == 8
        assert row.status == "completed"


class TestErrorThreshold:

    @pytest.mark.asyncio
    async def test_three_failures_fail_job(self, db: Session, queue, fake_llm, make_job):
        """total=50, batch 5: three consecutive failures -> failed, nothing generated"""
        job = make_job(total_count=50, batch_size=5)
        fake_llm.fail_next(3, "model overloaded")

        statuses = []
        for _ in range(3):
            await queue.tick()
            statuses.append(_reload(db, job.id).status)

        row = _reload(db, job.id)
        assert statuses == ["running", "running", "failed"]
        assert row.error_count == 3
        assert row.generated_count == 0
        assert "model overloaded" in row.last_error
        logs = db.query(GenerationLog).filter_by(generation_job_id=job.id).all()
        assert [log.status for log in logs] == ["failed"] * 3
        assert all(log.duration_ms is not None for log in logs)

        # Failed jobs are not picked up again
        assert (await queue.tick()).status == "idle"

    @pytest.mark.asyncio
    async def test_success_after_two_failures_resets_errors(self, db: Session, queue, fake_llm, make_job):
        job = make_job(total_count=50, batch_size=5)
        fake_llm.fail_next(2)

        for _ in range(3):
            await queue.tick()

        row = _reload(db, job.id)
        assert row.status == "running"
        assert row.error_count == 0
        assert row.last_error is None
        assert row.generated_count == 5

    @pytest.mark.asyncio
    async def test_custom_threshold(self, db: Session, session_factory, make_job):
        llm = FakeLLMClient()
        llm.fail_next(1)
        queue = GenerationJobQueue(
            session_factory, QuestionGenerator(client=llm, model="m"), max_errors=1
        )
        job = make_job()

        await queue.tick()

        assert _reload(db, job.id).status == "failed"


class TestTickResilience:

    @pytest.mark.asyncio
    async def test_questions_saved_under_job_subject(self, db: Session, queue, make_job):
        make_job(subject="Pharmacology", topic="Diuretics", total_count=5)

        await queue.tick()

        saved = db.query(Question).all()
        assert len(saved) == 5
        assert {(q.subject, q.topic) for q in saved} == {("Pharmacology", "Diuretics")}

    @pytest.mark.asyncio
    async def test_session_failure_releases_guard(self, session_factory, generator, make_job):
        make_job()
        attempts = []

        def flaky_factory():
            attempts.append(1)
            if len(attempts) == 1:
                raise RuntimeError("database unavailable")
            return session_factory()

        queue = GenerationJobQueue(flaky_factory, generator)

        with pytest.raises(RuntimeError):
            await queue.tick()
        assert not queue.is_running

        assert (await queue.tick()).status == "success"


class TestInFlightChanges:

    @pytest.mark.asyncio
    async def test_pause_during_batch_is_preserved(self, db: Session, session_factory, make_job):
        release = asyncio.Event()

        class BlockingClient(FakeLLMClient):
            async def complete(self, prompt, model):
                await release.wait()
                return await super().complete(prompt, model)

        queue = GenerationJobQueue(
            session_factory, QuestionGenerator(client=BlockingClient(), model="m")
        )
        job = make_job(total_count=50, batch_size=5)

        tick = asyncio.create_task(queue.tick())
        await asyncio.sleep(0.05)
        assert queue.is_running
        assert (await queue.tick()).status == "skipped"

        queue.pause_job(db, job.id)
        release.set()
        await tick

        row = _reload(db, job.id)
        assert row.status == "paused"
        assert row.generated_count == 5

    @pytest.mark.asyncio
    async def test_job_deleted_mid_flight(self, db: Session, session_factory, make_job):
        release = asyncio.Event()

        class BlockingClient(FakeLLMClient):
            async def complete(self, prompt, model):
                await release.wait()
                return await super().complete(prompt, model)

        queue = GenerationJobQueue(
            session_factory, QuestionGenerator(client=BlockingClient(), model="m")
        )
        job = make_job()

        tick = asyncio.create_task(queue.tick())
        await asyncio.sleep(0.05)
        queue.delete_job(db, job.id)
        release.set()
        result = await tick

        assert result.job_id == job.id
        assert db.query(GenerationJob).count() == 0
        assert db.query(GenerationLog).count() == 0


class TestAdminOperations:

    @pytest.mark.unit
    def test_create_single_job(self, db: Session, queue):
        result = queue.create_job(
            db, category="NCLEX", topic="Insulin", total_count=20, created_by="admin-1"
        )
        assert len(result.jobs) == 1
        job = result.jobs[0]
        assert job.status == "pending"
        assert job.subject == "Insulin"
        assert job.batch_size == 5
        assert job.created_by == "admin-1"

    @pytest.mark.unit
    def test_create_distributes_over_topics(self, db: Session, queue):
        result = queue.create_job(
            db, category="NCLEX", topic="Cardiac", subject="Pharmacology", total_count=23,
            areas_to_cover="Beta Blockers, ACE Inhibitors, Anticoagulants",
        )
        assert [(j.topic, j.total_count) for j in result.jobs] == [
            ("Beta Blockers", 8), ("ACE Inhibitors", 8), ("Anticoagulants", 7),
        ]
        assert all(j.subject == "Pharmacology" for j in result.jobs)
        assert result.total_count == 23

    @pytest.mark.unit
    def test_create_without_distribution(self, db: Session, queue):
        result = queue.create_job(
            db, category="NCLEX", topic="Cardiac", total_count=10,
            areas_to_cover="Beta Blockers, ACE Inhibitors", distribute=False,
        )
        assert len(result.jobs) == 1
        assert result.jobs[0].areas_to_cover == "Beta Blockers, ACE Inhibitors"

    @pytest.mark.unit
    def test_fewer_questions_than_topics_rejected(self, db: Session, queue):
        with pytest.raises(JobValidationError):
            queue.create_job(db, category="NCLEX", topic="x", total_count=2, areas_to_cover="a, b, c")

    @pytest.mark.unit
    def test_non_positive_count_rejected(self, db: Session, queue):
        with pytest.raises(JobValidationError):
            queue.create_job(db, category="NCLEX", topic="x", total_count=0)

    @pytest.mark.unit
    def test_kick_without_event_loop_is_noop(self, queue):
        queue.kick()
        assert queue.pending_kicks == 0

    @pytest.mark.asyncio
    async def test_stop_cancels_scheduled_kicks(self, db: Session, session_factory, fake_llm, generator):
        queue = GenerationJobQueue(session_factory, generator, kick_delay_seconds=0.05)
        queue.create_job(db, category="NCLEX", topic="Insulin", total_count=5)
        assert queue.pending_kicks == 1

        await queue.stop()
        await asyncio.sleep(0.1)

        assert queue.pending_kicks == 0
        assert fake_llm.calls == []

    @pytest.mark.asyncio
    async def test_no_kicks_after_stop(self, db: Session, queue, make_job):
        await queue.stop()
        job = make_job(status="paused")
        queue.resume_job(db, job.id)
        assert queue.pending_kicks == 0

    @pytest.mark.asyncio
    async def test_create_kicks_immediate_tick(self, db: Session, queue, fake_llm):
        queue.create_job(db, category="HESI", topic="Acids and Bases", total_count=5)

        for _ in range(50):
            if fake_llm.calls and not queue.is_running:
                break
            await asyncio.sleep(0.02)

        assert fake_llm.requested_counts == [5]

    @pytest.mark.unit
    def test_pause_and_resume_clear_errors(self, db: Session, queue, make_job):
        job = make_job(status="running", error_count=2, last_error="boom")

        paused = queue.pause_job(db, job.id)
        assert paused.status == "paused"

        resumed = queue.resume_job(db, job.id)
        assert resumed.status == "pending"
        assert resumed.error_count == 0
        assert resumed.last_error is None

    @pytest.mark.unit
    def test_resume_failed_job(self, db: Session, queue, make_job):
        job = make_job(status="failed", error_count=3, last_error="boom")
        assert queue.resume_job(db, job.id).status == "pending"

    @pytest.mark.unit
    def test_resume_running_job_rejected(self, db: Session, queue, make_job):
        job = make_job(status="running")
        with pytest.raises(InvalidJobTransition):
            queue.resume_job(db, job.id)

    @pytest.mark.unit
    def test_pause_completed_job_rejected(self, db: Session, queue, make_job):
        job = make_job(status="completed", total_count=5, generated_count=5)
        with pytest.raises(InvalidJobTransition):
            queue.pause_job(db, job.id)

    @pytest.mark.unit
    def test_unknown_job(self, db: Session, queue):
        with pytest.raises(JobNotFoundError):
            queue.get_job(db, 999)
        with pytest.raises(JobNotFoundError):
            queue.pause_job(db, 999)
        with pytest.raises(JobNotFoundError):
            queue.delete_job(db, 999)

    @pytest.mark.asyncio
    async def test_resumed_job_picked_up_next_tick(self, db: Session, queue, fake_llm, make_job):
        job = make_job(status="running")
        queue.pause_job(db, job.id)
        assert (await queue.tick()).status == "idle"

        queue.resume_job(db, job.id)
        result = await queue.tick()

        assert result.job_id == job.id
        assert _reload(db, job.id).status == "running"

    @pytest.mark.unit
    def test_list_jobs_newest_first(self, db: Session, queue, make_job):
        old = make_job()
        new = make_job(status="paused")
        assert [j.id for j in queue.list_jobs(db)] == [new.id, old.id]
        assert [j.id for j in queue.list_jobs(db, status="paused")] == [new.id]
