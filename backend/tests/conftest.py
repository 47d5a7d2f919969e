"""
Pytest configuration and fixtures for question bank backend tests.

Provides:
- Per-test SQLite database with a shared session factory
- Fake LLM client and generator wired to it
- Subject tracker / job queue instances
- FastAPI test client with a test runtime on app.state
"""

import pytest
import os
from typing import Callable, Generator
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session

# Set test environment before importing app
os.environ["DATABASE_URL"] = "sqlite:///./test_qbank.db"
os.environ["OPENAI_API_KEY"] = "test-key-not-real"
os.environ["ENABLE_BACKGROUND_GENERATION"] = "false"
os.environ.pop("ADMIN_API_TOKEN", None)

from qbank.main import app
from qbank.config import GenerationSettings
from qbank.database import Base, get_db
from qbank.models.models import GenerationJob, SubjectProgress
from qbank.services.background_tasks import GenerationRuntime
from qbank.services.job_queue import GenerationJobQueue
from qbank.services.question_generator import QuestionGenerator
from qbank.services.scheduler import ManualTicker
from qbank.services.subject_tracker import SubjectTargetTracker
from tests.mocks import FakeLLMClient


@pytest.fixture(scope="session", autouse=True)
def cleanup_app_database():
    """Remove the database file created when qbank.main is imported"""
    yield
    if os.path.exists("./test_qbank.db"):
        os.remove("./test_qbank.db")


# =========================================================================
# Database Fixtures
# =========================================================================

@pytest.fixture(scope="function")
def session_factory(tmp_path) -> Generator[Callable[[], Session], None, None]:
    """Fresh file-backed SQLite database per test"""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'qbank_test.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    yield factory

    engine.dispose()


@pytest.fixture(scope="function")
def db(session_factory) -> Generator[Session, None, None]:
    """Session for arranging and asserting; call db.expire_all() after a tick"""
    session = session_factory()
    yield session
    session.close()


# =========================================================================
# Generation Fixtures
# =========================================================================

@pytest.fixture
def fake_llm() -> FakeLLMClient:
    return FakeLLMClient()


@pytest.fixture
def generator(fake_llm: FakeLLMClient) -> QuestionGenerator:
    return QuestionGenerator(client=fake_llm, model="test-model", timeout_seconds=5)


@pytest.fixture
def tracker(session_factory, generator) -> SubjectTargetTracker:
    return SubjectTargetTracker(session_factory, generator, batch_size=10)


@pytest.fixture
def queue(session_factory, generator) -> GenerationJobQueue:
    return GenerationJobQueue(
        session_factory, generator, max_errors=3, default_batch_size=5, kick_delay_seconds=0
    )


@pytest.fixture
def make_subject(db: Session):
    """Factory for SubjectProgress rows"""
    def _make(**overrides) -> SubjectProgress:
        values = dict(
            category="NCLEX",
            subject="Management of Care",
            target_count=20,
            generated_count=0,
            status="pending",
            error_count=0,
            sort_order=1,
        )
        values.update(overrides)
        subject = SubjectProgress(**values)
        db.add(subject)
        db.commit()
        db.refresh(subject)
        return subject
    return _make


@pytest.fixture
def make_job(db: Session):
    """Factory for GenerationJob rows"""
    def _make(**overrides) -> GenerationJob:
        values = dict(
            category="NCLEX",
            subject="Pharmacological and Parenteral Therapies",
            topic="Cardiac Medications",
            difficulty="medium",
            total_count=50,
            batch_size=5,
            generated_count=0,
            status="pending",
            error_count=0,
        )
        values.update(overrides)
        job = GenerationJob(**values)
        db.add(job)
        db.commit()
        db.refresh(job)
        return job
    return _make


# =========================================================================
# API Fixtures
# =========================================================================

@pytest.fixture
def runtime(session_factory, generator) -> GenerationRuntime:
    settings = GenerationSettings(
        llm_model="test-model",
        job_kick_delay_seconds=3600,  # Tests tick the queue explicitly
        background_enabled=False,
    )
    return GenerationRuntime(
        settings,
        session_factory=session_factory,
        generator=generator,
        subject_ticker=ManualTicker("subject-tracker"),
        job_ticker=ManualTicker("job-queue"),
    )


@pytest.fixture(scope="function")
def client(session_factory, runtime) -> Generator[TestClient, None, None]:
    """Provide FastAPI test client with database and runtime overrides"""
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.state.generation = runtime
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
    del app.state.generation
