from sqlalchemy import Column, String, Integer, DateTime, JSON, ForeignKey, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
from qbank.database import Base


class Question(Base):
    __tablename__ = "questions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    category = Column(String, nullable=False, index=True)  # "NCLEX", "TEAS", "HESI"
    question = Column(Text, nullable=False)
    options = Column(JSON, nullable=False)  # Exactly four answer options
    correct_answer = Column(Text, nullable=False)  # Text of the correct option
    explanation = Column(Text, nullable=True)
    difficulty = Column(String, nullable=True, index=True)  # "easy", "medium", "hard"
    subject = Column(String, nullable=True, index=True)  # e.g. "Pharmacological and Parenteral Therapies"
    topic = Column(String, nullable=True, index=True)  # Unit within the subject, set by ad-hoc jobs
    source = Column(String, nullable=True, default="ai_generated")
    created_at = Column(DateTime, default=datetime.utcnow, index=True)


class SystemSetting(Base):
    """Operator toggles persisted across restarts (e.g. auto_generation_enabled)."""
    __tablename__ = "system_settings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    key = Column(String, unique=True, nullable=False, index=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


# ============================================================================
# BACKGROUND GENERATION MODELS
# ============================================================================

class SubjectProgress(Base):
    """
    Standing per-subject goal for the question bank.
    Seeded once from the subject catalog and advanced by the subject tracker.
    """
    __tablename__ = "generation_subject_progress"
    __table_args__ = (UniqueConstraint("category", "subject", name="uq_subject_progress_category_subject"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    category = Column(String, nullable=False, index=True)
    subject = Column(String, nullable=False)

    target_count = Column(Integer, nullable=False, default=0)
    generated_count = Column(Integer, nullable=False, default=0)

    # Status: pending, running, completed, error
    status = Column(String, nullable=False, default="pending", index=True)
    error_count = Column(Integer, nullable=False, default=0)
    last_error = Column(Text, nullable=True)
    last_run_at = Column(DateTime, nullable=True)

    sort_order = Column(Integer, nullable=False, default=0, index=True)  # Lower runs first

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    logs = relationship("GenerationLog", back_populates="subject_progress")


class GenerationJob(Base):
    """
    Admin-requested, bounded generation job.
    Advanced one batch per tick by the job queue.
    """
    __tablename__ = "generation_jobs"

    id = Column(Integer, primary_key=True, autoincrement=True)  # Also defines queue order

    # Job configuration
    category = Column(String, nullable=False, index=True)
    subject = Column(String, nullable=True)  # Main subject area passed to the model for context
    topic = Column(String, nullable=False)  # Specific unit, stamped on saved questions
    difficulty = Column(String, nullable=False, default="medium")
    total_count = Column(Integer, nullable=False)
    batch_size = Column(Integer, nullable=False, default=5)
    sample_question = Column(Text, nullable=True)
    areas_to_cover = Column(Text, nullable=True)

    # Progress tracking
    generated_count = Column(Integer, nullable=False, default=0)

    # Status: pending, running, paused, completed, failed
    status = Column(String, nullable=False, default="pending", index=True)
    error_count = Column(Integer, nullable=False, default=0)
    last_error = Column(Text, nullable=True)

    created_by = Column(String, nullable=True)  # Caller identity passed through by the auth layer

    # Timing
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    completed_at = Column(DateTime, nullable=True)

    logs = relationship("GenerationLog", back_populates="generation_job")


class GenerationLog(Base):
    """Append-only record of one generation attempt for a subject or a job."""
    __tablename__ = "generation_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    subject_progress_id = Column(Integer, ForeignKey("generation_subject_progress.id"), nullable=True, index=True)
    generation_job_id = Column(Integer, ForeignKey("generation_jobs.id"), nullable=True, index=True)

    category = Column(String, nullable=False)
    subject = Column(String, nullable=True)

    questions_requested = Column(Integer, nullable=False, default=0)
    questions_generated = Column(Integer, nullable=False, default=0)  # Items parsed before validation
    questions_saved = Column(Integer, nullable=False, default=0)

    status = Column(String, nullable=False)  # success, failed
    error_message = Column(Text, nullable=True)
    duration_ms = Column(Integer, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    subject_progress = relationship("SubjectProgress", back_populates="logs")
    generation_job = relationship("GenerationJob", back_populates="logs")
