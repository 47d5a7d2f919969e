"""
Persistence layer for question generation.

Plain functions over a SQLAlchemy session. Each scheduler tick touches a
single subject or job row, so every helper here works on one row at a time
and commits immediately. Nothing is cached; callers re-read state on every
tick.
"""

import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence

from sqlalchemy import func
from sqlalchemy.orm import Session

from qbank.models.models import (
    GenerationJob,
    GenerationLog,
    Question,
    SubjectProgress,
    SystemSetting,
)
from qbank.schemas.question import GeneratedQuestion

logger = logging.getLogger(__name__)

AUTO_GENERATION_KEY = "auto_generation_enabled"

SUBJECT_STATUSES = ("pending", "running", "completed", "error")
JOB_STATUSES = ("pending", "running", "paused", "completed", "failed")


# ============================================================================
# SETTINGS
# ============================================================================

def get_setting(db: Session, key: str) -> Optional[str]:
    setting = db.query(SystemSetting).filter(SystemSetting.key == key).first()
    return setting.value if setting else None


def set_setting(db: Session, key: str, value: str) -> None:
    setting = db.query(SystemSetting).filter(SystemSetting.key == key).first()
    if setting:
        setting.value = value
        setting.updated_at = datetime.utcnow()
    else:
        db.add(SystemSetting(key=key, value=value))
    db.commit()


def is_auto_generation_enabled(db: Session) -> bool:
    """Read the tracker toggle, storing the default (enabled) on first read."""
    value = get_setting(db, AUTO_GENERATION_KEY)
    if value is None:
        set_setting(db, AUTO_GENERATION_KEY, "true")
        return True
    return value == "true"


def set_auto_generation_enabled(db: Session, enabled: bool) -> None:
    set_setting(db, AUTO_GENERATION_KEY, "true" if enabled else "false")


# ============================================================================
# QUESTIONS
# ============================================================================

def save_questions(
    db: Session,
    questions: Sequence[GeneratedQuestion],
    topic: Optional[str] = None,
) -> List[Question]:
    """Insert validated questions; ``topic`` overrides each question's topic."""
    if not questions:
        return []

    rows = []
    for q in questions:
        values = q.to_row()
        if topic:
            values["topic"] = topic
        rows.append(Question(**values))

    db.add_all(rows)
    db.commit()
    for row in rows:
        db.refresh(row)
    return rows


def count_questions_by_category(db: Session) -> Dict[str, int]:
    rows = db.query(Question.category, func.count(Question.id)).group_by(Question.category).all()
    return {category: count for category, count in rows}


def count_questions_by_subject(db: Session) -> List[Dict]:
    rows = (
        db.query(Question.category, Question.subject, func.count(Question.id))
        .group_by(Question.category, Question.subject)
        .order_by(Question.category, Question.subject)
        .all()
    )
    return [
        {"category": category, "subject": subject or "General", "count": count}
        for category, subject, count in rows
    ]


def delete_questions_by_topic(db: Session, category: str, subject: str) -> int:
    """Bulk delete every question in a (category, subject) pair."""
    deleted = (
        db.query(Question)
        .filter(Question.category == category, Question.subject == subject)
        .delete(synchronize_session=False)
    )
    db.commit()
    logger.info("Deleted %d %s questions for subject %s", deleted, category, subject)
    return deleted


# ============================================================================
# SUBJECT PROGRESS
# ============================================================================

def seed_subject_progress(db: Session, rows: Iterable[Dict]) -> int:
    """Insert the subject catalog once. Returns the number of rows created."""
    if db.query(SubjectProgress.id).first() is not None:
        return 0

    subjects = [SubjectProgress(status="pending", generated_count=0, error_count=0, **row) for row in rows]
    db.add_all(subjects)
    db.commit()
    return len(subjects)


def get_subject(db: Session, subject_id: int) -> Optional[SubjectProgress]:
    return db.query(SubjectProgress).filter(SubjectProgress.id == subject_id).first()


def list_subjects(db: Session) -> List[SubjectProgress]:
    return db.query(SubjectProgress).order_by(SubjectProgress.sort_order, SubjectProgress.id).all()


def reclaim_stuck_subjects(db: Session) -> List[int]:
    """Reset rows left in ``running`` (crash/restart) back to ``pending``."""
    stuck = db.query(SubjectProgress).filter(SubjectProgress.status == "running").all()
    for subject in stuck:
        subject.status = "pending"
        subject.updated_at = datetime.utcnow()
    if stuck:
        db.commit()
    return [s.id for s in stuck]


def next_subject(db: Session, exclude_ids: Sequence[int] = ()) -> Optional[SubjectProgress]:
    """Lowest sort order subject below target and in a retryable state."""
    query = db.query(SubjectProgress).filter(
        SubjectProgress.generated_count < SubjectProgress.target_count,
        SubjectProgress.status.in_(["pending", "error"]),
    )
    if exclude_ids:
        query = query.filter(SubjectProgress.id.notin_(list(exclude_ids)))
    return query.order_by(SubjectProgress.sort_order, SubjectProgress.id).first()


def mark_subject_running(db: Session, subject: SubjectProgress) -> None:
    now = datetime.utcnow()
    subject.status = "running"
    subject.last_run_at = now
    subject.updated_at = now
    db.commit()


def record_subject_success(db: Session, subject_id: int, saved_count: int) -> Optional[SubjectProgress]:
    db.expire_all()  # pick up edits made while the batch was in flight
    subject = get_subject(db, subject_id)
    if not subject:
        return None

    subject.generated_count = min(subject.target_count, subject.generated_count + saved_count)
    subject.status = "completed" if subject.generated_count >= subject.target_count else "pending"
    subject.error_count = 0
    subject.last_error = None
    subject.updated_at = datetime.utcnow()
    db.commit()
    return subject


def record_subject_failure(db: Session, subject_id: int, message: str) -> Optional[SubjectProgress]:
    db.expire_all()
    subject = get_subject(db, subject_id)
    if not subject:
        return None

    subject.status = "error"
    subject.error_count = (subject.error_count or 0) + 1
    subject.last_error = message
    subject.updated_at = datetime.utcnow()
    db.commit()
    return subject


# ============================================================================
# GENERATION JOBS
# ============================================================================

def create_job(db: Session, **values) -> GenerationJob:
    job = GenerationJob(status="pending", generated_count=0, error_count=0, **values)
    db.add(job)
    db.commit()
    db.refresh(job)
    return job


def get_job(db: Session, job_id: int) -> Optional[GenerationJob]:
    """Get a generation job by ID."""
    return db.query(GenerationJob).filter(GenerationJob.id == job_id).first()


def list_jobs(db: Session, status: Optional[str] = None, limit: int = 50) -> List[GenerationJob]:
    """Most recent jobs first, optionally filtered by status."""
    query = db.query(GenerationJob)
    if status:
        query = query.filter(GenerationJob.status == status)
    return query.order_by(GenerationJob.id.desc()).limit(limit).all()


def next_active_job(db: Session) -> Optional[GenerationJob]:
    """Oldest job that is pending or running."""
    return (
        db.query(GenerationJob)
        .filter(GenerationJob.status.in_(["pending", "running"]))
        .order_by(GenerationJob.id)
        .first()
    )


def update_job_status(db: Session, job: GenerationJob, status: str) -> None:
    """Update job status, stamping completion time for completed jobs."""
    now = datetime.utcnow()
    job.status = status
    job.updated_at = now
    if status == "completed" and not job.completed_at:
        job.completed_at = now
    db.commit()


def record_job_success(db: Session, job_id: int, saved_count: int) -> Optional[GenerationJob]:
    """
    Add saved questions to the job's progress.

    The status is left as read unless the job completes, so an admin pause
    issued while the batch was in flight survives.
    """
    db.expire_all()
    job = get_job(db, job_id)
    if not job:
        return None

    now = datetime.utcnow()
    job.generated_count = min(job.total_count, job.generated_count + saved_count)
    if job.generated_count >= job.total_count:
        job.status = "completed"
        job.completed_at = now
    job.error_count = 0
    job.last_error = None
    job.updated_at = now
    db.commit()
    return job


def record_job_failure(db: Session, job_id: int, message: str, max_errors: int) -> Optional[GenerationJob]:
    """Count a failed attempt; running jobs fail once the threshold is reached."""
    db.expire_all()
    job = get_job(db, job_id)
    if not job:
        return None

    job.error_count = (job.error_count or 0) + 1
    job.last_error = message
    if job.status == "running" and job.error_count >= max_errors:
        job.status = "failed"
    job.updated_at = datetime.utcnow()
    db.commit()
    return job


def delete_job(db: Session, job: GenerationJob) -> None:
    """Delete a job together with its logs."""
    db.query(GenerationLog).filter(GenerationLog.generation_job_id == job.id).delete(
        synchronize_session=False
    )
    db.delete(job)
    db.commit()


# ============================================================================
# LOGS
# ============================================================================

def append_log(
    db: Session,
    *,
    category: str,
    subject: Optional[str],
    status: str,
    questions_requested: int,
    questions_generated: int = 0,
    questions_saved: int = 0,
    error_message: Optional[str] = None,
    duration_ms: Optional[int] = None,
    subject_progress_id: Optional[int] = None,
    generation_job_id: Optional[int] = None,
) -> GenerationLog:
    log = GenerationLog(
        subject_progress_id=subject_progress_id,
        generation_job_id=generation_job_id,
        category=category,
        subject=subject,
        questions_requested=questions_requested,
        questions_generated=questions_generated,
        questions_saved=questions_saved,
        status=status,
        error_message=error_message,
        duration_ms=duration_ms,
    )
    db.add(log)
    db.commit()
    return log


def list_logs(
    db: Session,
    job_id: Optional[int] = None,
    subject_id: Optional[int] = None,
    limit: int = 100,
) -> List[GenerationLog]:
    query = db.query(GenerationLog)
    if job_id is not None:
        query = query.filter(GenerationLog.generation_job_id == job_id)
    if subject_id is not None:
        query = query.filter(GenerationLog.subject_progress_id == subject_id)
    return query.order_by(GenerationLog.id.desc()).limit(limit).all()
