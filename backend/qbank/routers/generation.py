"""
Generation Admin API Router

Provides endpoints for:
- Subject tracker status, pause/resume and manual trigger
- Creating, listing, pausing, resuming and deleting ad-hoc jobs
- Reading generation logs
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from qbank.database import get_db
from qbank.dependencies.auth import AdminIdentity, get_admin_user
from qbank.models.models import GenerationJob, SubjectProgress
from qbank.schemas.generation import (
    CreateJobRequest,
    CycleResponse,
    GenerationStatusResponse,
    JobCreatedResponse,
    JobListResponse,
    JobResponse,
    LogResponse,
    SubjectProgressResponse,
)
from qbank.services import storage
from qbank.services.background_tasks import GenerationRuntime
from qbank.services.job_queue import (
    InvalidJobTransition,
    JobNotFoundError,
    JobValidationError,
)

router = APIRouter(
    prefix="/api/admin/generation",
    tags=["generation"],
    dependencies=[Depends(get_admin_user)],
)


def get_runtime(request: Request) -> GenerationRuntime:
    runtime = getattr(request.app.state, "generation", None)
    if runtime is None:
        raise HTTPException(status_code=503, detail="Generation runtime is not initialized")
    return runtime


# ============================================================================
# Helper Functions
# ============================================================================

def _percent(done: int, total: int) -> float:
    if not total:
        return 100.0
    return round(min(done / total * 100, 100.0), 1)


def job_to_response(job: GenerationJob) -> JobResponse:
    """Convert a GenerationJob to response format."""
    return JobResponse(
        id=job.id,
        category=job.category,
        subject=job.subject,
        topic=job.topic,
        difficulty=job.difficulty,
        total_count=job.total_count,
        batch_size=job.batch_size,
        generated_count=job.generated_count or 0,
        progress_percent=_percent(job.generated_count or 0, job.total_count),
        status=job.status,
        error_count=job.error_count or 0,
        last_error=job.last_error,
        created_by=job.created_by,
        created_at=job.created_at,
        updated_at=job.updated_at,
        completed_at=job.completed_at,
    )


def subject_to_response(subject: SubjectProgress) -> SubjectProgressResponse:
    return SubjectProgressResponse(
        id=subject.id,
        category=subject.category,
        subject=subject.subject,
        target_count=subject.target_count,
        generated_count=subject.generated_count,
        progress_percent=_percent(subject.generated_count, subject.target_count),
        status=subject.status,
        error_count=subject.error_count or 0,
        last_error=subject.last_error,
        last_run_at=subject.last_run_at,
        sort_order=subject.sort_order,
    )


def http_error(error: Exception) -> HTTPException:
    """Map job queue exceptions to HTTP errors."""
    if isinstance(error, JobNotFoundError):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, InvalidJobTransition):
        return HTTPException(status_code=409, detail=str(error))
    return HTTPException(status_code=400, detail=str(error))


# ============================================================================
# Subject tracker
# ============================================================================

@router.get("/status", response_model=GenerationStatusResponse)
async def get_generation_status(
    runtime: GenerationRuntime = Depends(get_runtime),
    db: Session = Depends(get_db),
):
    """Overall target/generated totals and the per-subject list."""
    overview = runtime.tracker.overview(db)
    return GenerationStatusResponse(
        enabled=overview["enabled"],
        is_running=overview["is_running"],
        model=runtime.generator.model or runtime.generator.detected_model,
        total_target=overview["total_target"],
        total_generated=overview["total_generated"],
        progress_percent=overview["progress_percent"],
        by_category=overview["by_category"],
        subjects=[subject_to_response(s) for s in overview["subjects"]],
    )


@router.post("/pause")
async def pause_generation(
    runtime: GenerationRuntime = Depends(get_runtime),
    db: Session = Depends(get_db),
):
    """Stop the subject tracker from picking up new batches."""
    runtime.tracker.set_enabled(db, False)
    return {"enabled": False}


@router.post("/resume")
async def resume_generation(
    runtime: GenerationRuntime = Depends(get_runtime),
    db: Session = Depends(get_db),
):
    runtime.tracker.set_enabled(db, True)
    return {"enabled": True}


@router.post("/trigger", response_model=CycleResponse)
async def trigger_generation(runtime: GenerationRuntime = Depends(get_runtime)):
    """
    Run one subject tracker cycle now.

    Returns status "skipped" if a cycle is already in progress.
    """
    result = await runtime.tracker.run_now()
    return CycleResponse(
        status=result.status,
        subject_id=result.subject_id,
        requested=result.requested,
        saved=result.saved,
        error=result.error,
    )


# ============================================================================
# Ad-hoc jobs
# ============================================================================

@router.post("/jobs", response_model=JobCreatedResponse, status_code=201)
async def create_generation_job(
    request: CreateJobRequest,
    runtime: GenerationRuntime = Depends(get_runtime),
    admin: AdminIdentity = Depends(get_admin_user),
    db: Session = Depends(get_db),
):
    """
    Queue an ad-hoc generation job.

    When areas_to_cover lists several topics (and distribute is true) the
    questions are split evenly into one job per topic.
    """
    try:
        result = runtime.queue.create_job(
            db,
            category=request.category.value,
            topic=request.topic,
            subject=request.subject,
            total_count=request.total_count,
            batch_size=request.batch_size,
            difficulty=request.difficulty.value,
            sample_question=request.sample_question,
            areas_to_cover=request.areas_to_cover,
            created_by=admin.user_id,
            distribute=request.distribute,
        )
    except JobValidationError as e:
        raise http_error(e) from e

    return JobCreatedResponse(
        jobs=[job_to_response(j) for j in result.jobs],
        total_count=result.total_count,
    )


@router.get("/jobs", response_model=JobListResponse)
async def list_generation_jobs(
    status: Optional[str] = Query(None, description="Filter by status"),
    limit: int = Query(50, ge=1, le=200, description="Max jobs to return"),
    runtime: GenerationRuntime = Depends(get_runtime),
    db: Session = Depends(get_db),
):
    """
    List generation jobs, newest first.

    Can filter by status: pending, running, paused, completed, failed
    """
    if status and status not in storage.JOB_STATUSES:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid status. Must be one of: {', '.join(storage.JOB_STATUSES)}"
        )

    jobs = runtime.queue.list_jobs(db, status=status, limit=limit)
    return JobListResponse(jobs=[job_to_response(j) for j in jobs], total=len(jobs))


@router.get("/jobs/{job_id}", response_model=JobResponse)
async def get_generation_job(
    job_id: int,
    runtime: GenerationRuntime = Depends(get_runtime),
    db: Session = Depends(get_db),
):
    try:
        job = runtime.queue.get_job(db, job_id)
    except JobNotFoundError as e:
        raise http_error(e) from e
    return job_to_response(job)


@router.post("/jobs/{job_id}/pause", response_model=JobResponse)
async def pause_generation_job(
    job_id: int,
    runtime: GenerationRuntime = Depends(get_runtime),
    db: Session = Depends(get_db),
):
    """Pause a job. An in-flight batch still finishes."""
    try:
        job = runtime.queue.pause_job(db, job_id)
    except (JobNotFoundError, InvalidJobTransition) as e:
        raise http_error(e) from e
    return job_to_response(job)


@router.post("/jobs/{job_id}/resume", response_model=JobResponse)
async def resume_generation_job(
    job_id: int,
    runtime: GenerationRuntime = Depends(get_runtime),
    db: Session = Depends(get_db),
):
    """Resume a paused or failed job; clears its error count."""
    try:
        job = runtime.queue.resume_job(db, job_id)
    except (JobNotFoundError, InvalidJobTransition) as e:
        raise http_error(e) from e
    return job_to_response(job)


@router.delete("/jobs/{job_id}")
async def delete_generation_job(
    job_id: int,
    runtime: GenerationRuntime = Depends(get_runtime),
    db: Session = Depends(get_db),
):
    """Delete a job and its logs. Questions already saved are kept."""
    try:
        runtime.queue.delete_job(db, job_id)
    except JobNotFoundError as e:
        raise http_error(e) from e
    return {"message": "Job deleted successfully", "job_id": job_id}


# ============================================================================
# Logs
# ============================================================================

@router.get("/logs", response_model=List[LogResponse])
async def list_generation_logs(
    job_id: Optional[int] = Query(None),
    subject_id: Optional[int] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
):
    logs = storage.list_logs(db, job_id=job_id, subject_id=subject_id, limit=limit)
    return [
        LogResponse(
            id=log.id,
            subject_progress_id=log.subject_progress_id,
            generation_job_id=log.generation_job_id,
            category=log.category,
            subject=log.subject,
            questions_requested=log.questions_requested,
            questions_generated=log.questions_generated,
            questions_saved=log.questions_saved,
            status=log.status,
            error_message=log.error_message,
            duration_ms=log.duration_ms,
            created_at=log.created_at,
        )
        for log in logs
    ]
