"""
Request/response models for the generation admin API.
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from qbank.schemas.question import Difficulty, ExamCategory


# =============================================================================
# REQUESTS
# =============================================================================

class CreateJobRequest(BaseModel):
    """Request to create an ad-hoc generation job."""
    category: ExamCategory
    topic: str = Field(..., min_length=1, max_length=255)
    subject: Optional[str] = Field(None, max_length=255, description="Main subject area (defaults to topic)")
    total_count: int = Field(..., ge=1, le=5000, description="Number of questions to generate")
    batch_size: Optional[int] = Field(None, ge=1, le=50, description="Questions per model call")
    difficulty: Difficulty = Difficulty.MEDIUM
    sample_question: Optional[str] = None
    areas_to_cover: Optional[str] = Field(
        None, description="Comma, semicolon or newline separated topics"
    )
    distribute: bool = Field(True, description="Create one job per listed topic")

    @field_validator("topic")
    @classmethod
    def topic_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("topic must not be blank")
        return v

    class Config:
        json_schema_extra = {
            "example": {
                "category": "NCLEX",
                "topic": "Cardiac Medications",
                "subject": "Pharmacological and Parenteral Therapies",
                "total_count": 30,
                "batch_size": 5,
                "difficulty": "medium",
                "areas_to_cover": "Beta Blockers, ACE Inhibitors, Anticoagulants",
            }
        }


# =============================================================================
# RESPONSES
# =============================================================================

class JobResponse(BaseModel):
    id: int
    category: str
    subject: Optional[str]
    topic: str
    difficulty: Optional[str]
    total_count: int
    batch_size: int
    generated_count: int
    progress_percent: float
    status: str
    error_count: int
    last_error: Optional[str]
    created_by: Optional[str]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]
    completed_at: Optional[datetime]


class JobListResponse(BaseModel):
    jobs: List[JobResponse]
    total: int


class JobCreatedResponse(BaseModel):
    jobs: List[JobResponse]
    total_count: int


class SubjectProgressResponse(BaseModel):
    id: int
    category: str
    subject: str
    target_count: int
    generated_count: int
    progress_percent: float
    status: str
    error_count: int
    last_error: Optional[str]
    last_run_at: Optional[datetime]
    sort_order: int


class CategoryTotals(BaseModel):
    target: int
    generated: int


class GenerationStatusResponse(BaseModel):
    """Overall tracker status with the per-subject list."""
    enabled: bool
    is_running: bool
    model: Optional[str]
    total_target: int
    total_generated: int
    progress_percent: float
    by_category: Dict[str, CategoryTotals]
    subjects: List[SubjectProgressResponse]


class CycleResponse(BaseModel):
    status: str
    subject_id: Optional[int] = None
    job_id: Optional[int] = None
    requested: int = 0
    saved: int = 0
    error: Optional[str] = None


class LogResponse(BaseModel):
    id: int
    subject_progress_id: Optional[int]
    generation_job_id: Optional[int]
    category: str
    subject: Optional[str]
    questions_requested: int
    questions_generated: int
    questions_saved: int
    status: str
    error_message: Optional[str]
    duration_ms: Optional[int]
    created_at: Optional[datetime]


class QuestionStatsResponse(BaseModel):
    total: int
    by_category: Dict[str, int]
    by_subject: List[Dict]


class DeleteByTopicResponse(BaseModel):
    category: str
    subject: str
    deleted: int
