"""
Question bank schemas.

Pydantic models for generated-question validation and the admin API.
"""

from qbank.schemas.question import (
    OPTION_LETTERS,
    Difficulty,
    ExamCategory,
    GeneratedQuestion,
)
from qbank.schemas.generation import (
    CategoryTotals,
    CreateJobRequest,
    CycleResponse,
    DeleteByTopicResponse,
    GenerationStatusResponse,
    JobCreatedResponse,
    JobListResponse,
    JobResponse,
    LogResponse,
    QuestionStatsResponse,
    SubjectProgressResponse,
)

__all__ = [
    "OPTION_LETTERS",
    "Difficulty",
    "ExamCategory",
    "GeneratedQuestion",
    "CategoryTotals",
    "CreateJobRequest",
    "CycleResponse",
    "DeleteByTopicResponse",
    "GenerationStatusResponse",
    "JobCreatedResponse",
    "JobListResponse",
    "JobResponse",
    "LogResponse",
    "QuestionStatsResponse",
    "SubjectProgressResponse",
]
