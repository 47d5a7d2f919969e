"""
Question bank admin endpoints: counts and bulk delete by subject.
"""

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from qbank.database import get_db
from qbank.dependencies.auth import AdminIdentity, get_admin_user
from qbank.schemas.generation import DeleteByTopicResponse, QuestionStatsResponse
from qbank.schemas.question import ExamCategory
from qbank.services import storage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin/questions", tags=["questions"])


@router.get("/stats", response_model=QuestionStatsResponse)
def get_question_stats(
    admin: AdminIdentity = Depends(get_admin_user),
    db: Session = Depends(get_db),
):
    """Question counts per exam category and per subject."""
    by_category = storage.count_questions_by_category(db)
    return QuestionStatsResponse(
        total=sum(by_category.values()),
        by_category=by_category,
        by_subject=storage.count_questions_by_subject(db),
    )


@router.delete("/by-topic", response_model=DeleteByTopicResponse)
def delete_questions_by_topic(
    category: ExamCategory = Query(..., description="Exam category"),
    subject: str = Query(..., min_length=1, description="Subject whose questions are removed"),
    admin: AdminIdentity = Depends(get_admin_user),
    db: Session = Depends(get_db),
):
    """
    Delete every question of a subject.

    Subject progress counters are not rolled back.
    """
    deleted = storage.delete_questions_by_topic(db, category.value, subject)
    logger.warning(f"Admin {admin.user_id or 'unknown'} deleted {deleted} {category.value}/{subject} questions")
    return DeleteByTopicResponse(category=category.value, subject=subject, deleted=deleted)
