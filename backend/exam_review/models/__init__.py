"""Exam Review - Models initialization."""
from exam_review.models.review import (
    AnswerHistory,
    ReviewItemRecord,
    ReviewSession,
)


__all__ = [
    "AnswerHistory",
    "ReviewItemRecord",
    "ReviewSession",
]
