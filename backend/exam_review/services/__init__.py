"""Exam Review - Services initialization."""
from exam_review.services.review import (
    QuestionLocks,
    ReviewError,
    ReviewService,
    ReviewSessionEndedError,
    ReviewSessionNotFoundError,
)
from exam_review.services.review_repository import (
    InMemoryReviewItemRepository,
    InMemoryReviewSessionRepository,
    ReviewItemRepository,
    ReviewSessionRepository,
    SqlReviewItemRepository,
    SqlReviewSessionRepository,
)

__all__ = [
    "QuestionLocks",
    "ReviewError",
    "ReviewService",
    "ReviewSessionEndedError",
    "ReviewSessionNotFoundError",
    "InMemoryReviewItemRepository",
    "InMemoryReviewSessionRepository",
    "ReviewItemRepository",
    "ReviewSessionRepository",
    "SqlReviewItemRepository",
    "SqlReviewSessionRepository",
]
