"""
Exam Review - API Dependencies
FastAPI dependencies wiring the review service to the request's database session
"""
from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from exam_review.core.config import settings
from exam_review.core.database import get_db
from exam_review.services.review import ReviewService
from exam_review.services.review_repository import (
    SqlReviewItemRepository,
    SqlReviewSessionRepository,
)


async def get_review_service(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> ReviewService:
    """Review service bound to the request's database session."""
    return ReviewService(
        items=SqlReviewItemRepository(db),
        sessions=SqlReviewSessionRepository(db),
        avg_minutes_per_item=settings.REVIEW_AVG_MINUTES_PER_ITEM,
    )


# Type alias for route signatures
ReviewServiceDep = Annotated[ReviewService, Depends(get_review_service)]
