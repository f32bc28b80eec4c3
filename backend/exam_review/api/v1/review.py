"""
Exam Review - Review API Router
Endpoints for the Spaced Repetition System (review queue and sessions)
"""
import uuid
from datetime import datetime, timezone

from fastapi import APIRouter, HTTPException, Query, status

from exam_review.api.deps import ReviewServiceDep
from exam_review.core.config import settings
from exam_review.services.review import ReviewSessionEndedError, ReviewSessionNotFoundError
from exam_review.services.spaced_repetition import AnswerEvent
from exam_review.schemas.review import (
    MasteryProgressItem,
    RecentSession,
    ReviewAnswerCreate,
    ReviewAnswerResponse,
    ReviewItemResponse,
    ReviewQueueResponse,
    ReviewScheduleResponse,
    ReviewSessionEnd,
    ReviewSessionEndResponse,
    ReviewSessionResponse,
    ReviewSessionResults,
    ReviewSessionStart,
    ReviewSessionStarted,
    ReviewStatsResponse,
    ScheduleCounts,
    ScheduleRecommendations,
    UrgencyBreakdownResponse,
)

router = APIRouter(prefix="/review", tags=["Review (SRS)"])


@router.post("/answers", response_model=ReviewAnswerResponse)
async def record_review_answer(
    data: ReviewAnswerCreate,
    service: ReviewServiceDep,
):
    """
    Record an answer and update the question's review schedule.

    A wrong answer adds the question to the review list (or moves it down a
    mastery level); a correct answer moves it up a level.
    """
    event = AnswerEvent(
        question_id=data.question_id,
        is_correct=data.is_correct,
        answered_at=data.answered_at or datetime.now(timezone.utc),
        time_spent=data.time_spent,
        device_type=data.device_type,
    )
    item = await service.record_answer(event)

    if data.is_correct:
        message = "Correct!"
    else:
        message = "Added to your review list"

    return ReviewAnswerResponse(
        review_item=ReviewItemResponse.model_validate(item) if item else None,
        message=message,
    )


@router.get("/questions", response_model=ReviewQueueResponse)
async def get_review_questions(
    service: ReviewServiceDep,
    limit: int = Query(settings.REVIEW_DEFAULT_LIMIT, ge=1, le=settings.REVIEW_MAX_LIMIT),
    priority: int = Query(1, ge=1, le=5, description="Minimum priority to include"),
):
    """
    Get the questions due for review, most urgent first.

    Ordered by priority, then by how long the question has been due.
    """
    selection = await service.select_queue(limit=limit, min_priority=priority)

    return ReviewQueueResponse(
        questions=[ReviewItemResponse.model_validate(item) for item in selection.items],
        total_count=len(selection.items),
        total_due=selection.total_due,
        estimated_minutes=selection.estimated_minutes,
        suggested_daily_count=selection.suggested_daily_count,
        review_stats=UrgencyBreakdownResponse.model_validate(selection.breakdown),
    )


@router.get("/schedule", response_model=ReviewScheduleResponse)
async def get_review_schedule(service: ReviewServiceDep):
    """Get the review workload for today, tomorrow and the coming week."""
    overview = await service.get_schedule()

    return ReviewScheduleResponse(
        schedule=ScheduleCounts(
            today=overview.today,
            tomorrow=overview.tomorrow,
            this_week=overview.this_week,
            total_active=overview.total_active,
        ),
        mastery_distribution=overview.mastery_distribution,
        recommendations=ScheduleRecommendations(
            suggested_daily_reviews=overview.suggested_daily_reviews,
            estimated_time_minutes=overview.estimated_time_minutes,
            urgent_items=overview.urgent_items,
        ),
    )


@router.post("/sessions", response_model=ReviewSessionStarted, status_code=status.HTTP_201_CREATED)
async def start_review_session(
    data: ReviewSessionStart,
    service: ReviewServiceDep,
):
    """Start a review session."""
    session = await service.start_session(device_type=data.device_type)
    return ReviewSessionStarted(session_id=session.id, start_time=session.created_at)


@router.put("/sessions/{session_id}", response_model=ReviewSessionEndResponse)
async def end_review_session(
    session_id: uuid.UUID,
    data: ReviewSessionEnd,
    service: ReviewServiceDep,
):
    """End a review session and get its accuracy summary."""
    try:
        result = await service.end_session(
            session_id,
            duration=data.duration,
            total_items=data.total_items,
            correct_items=data.correct_items,
        )
    except ReviewSessionNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Review session not found"
        )
    except ReviewSessionEndedError:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Review session already ended"
        )

    return ReviewSessionEndResponse(
        session=ReviewSessionResponse.model_validate(result.session),
        results=ReviewSessionResults(
            total_items=result.session.total_items,
            correct_items=result.session.correct_items,
            accuracy=result.accuracy,
            time_per_question=result.time_per_question,
        ),
    )


@router.get("/stats", response_model=ReviewStatsResponse)
async def get_review_stats(
    service: ReviewServiceDep,
    period: int = Query(7, ge=1, le=365, description="Days of session history"),
):
    """Get recent review sessions and mastery progress."""
    stats = await service.get_stats(period_days=period)

    return ReviewStatsResponse(
        recent_sessions=[
            RecentSession(
                date=result.session.created_at,
                total_items=result.session.total_items,
                correct_items=result.session.correct_items,
                accuracy=result.accuracy,
                duration=result.session.duration,
            )
            for result in stats.recent_sessions
        ],
        mastery_progress=[
            MasteryProgressItem.model_validate(progress)
            for progress in stats.mastery_progress
        ],
    )
