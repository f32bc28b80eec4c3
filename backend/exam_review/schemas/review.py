"""
Exam Review - Review Schemas
Pydantic schemas for the spaced-repetition review API
"""
import uuid
from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ReviewAnswerCreate(BaseModel):
    """An answer to record against the review schedule."""
    question_id: str = Field(..., min_length=1, max_length=64)
    is_correct: bool
    answered_at: Optional[datetime] = None  # defaults to the time of the request
    time_spent: Optional[int] = Field(None, ge=0, description="Seconds spent on the question")
    device_type: Optional[str] = Field(None, max_length=50)


class ReviewItemResponse(BaseModel):
    """A question's scheduling record."""
    model_config = ConfigDict(from_attributes=True)

    question_id: str
    mastery_level: int
    review_count: int
    last_reviewed: Optional[datetime] = None
    next_review: datetime
    wrong_count: int
    correct_streak: int
    priority: int
    urgency: Literal["low", "medium", "high", "urgent"]
    is_active: bool


class ReviewAnswerResponse(BaseModel):
    """Response after recording an answer."""
    success: bool = True
    review_item: Optional[ReviewItemResponse] = None
    message: str


class UrgencyBreakdownResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    urgent: int
    high: int
    medium: int
    low: int


class ReviewQueueResponse(BaseModel):
    """Questions due for review, most urgent first."""
    questions: List[ReviewItemResponse]
    total_count: int
    total_due: int
    estimated_minutes: int
    suggested_daily_count: int
    review_stats: UrgencyBreakdownResponse


class ScheduleCounts(BaseModel):
    today: int
    tomorrow: int
    this_week: int
    total_active: int


class ScheduleRecommendations(BaseModel):
    suggested_daily_reviews: int
    estimated_time_minutes: int
    urgent_items: int


class ReviewScheduleResponse(BaseModel):
    """Upcoming review workload."""
    schedule: ScheduleCounts
    mastery_distribution: Dict[str, int]
    recommendations: ScheduleRecommendations


class ReviewSessionStart(BaseModel):
    """Request to start a review session."""
    device_type: Optional[str] = Field(None, max_length=50)


class ReviewSessionStarted(BaseModel):
    session_id: uuid.UUID
    start_time: datetime


class ReviewSessionEnd(BaseModel):
    """Summary written when a review session ends."""
    duration: Optional[int] = Field(None, ge=0, description="Session length in seconds")
    total_items: int = Field(..., ge=0)
    correct_items: int = Field(..., ge=0)

    @model_validator(mode="after")
    def check_counts(self) -> "ReviewSessionEnd":
        if self.correct_items > self.total_items:
            raise ValueError("correct_items cannot exceed total_items")
        return self


class ReviewSessionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    created_at: datetime
    device_type: Optional[str] = None
    duration: Optional[int] = None
    total_items: int
    correct_items: int
    ended_at: Optional[datetime] = None


class ReviewSessionResults(BaseModel):
    total_items: int
    correct_items: int
    accuracy: float
    time_per_question: int


class ReviewSessionEndResponse(BaseModel):
    session: ReviewSessionResponse
    results: ReviewSessionResults


class RecentSession(BaseModel):
    date: datetime
    total_items: int
    correct_items: int
    accuracy: float
    duration: Optional[int] = None


class MasteryProgressItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    level: int
    count: int
    avg_review_count: float


class ReviewStatsResponse(BaseModel):
    """Recent sessions and mastery progress."""
    recent_sessions: List[RecentSession]
    mastery_progress: List[MasteryProgressItem]
