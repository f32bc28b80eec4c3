"""
Exam Review - Review Models
SQLAlchemy models for spaced-repetition review items, sessions and answer history
"""
import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Index, Integer, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from exam_review.core.database import Base


class ReviewItemRecord(Base):
    """Scheduling state for one question in the review rotation."""

    __tablename__ = "review_items"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    # Owned by the question bank; not a foreign key here
    question_id: Mapped[str] = mapped_column(String(64), unique=True)

    # Mastery tracking
    mastery_level: Mapped[int] = mapped_column(Integer, default=0)  # 0 to 5
    review_count: Mapped[int] = mapped_column(Integer, default=0)
    wrong_count: Mapped[int] = mapped_column(Integer, default=1)
    correct_streak: Mapped[int] = mapped_column(Integer, default=0)

    # Scheduling
    last_reviewed: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True
    )
    next_review: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    priority: Mapped[int] = mapped_column(Integer, default=1)  # 1 to 5
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now()
    )

    __table_args__ = (
        Index("ix_review_items_due", "is_active", "next_review"),
    )

    def __repr__(self):
        return f"<ReviewItemRecord {self.question_id} level={self.mastery_level}>"


class ReviewSession(Base):
    """Summary of one review run. Written once when the run ends."""

    __tablename__ = "review_sessions"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    duration: Mapped[int | None] = mapped_column(Integer, nullable=True)  # seconds
    total_items: Mapped[int] = mapped_column(Integer, default=0)
    correct_items: Mapped[int] = mapped_column(Integer, default=0)
    device_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    # Set once; the summary columns are frozen from then on
    ended_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class AnswerHistory(Base):
    """Every answer event the scheduler has processed."""

    __tablename__ = "answer_history"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    question_id: Mapped[str] = mapped_column(String(64), index=True)
    is_correct: Mapped[bool] = mapped_column(Boolean)
    time_spent: Mapped[int | None] = mapped_column(Integer, nullable=True)  # seconds
    device_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    answered_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
