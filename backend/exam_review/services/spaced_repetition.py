"""
Exam Review - Spaced Repetition Core
Mastery transitions, review intervals and priority scoring.

Everything in this module is pure: no database, no clock. Callers pass the
answer timestamp in explicitly so that the same inputs always produce the
same schedule.
"""
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Literal, Optional


MIN_MASTERY_LEVEL = 0
MAX_MASTERY_LEVEL = 5

MIN_PRIORITY = 1
MAX_PRIORITY = 5

# A review item only exists because of a wrong answer, so it starts at 1
DEFAULT_WRONG_COUNT = 1

# Minutes until the next review, indexed by mastery level
INTERVAL_MINUTES = (
    1,       # Level 0: 1 minute
    5,       # Level 1: 5 minutes
    30,      # Level 2: 30 minutes
    180,     # Level 3: 3 hours
    1440,    # Level 4: 24 hours
    4320,    # Level 5: 3 days
)

Urgency = Literal["low", "medium", "high", "urgent"]


@dataclass
class AnswerEvent:
    """A learner's answer to a question, as seen by the scheduler."""
    question_id: str
    is_correct: bool
    answered_at: datetime
    time_spent: Optional[int] = None  # seconds
    device_type: Optional[str] = None


@dataclass
class ReviewItem:
    """Per-question scheduling record."""
    question_id: str
    next_review: datetime
    mastery_level: int = MIN_MASTERY_LEVEL
    review_count: int = 0
    last_reviewed: Optional[datetime] = None
    wrong_count: int = DEFAULT_WRONG_COUNT
    correct_streak: int = 0
    priority: int = MIN_PRIORITY
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def urgency(self) -> Urgency:
        return urgency_label(self.priority)


@dataclass(frozen=True)
class MasteryUpdate:
    """New mastery state after applying one answer."""
    mastery_level: int
    correct_streak: int
    wrong_count: int
    is_active: bool = field(init=False)

    def __post_init__(self):
        object.__setattr__(self, "is_active", is_active_for_level(self.mastery_level))


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC; convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# =========================================================================
# Interval table
# =========================================================================

def interval_for(level: int) -> int:
    """
    Review delay in minutes for a mastery level.

    Levels outside 0-5 fall back to the level-0 interval instead of raising.
    """
    if MIN_MASTERY_LEVEL <= level <= MAX_MASTERY_LEVEL:
        return INTERVAL_MINUTES[level]
    return INTERVAL_MINUTES[MIN_MASTERY_LEVEL]


# =========================================================================
# Mastery tracking
# =========================================================================

def next_mastery_level(current_level: int, is_correct: bool) -> int:
    if is_correct:
        return min(MAX_MASTERY_LEVEL, current_level + 1)
    return max(MIN_MASTERY_LEVEL, current_level - 1)


def next_correct_streak(current_streak: int, is_correct: bool) -> int:
    return current_streak + 1 if is_correct else 0


def next_wrong_count(current_count: int, is_correct: bool) -> int:
    return current_count if is_correct else current_count + 1


def is_active_for_level(level: int) -> bool:
    """Items stay in the review rotation until they reach the top level."""
    return level < MAX_MASTERY_LEVEL


def apply_answer(item: ReviewItem, is_correct: bool) -> MasteryUpdate:
    """Apply one answer outcome to an item's level, streak and wrong count."""
    return MasteryUpdate(
        mastery_level=next_mastery_level(item.mastery_level, is_correct),
        correct_streak=next_correct_streak(item.correct_streak, is_correct),
        wrong_count=next_wrong_count(item.wrong_count, is_correct),
    )


# =========================================================================
# Interval scheduling
# =========================================================================

def next_review_interval(mastery_level: int, is_correct: bool) -> int:
    """
    Minutes until the next review, given the level *before* this answer.

    The interval is looked up for the level the answer moves the item to.
    A starting level outside 0-5 gets the level-0 interval.
    """
    if not MIN_MASTERY_LEVEL <= mastery_level <= MAX_MASTERY_LEVEL:
        return interval_for(MIN_MASTERY_LEVEL)
    return interval_for(next_mastery_level(mastery_level, is_correct))


def next_review_date(base: datetime, interval_minutes: int) -> datetime:
    """Absolute due time, counted from the moment of the answer."""
    return base + timedelta(minutes=interval_minutes)


# =========================================================================
# Priority
# =========================================================================

def round_half_up(value: float, digits: int = 0) -> float:
    """Round to ``digits`` places with halves going up, unlike the builtin ``round``."""
    scale = 10 ** digits
    return math.floor(value * scale + 0.5) / scale


def _require_finite(name: str, value: float) -> None:
    if not math.isfinite(value):
        raise ValueError(f"{name} must be a finite number, got {value!r}")


def calculate_priority(
    mastery_level: int,
    wrong_count: float,
    days_since_last_review: float,
) -> int:
    """
    Score how urgently an item should be reviewed, from 1 (low) to 5 (urgent).

    Low mastery, many wrong answers and a long gap since the last review all
    push the score up. The wrong-answer bonus is capped at 3 and the staleness
    bonus at 2.

    Raises:
        ValueError: If any input is NaN or infinite
    """
    _require_finite("mastery_level", mastery_level)
    _require_finite("wrong_count", wrong_count)
    _require_finite("days_since_last_review", days_since_last_review)

    wrong_count = max(0, wrong_count)
    days_since_last_review = max(0, days_since_last_review)

    score = 1.0
    score += MAX_MASTERY_LEVEL - mastery_level
    score += min(wrong_count * 0.5, 3)
    score += min(days_since_last_review * 0.1, 2)

    rounded = int(round_half_up(score))
    return max(MIN_PRIORITY, min(MAX_PRIORITY, rounded))


def urgency_label(priority: int) -> Urgency:
    if priority >= 5:
        return "urgent"
    if priority >= 4:
        return "high"
    if priority >= 3:
        return "medium"
    return "low"


def days_since(last_reviewed: Optional[datetime], now: datetime) -> int:
    """Whole days since the last review; 0 when never reviewed or in the future."""
    if last_reviewed is None:
        return 0
    elapsed = ensure_utc(now) - ensure_utc(last_reviewed)
    return max(0, elapsed // timedelta(days=1))
