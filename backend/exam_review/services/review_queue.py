"""
Exam Review - Review Queue Selection
Picks due review items and orders them for a session.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, List, Optional

from exam_review.services.spaced_repetition import (
    ReviewItem,
    ensure_utc,
    urgency_label,
)


MIN_DAILY_REVIEWS = 5
MAX_DAILY_REVIEWS = 20
DEFAULT_MINUTES_PER_ITEM = 2


@dataclass
class UrgencyBreakdown:
    """How many selected items fall into each urgency band."""
    urgent: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0


@dataclass
class QueueSelection:
    """An ordered page of due items plus the session recommendations."""
    items: List[ReviewItem]
    total_due: int
    estimated_minutes: int
    suggested_daily_count: int
    breakdown: UrgencyBreakdown = field(default_factory=UrgencyBreakdown)


def is_due(item: ReviewItem, now: datetime) -> bool:
    return item.is_active and ensure_utc(item.next_review) <= ensure_utc(now)


def due_items(items: Iterable[ReviewItem], now: datetime) -> List[ReviewItem]:
    """Active items whose next review time has passed."""
    return [item for item in items if is_due(item, now)]


def _session_order_key(item: ReviewItem):
    return (
        -item.priority,
        ensure_utc(item.next_review),
        -item.wrong_count,
        item.question_id,
    )


def order_for_session(items: Iterable[ReviewItem]) -> List[ReviewItem]:
    """
    Highest priority first; among equal priority the longest-overdue item
    comes first, then the one answered wrong most often.
    """
    return sorted(items, key=_session_order_key)


def estimate_review_time(item_count: int, avg_minutes_per_item: int = DEFAULT_MINUTES_PER_ITEM) -> int:
    return item_count * avg_minutes_per_item


def suggested_daily_count(total_due_items: int) -> int:
    """Recommend between 5 and 20 reviews a day whatever the backlog."""
    return min(max(total_due_items, MIN_DAILY_REVIEWS), MAX_DAILY_REVIEWS)


def urgency_breakdown(items: Iterable[ReviewItem]) -> UrgencyBreakdown:
    breakdown = UrgencyBreakdown()
    for item in items:
        label = urgency_label(item.priority)
        setattr(breakdown, label, getattr(breakdown, label) + 1)
    return breakdown


def select_for_session(
    items: Iterable[ReviewItem],
    now: datetime,
    limit: Optional[int] = None,
    min_priority: int = 1,
    avg_minutes_per_item: int = DEFAULT_MINUTES_PER_ITEM,
) -> QueueSelection:
    """
    Build the review queue for ``now``.

    ``total_due`` and the recommendations are computed over every due item;
    ``items`` holds at most ``limit`` of them.
    """
    due = [item for item in due_items(items, now) if item.priority >= min_priority]
    ordered = order_for_session(due)
    page = ordered if limit is None else ordered[:max(0, limit)]

    return QueueSelection(
        items=page,
        total_due=len(due),
        estimated_minutes=estimate_review_time(len(page), avg_minutes_per_item),
        suggested_daily_count=suggested_daily_count(len(due)),
        breakdown=urgency_breakdown(page),
    )
