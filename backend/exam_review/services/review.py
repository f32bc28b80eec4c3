"""
Exam Review - Review Service
Records answers into the spaced-repetition schedule and serves review queues
"""
import asyncio
import logging
import uuid
from collections import Counter
from contextlib import asynccontextmanager
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import AsyncIterator, Dict, List, Optional

from exam_review.core.telemetry import review_span
from exam_review.services.review_queue import (
    DEFAULT_MINUTES_PER_ITEM,
    QueueSelection,
    estimate_review_time,
    is_due,
    select_for_session,
    suggested_daily_count,
)
from exam_review.services.review_repository import (
    ReviewItemRepository,
    ReviewSessionRepository,
    SessionRecord,
)
from exam_review.services.spaced_repetition import (
    DEFAULT_WRONG_COUNT,
    MAX_MASTERY_LEVEL,
    MIN_MASTERY_LEVEL,
    AnswerEvent,
    ReviewItem,
    apply_answer,
    calculate_priority,
    days_since,
    ensure_utc,
    interval_for,
    next_review_date,
    next_review_interval,
    round_half_up,
)

logger = logging.getLogger(__name__)

URGENT_PRIORITY = 4
RECENT_SESSION_LIMIT = 10


class ReviewError(Exception):
    """Base review scheduling error."""
    pass


class ReviewSessionNotFoundError(ReviewError):
    """No review session with the given id."""
    pass


class ReviewSessionEndedError(ReviewError):
    """The review session has already been ended."""
    pass


class QuestionLocks:
    """
    One asyncio lock per question id.

    Locks are dropped once nobody holds or waits on them, so the registry
    only grows with the number of questions being answered concurrently.
    """

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._holders: Dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, question_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(question_id, asyncio.Lock())
        self._holders[question_id] = self._holders.get(question_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._holders[question_id] -= 1
            if self._holders[question_id] == 0:
                del self._holders[question_id]
                del self._locks[question_id]


# Shared by every service instance in the process
question_locks = QuestionLocks()


@dataclass
class ScheduleOverview:
    """Upcoming workload across the active review items."""
    today: int
    tomorrow: int
    this_week: int
    total_active: int
    mastery_distribution: Dict[str, int]
    suggested_daily_reviews: int
    estimated_time_minutes: int
    urgent_items: int


@dataclass
class SessionResult:
    """A finished review session and its derived scores."""
    session: SessionRecord
    accuracy: float  # percent, two decimals
    time_per_question: int  # seconds


@dataclass
class MasteryProgress:
    level: int
    count: int
    avg_review_count: float


@dataclass
class ReviewStats:
    """Recent session history and mastery spread of active items."""
    recent_sessions: List[SessionResult] = field(default_factory=list)
    mastery_progress: List[MasteryProgress] = field(default_factory=list)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _session_result(session: SessionRecord) -> SessionResult:
    if session.total_items > 0:
        accuracy = round_half_up(session.correct_items / session.total_items * 100, 2)
        time_per_question = int(round_half_up((session.duration or 0) / session.total_items))
    else:
        accuracy = 0.0
        time_per_question = 0
    return SessionResult(session=session, accuracy=accuracy, time_per_question=time_per_question)


class ReviewService:
    """
    The spaced-repetition scheduler.

    ``record_answer`` moves one question through the mastery state machine and
    persists the new schedule; ``select_queue`` reads which questions are due.
    """

    def __init__(
        self,
        items: ReviewItemRepository,
        sessions: ReviewSessionRepository,
        locks: Optional[QuestionLocks] = None,
        avg_minutes_per_item: int = DEFAULT_MINUTES_PER_ITEM,
    ):
        self.items = items
        self.sessions = sessions
        self.locks = locks if locks is not None else question_locks
        self.avg_minutes_per_item = avg_minutes_per_item

    # =========================================================================
    # Write path
    # =========================================================================

    async def record_answer(self, event: AnswerEvent) -> Optional[ReviewItem]:
        """
        Apply an answer to the question's review item and persist it.

        The first wrong answer to a question creates its review item; a
        correct answer to a question with no item schedules nothing and
        returns None. Every answer is kept in the answer history.

        The write is committed before the question's lock is released, so the
        next answer to the same question always sees this one.
        """
        event = replace(event, answered_at=ensure_utc(event.answered_at))

        with review_span("record_answer", {
            "review.question_id": event.question_id,
            "review.is_correct": event.is_correct,
        }) as span:
            async with self.locks.hold(event.question_id):
                existing = await self.items.load_review_item(event.question_id, for_update=True)
                saved = None

                if existing is None and not event.is_correct:
                    saved = await self.items.create_review_item(self._create(event))
                    if saved is None:
                        # Created by another worker since our read
                        existing = await self.items.load_review_item(event.question_id, for_update=True)

                if existing is not None:
                    saved = await self.items.save_review_item(self._transition(existing, event))

                await self.items.add_answer(event)
                await self.items.commit()

            if saved is None:
                logger.debug("Correct answer on unscheduled question %s", event.question_id)
                span.set_attribute("review.scheduled", False)
                return None

            span.set_attribute("review.scheduled", True)
            span.set_attribute("review.mastery_level", saved.mastery_level)
            span.set_attribute("review.priority", saved.priority)

            if existing is not None and existing.is_active != saved.is_active:
                logger.info(
                    "Question %s %s at level %d",
                    saved.question_id,
                    "reactivated" if saved.is_active else "mastered",
                    saved.mastery_level,
                )
            return saved

    def _create(self, event: AnswerEvent) -> ReviewItem:
        """New item for a question's first wrong answer."""
        interval = interval_for(MIN_MASTERY_LEVEL)
        return ReviewItem(
            question_id=event.question_id,
            mastery_level=MIN_MASTERY_LEVEL,
            review_count=1,
            last_reviewed=event.answered_at,
            next_review=next_review_date(event.answered_at, interval),
            wrong_count=DEFAULT_WRONG_COUNT,
            correct_streak=0,
            priority=calculate_priority(MIN_MASTERY_LEVEL, DEFAULT_WRONG_COUNT, 0),
            is_active=True,
        )

    def _transition(self, item: ReviewItem, event: AnswerEvent) -> ReviewItem:
        update = apply_answer(item, event.is_correct)
        interval = next_review_interval(item.mastery_level, event.is_correct)
        staleness = days_since(item.last_reviewed, event.answered_at)

        return replace(
            item,
            mastery_level=update.mastery_level,
            correct_streak=update.correct_streak,
            wrong_count=update.wrong_count,
            is_active=update.is_active,
            review_count=item.review_count + 1,
            last_reviewed=event.answered_at,
            next_review=next_review_date(event.answered_at, interval),
            priority=calculate_priority(update.mastery_level, update.wrong_count, staleness),
        )

    # =========================================================================
    # Read path
    # =========================================================================

    async def select_queue(
        self,
        now: Optional[datetime] = None,
        limit: Optional[int] = None,
        min_priority: int = 1,
    ) -> QueueSelection:
        """Due items for a review session, most urgent first."""
        now = ensure_utc(now) if now else _utcnow()

        with review_span("select_queue", {"review.limit": limit if limit is not None else -1}) as span:
            due = await self.items.query_due(now)
            selection = select_for_session(
                due,
                now,
                limit=limit,
                min_priority=min_priority,
                avg_minutes_per_item=self.avg_minutes_per_item,
            )
            span.set_attribute("review.total_due", selection.total_due)
            span.set_attribute("review.selected", len(selection.items))
            return selection

    async def get_schedule(self, now: Optional[datetime] = None) -> ScheduleOverview:
        """Counts of active items due now, within a day and within a week."""
        now = ensure_utc(now) if now else _utcnow()
        tomorrow = now + timedelta(days=1)
        next_week = now + timedelta(days=7)

        active = await self.items.list_items(active_only=True)
        due = [item for item in active if is_due(item, now)]

        today_count = len(due)
        tomorrow_count = sum(1 for item in active if now < ensure_utc(item.next_review) <= tomorrow)
        week_count = sum(1 for item in active if tomorrow < ensure_utc(item.next_review) <= next_week)

        levels = Counter(item.mastery_level for item in active)
        distribution = {f"level{level}": levels[level] for level in sorted(levels)}

        return ScheduleOverview(
            today=today_count,
            tomorrow=tomorrow_count,
            this_week=week_count,
            total_active=len(active),
            mastery_distribution=distribution,
            suggested_daily_reviews=suggested_daily_count(today_count),
            estimated_time_minutes=estimate_review_time(today_count, self.avg_minutes_per_item),
            urgent_items=sum(1 for item in due if item.priority >= URGENT_PRIORITY),
        )

    async def get_stats(self, now: Optional[datetime] = None, period_days: int = 7) -> ReviewStats:
        """Sessions from the last ``period_days`` days plus mastery progress."""
        now = ensure_utc(now) if now else _utcnow()
        since = now - timedelta(days=max(0, period_days))

        sessions = await self.sessions.recent_sessions(since, limit=RECENT_SESSION_LIMIT)
        active = await self.items.list_items(active_only=True)

        by_level: Dict[int, List[ReviewItem]] = {}
        for item in active:
            by_level.setdefault(item.mastery_level, []).append(item)

        progress = [
            MasteryProgress(
                level=level,
                count=len(items),
                avg_review_count=round_half_up(sum(i.review_count for i in items) / len(items), 2),
            )
            for level, items in sorted(by_level.items())
            if MIN_MASTERY_LEVEL <= level <= MAX_MASTERY_LEVEL
        ]

        return ReviewStats(
            recent_sessions=[_session_result(session) for session in sessions],
            mastery_progress=progress,
        )

    # =========================================================================
    # Sessions
    # =========================================================================

    async def start_session(self, device_type: Optional[str] = None, now: Optional[datetime] = None) -> SessionRecord:
        started_at = ensure_utc(now) if now else _utcnow()
        session = await self.sessions.create_session(started_at, device_type=device_type)
        logger.info("Review session %s started", session.id)
        return session

    async def end_session(
        self,
        session_id: uuid.UUID,
        duration: Optional[int],
        total_items: int,
        correct_items: int,
        now: Optional[datetime] = None,
    ) -> SessionResult:
        """
        Write the session summary. A session can only be ended once.

        Raises:
            ReviewSessionNotFoundError: If the session does not exist
            ReviewSessionEndedError: If the session was already ended
        """
        session = await self.sessions.get_session(session_id)
        if session is None:
            raise ReviewSessionNotFoundError(f"Review session {session_id} not found")
        if session.ended_at is not None:
            raise ReviewSessionEndedError(f"Review session {session_id} already ended")

        session = replace(
            session,
            duration=duration,
            total_items=total_items,
            correct_items=correct_items,
            ended_at=ensure_utc(now) if now else _utcnow(),
        )
        saved = await self.sessions.finish_session(session)
        if saved is None:
            raise ReviewSessionEndedError(f"Review session {session_id} already ended")
        result = _session_result(saved)

        logger.info(
            "Review session %s ended: %d/%d correct",
            saved.id, saved.correct_items, saved.total_items,
        )
        return result
