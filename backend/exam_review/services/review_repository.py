"""
Exam Review - Review Repositories
Storage interfaces for the scheduler, with SQLAlchemy and in-memory backends.

The scheduler only talks to these protocols, so the same service code runs
against PostgreSQL in production and plain dictionaries in unit tests.
"""
import uuid
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Dict, List, Optional, Protocol

from sqlalchemy import select, and_, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from exam_review.models.review import AnswerHistory, ReviewItemRecord, ReviewSession
from exam_review.services.review_queue import due_items, order_for_session
from exam_review.services.spaced_repetition import AnswerEvent, ReviewItem, ensure_utc


@dataclass
class SessionRecord:
    """A stored review session."""
    id: uuid.UUID
    created_at: datetime
    device_type: Optional[str] = None
    duration: Optional[int] = None
    total_items: int = 0
    correct_items: int = 0
    ended_at: Optional[datetime] = None


class ReviewItemRepository(Protocol):
    """Persistence for review items and the answer history behind them."""

    async def load_review_item(self, question_id: str, for_update: bool = False) -> Optional[ReviewItem]:
        ...

    async def create_review_item(self, item: ReviewItem) -> Optional[ReviewItem]:
        """Insert a new item; None when the question already has one."""
        ...

    async def save_review_item(self, item: ReviewItem) -> ReviewItem:
        ...

    async def query_due(self, now: datetime, limit: Optional[int] = None) -> List[ReviewItem]:
        """Active items with ``next_review <= now``, most urgent first."""
        ...

    async def list_items(self, active_only: bool = True) -> List[ReviewItem]:
        ...

    async def add_answer(self, event: AnswerEvent) -> None:
        ...

    async def commit(self) -> None:
        ...


class ReviewSessionRepository(Protocol):
    """Persistence for review session summaries."""

    async def create_session(self, started_at: datetime, device_type: Optional[str] = None) -> SessionRecord:
        ...

    async def get_session(self, session_id: uuid.UUID) -> Optional[SessionRecord]:
        ...

    async def finish_session(self, session: SessionRecord) -> Optional[SessionRecord]:
        """Write the summary of an unfinished session; None if it already ended."""
        ...

    async def recent_sessions(self, since: datetime, limit: int = 10) -> List[SessionRecord]:
        ...


# =========================================================================
# SQLAlchemy
# =========================================================================

def _to_review_item(record: ReviewItemRecord) -> ReviewItem:
    return ReviewItem(
        question_id=record.question_id,
        mastery_level=record.mastery_level,
        review_count=record.review_count,
        last_reviewed=ensure_utc(record.last_reviewed) if record.last_reviewed else None,
        next_review=ensure_utc(record.next_review),
        wrong_count=record.wrong_count,
        correct_streak=record.correct_streak,
        priority=record.priority,
        is_active=record.is_active,
        created_at=ensure_utc(record.created_at) if record.created_at else None,
        updated_at=ensure_utc(record.updated_at) if record.updated_at else None,
    )


def _to_session_record(session: ReviewSession) -> SessionRecord:
    return SessionRecord(
        id=session.id,
        created_at=ensure_utc(session.created_at),
        device_type=session.device_type,
        duration=session.duration,
        total_items=session.total_items,
        correct_items=session.correct_items,
        ended_at=ensure_utc(session.ended_at) if session.ended_at else None,
    )


# Dialects whose insert() supports ON CONFLICT DO NOTHING
_UPSERT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class SqlReviewItemRepository:
    """Review items stored through an async SQLAlchemy session."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _get_record(self, question_id: str, for_update: bool = False) -> Optional[ReviewItemRecord]:
        query = select(ReviewItemRecord).where(ReviewItemRecord.question_id == question_id)
        if for_update:
            query = query.with_for_update()
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def load_review_item(self, question_id: str, for_update: bool = False) -> Optional[ReviewItem]:
        record = await self._get_record(question_id, for_update=for_update)
        return _to_review_item(record) if record else None

    async def create_review_item(self, item: ReviewItem) -> Optional[ReviewItem]:
        """
        INSERT ... ON CONFLICT (question_id) DO NOTHING.

        A writer that lost the race to create the row gets None back and
        should reload the row with ``for_update`` and apply its answer there.
        """
        dialect = self.db.get_bind().dialect.name
        insert = _UPSERT_INSERTS.get(dialect)
        if insert is None:
            raise ValueError(f"Conflict-safe insert not supported for dialect {dialect!r}")

        statement = insert(ReviewItemRecord).values(
            question_id=item.question_id,
            mastery_level=item.mastery_level,
            review_count=item.review_count,
            last_reviewed=item.last_reviewed,
            next_review=item.next_review,
            wrong_count=item.wrong_count,
            correct_streak=item.correct_streak,
            priority=item.priority,
            is_active=item.is_active,
        ).on_conflict_do_nothing(
            index_elements=[ReviewItemRecord.question_id]
        ).returning(ReviewItemRecord.id)

        result = await self.db.execute(statement)
        if result.scalar_one_or_none() is None:
            return None
        return await self.load_review_item(item.question_id)

    async def save_review_item(self, item: ReviewItem) -> ReviewItem:
        record = await self._get_record(item.question_id)
        if record is None:
            record = ReviewItemRecord(question_id=item.question_id)
            self.db.add(record)

        record.mastery_level = item.mastery_level
        record.review_count = item.review_count
        record.last_reviewed = item.last_reviewed
        record.next_review = item.next_review
        record.wrong_count = item.wrong_count
        record.correct_streak = item.correct_streak
        record.priority = item.priority
        record.is_active = item.is_active
        if item.updated_at is not None:
            record.updated_at = item.updated_at

        await self.db.flush()
        await self.db.refresh(record)
        return _to_review_item(record)

    async def query_due(self, now: datetime, limit: Optional[int] = None) -> List[ReviewItem]:
        query = select(ReviewItemRecord).where(
            and_(
                ReviewItemRecord.is_active.is_(True),
                ReviewItemRecord.next_review <= now
            )
        ).order_by(
            ReviewItemRecord.priority.desc(),
            ReviewItemRecord.next_review.asc(),
            ReviewItemRecord.wrong_count.desc(),
            ReviewItemRecord.question_id.asc(),
        )
        if limit is not None:
            query = query.limit(limit)

        result = await self.db.execute(query)
        return [_to_review_item(record) for record in result.scalars().all()]

    async def list_items(self, active_only: bool = True) -> List[ReviewItem]:
        query = select(ReviewItemRecord).order_by(ReviewItemRecord.question_id)
        if active_only:
            query = query.where(ReviewItemRecord.is_active.is_(True))
        result = await self.db.execute(query)
        return [_to_review_item(record) for record in result.scalars().all()]

    async def add_answer(self, event: AnswerEvent) -> None:
        self.db.add(AnswerHistory(
            question_id=event.question_id,
            is_correct=event.is_correct,
            time_spent=event.time_spent,
            device_type=event.device_type,
            answered_at=event.answered_at,
        ))
        await self.db.flush()

    async def commit(self) -> None:
        await self.db.commit()


class SqlReviewSessionRepository:
    """Review sessions stored through an async SQLAlchemy session."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_session(self, started_at: datetime, device_type: Optional[str] = None) -> SessionRecord:
        session = ReviewSession(
            device_type=device_type,
            total_items=0,
            correct_items=0,
            created_at=started_at,
        )
        self.db.add(session)
        await self.db.flush()
        return _to_session_record(session)

    async def get_session(self, session_id: uuid.UUID) -> Optional[SessionRecord]:
        session = await self.db.get(ReviewSession, session_id)
        return _to_session_record(session) if session else None

    async def finish_session(self, session: SessionRecord) -> Optional[SessionRecord]:
        # Guarded on ended_at so two concurrent ends cannot both write
        statement = update(ReviewSession).where(
            and_(
                ReviewSession.id == session.id,
                ReviewSession.ended_at.is_(None)
            )
        ).values(
            duration=session.duration,
            total_items=session.total_items,
            correct_items=session.correct_items,
            ended_at=session.ended_at,
        ).execution_options(synchronize_session=False)

        result = await self.db.execute(statement)
        if result.rowcount == 0:
            return None

        stored = await self.db.get(ReviewSession, session.id, populate_existing=True)
        return _to_session_record(stored)

    async def recent_sessions(self, since: datetime, limit: int = 10) -> List[SessionRecord]:
        query = select(ReviewSession).where(
            ReviewSession.created_at >= since
        ).order_by(ReviewSession.created_at.desc()).limit(limit)
        result = await self.db.execute(query)
        return [_to_session_record(session) for session in result.scalars().all()]


# =========================================================================
# In-memory
# =========================================================================

class InMemoryReviewItemRepository:
    """Dictionary-backed store; returns copies so callers never share state."""

    def __init__(self, items: Optional[List[ReviewItem]] = None):
        self._items: Dict[str, ReviewItem] = {}
        self.answers: List[AnswerEvent] = []
        for item in items or []:
            self._items[item.question_id] = replace(item)

    async def load_review_item(self, question_id: str, for_update: bool = False) -> Optional[ReviewItem]:
        item = self._items.get(question_id)
        return replace(item) if item else None

    async def create_review_item(self, item: ReviewItem) -> Optional[ReviewItem]:
        if item.question_id in self._items:
            return None
        return await self.save_review_item(item)

    async def save_review_item(self, item: ReviewItem) -> ReviewItem:
        self._items[item.question_id] = replace(item)
        return replace(item)

    async def query_due(self, now: datetime, limit: Optional[int] = None) -> List[ReviewItem]:
        ordered = order_for_session(due_items(self._items.values(), now))
        if limit is not None:
            ordered = ordered[:limit]
        return [replace(item) for item in ordered]

    async def list_items(self, active_only: bool = True) -> List[ReviewItem]:
        items = sorted(self._items.values(), key=lambda item: item.question_id)
        return [replace(item) for item in items if item.is_active or not active_only]

    async def add_answer(self, event: AnswerEvent) -> None:
        self.answers.append(event)

    async def commit(self) -> None:
        pass


class InMemoryReviewSessionRepository:
    """Dictionary-backed session store."""

    def __init__(self):
        self._sessions: Dict[uuid.UUID, SessionRecord] = {}

    async def create_session(self, started_at: datetime, device_type: Optional[str] = None) -> SessionRecord:
        session = SessionRecord(id=uuid.uuid4(), created_at=started_at, device_type=device_type)
        self._sessions[session.id] = session
        return replace(session)

    async def get_session(self, session_id: uuid.UUID) -> Optional[SessionRecord]:
        session = self._sessions.get(session_id)
        return replace(session) if session else None

    async def finish_session(self, session: SessionRecord) -> Optional[SessionRecord]:
        stored = self._sessions.get(session.id)
        if stored is None or stored.ended_at is not None:
            return None
        self._sessions[session.id] = replace(session)
        return replace(session)

    async def recent_sessions(self, since: datetime, limit: int = 10) -> List[SessionRecord]:
        sessions = [s for s in self._sessions.values() if ensure_utc(s.created_at) >= ensure_utc(since)]
        sessions.sort(key=lambda s: s.created_at, reverse=True)
        return [replace(s) for s in sessions[:limit]]
