"""Repository for event logging operations."""

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.logging import get_logger
from app.storage.json_utils import safe_json_dumps
from app.storage.models import Event

logger = get_logger(__name__)


class EventsRepo:
    """Repository for event logging operations."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def log_event(
        self,
        event_name: str,
        session_id: str | None = None,
        question_id: str | None = None,
        payload: dict[str, Any] | None = None,
    ) -> Event:
        """Log an event.

        Args:
            event_name: Event name/type
            session_id: Optional session ID
            question_id: Optional question ID
            payload: Optional payload dictionary

        Returns:
            Created Event instance
        """
        event = Event(
            event_name=event_name,
            session_id=session_id,
            question_id=question_id,
            payload_json=safe_json_dumps(payload or {}),
            created_at=datetime.now(timezone.utc),
        )
        self.session.add(event)
        await self.session.commit()
        await self.session.refresh(event)
        return event

    async def try_log_event(
        self,
        event_name: str,
        session_id: str | None = None,
        question_id: str | None = None,
        payload: dict[str, Any] | None = None,
    ) -> bool:
        """Best-effort variant of ``log_event`` for telemetry on the hot path.

        Returns:
            True if the event was written
        """
        try:
            await self.log_event(event_name, session_id, question_id, payload)
            return True
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.warning(
                f"Failed to record event {event_name}: {e}",
                extra={"session_id": session_id},
            )
            return False

    async def list_events(
        self,
        event_name: str | None = None,
        session_id: str | None = None,
        since_dt: datetime | None = None,
        limit: int = 200,
    ) -> list[Event]:
        """List events with optional filters, newest first.

        Args:
            event_name: Filter by event name
            session_id: Filter by session ID
            since_dt: Filter by timestamp (after)
            limit: Maximum events to return

        Returns:
            List of Event instances
        """
        stmt = select(Event)

        if event_name:
            stmt = stmt.where(Event.event_name == event_name)

        if session_id:
            stmt = stmt.where(Event.session_id == session_id)

        if since_dt:
            stmt = stmt.where(Event.created_at >= since_dt)

        stmt = stmt.order_by(Event.created_at.desc(), Event.id.desc()).limit(limit)

        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count_events(
        self,
        event_name: str | None = None,
        session_id: str | None = None,
    ) -> int:
        """Count events with optional filters."""
        stmt = select(func.count()).select_from(Event)

        if event_name:
            stmt = stmt.where(Event.event_name == event_name)

        if session_id:
            stmt = stmt.where(Event.session_id == session_id)

        result = await self.session.execute(stmt)
        return result.scalar() or 0

    async def answer_distribution(
        self,
        since_dt: datetime | None = None,
    ) -> dict[str, dict[str, int]]:
        """Count answers per option for every question.

        Args:
            since_dt: Only consider answers after this timestamp

        Returns:
            Mapping of question ID to {option ID: count}
        """
        choice = func.json_extract(Event.payload_json, "$.choice")
        stmt = (
            select(Event.question_id, choice, func.count())
            .where(Event.event_name == "question_answered")
            .where(Event.question_id.is_not(None))
            .group_by(Event.question_id, choice)
        )
        if since_dt:
            stmt = stmt.where(Event.created_at >= since_dt)

        result = await self.session.execute(stmt)
        distribution: dict[str, dict[str, int]] = {}
        for question_id, option_id, count in result.all():
            if option_id is None:
                continue
            distribution.setdefault(question_id, {})[str(option_id)] = count
        return distribution
