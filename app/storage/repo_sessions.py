"""Repository for session state."""

import time

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.contracts import SessionState
from app.logging import get_logger
from app.storage.models import SessionRecord

logger = get_logger(__name__)


class SessionsRepo:
    """Key-value session store with a fixed expiry per session."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, session_id: str, now: float | None = None) -> SessionState | None:
        """Load a session.

        Args:
            session_id: Session ID
            now: Current epoch seconds (defaults to wall clock)

        Returns:
            SessionState, or None if absent, expired or unreadable
        """
        now = time.time() if now is None else now
        record = await self.session.get(SessionRecord, session_id)
        if record is None or record.expires_at <= now:
            return None

        try:
            return SessionState.from_bytes(record.payload.encode())
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Discarding unreadable session: {e}", extra={"session_id": session_id})
            return None

    async def put(self, state: SessionState, ttl_seconds: int, now: float | None = None) -> None:
        """Create or overwrite a session.

        The expiry is derived from the creation time, so rewriting a session
        never extends its lifetime.
        """
        now = time.time() if now is None else now
        payload = state.to_bytes().decode()
        record = await self.session.get(SessionRecord, state.session_id)
        if record is None:
            record = SessionRecord(
                session_id=state.session_id,
                payload=payload,
                expires_at=state.created_at + ttl_seconds,
                updated_at=now,
            )
            self.session.add(record)
        else:
            record.payload = payload
            record.updated_at = now
        await self.session.commit()

    async def purge_expired(self, now: float | None = None) -> int:
        """Delete expired sessions.

        Returns:
            Number of rows removed
        """
        now = time.time() if now is None else now
        result = await self.session.execute(
            delete(SessionRecord).where(SessionRecord.expires_at <= now)
        )
        await self.session.commit()
        return result.rowcount or 0

    async def delete(self, session_id: str) -> bool:
        """Remove a session.

        Returns:
            True if a row was deleted
        """
        result = await self.session.execute(
            delete(SessionRecord).where(SessionRecord.session_id == session_id)
        )
        await self.session.commit()
        return (result.rowcount or 0) > 0
