"""Feedback recorder — closes a session with the mechanic's repair outcome."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

import structlog

from src.errors import AuthorizationError, SessionConflictError, ValidationError
from src.repositories.diagnostic import DiagnosticRepository
from src.schemas.diagnostic import MechanicFeedback, SessionStatus

logger = structlog.get_logger()


class FeedbackRecorder:
    """Records feedback and the closing status transition together."""

    def __init__(self, repository: DiagnosticRepository):
        self.repository = repository

    async def record(
        self,
        session_id: uuid.UUID,
        root_cause: str,
        parts_replaced: list[str],
        notes: str,
        resolved: bool,
    ) -> tuple[MechanicFeedback, SessionStatus]:
        """Close an open session.

        Raises:
            ValidationError: If the root cause is empty.
            AuthorizationError: If the session is missing or not the caller's.
            SessionConflictError: If the session is already closed.
        """
        root_cause = (root_cause or "").strip()
        if not root_cause:
            raise ValidationError(["rootCause: La panne trouvée est requise"])

        feedback = MechanicFeedback(
            root_cause=root_cause,
            parts_replaced=[part.strip() for part in parts_replaced if part and part.strip()],
            notes=(notes or "").strip(),
            resolved=resolved,
        )
        status = SessionStatus.CLOSED_RESOLVED if resolved else SessionStatus.CLOSED_UNRESOLVED
        closed_at = datetime.now(timezone.utc)

        updated = await self.repository.update_session_feedback(
            session_id, feedback, status, closed_at
        )
        if not updated:
            await self.repository.rollback()
            if await self.repository.find_session_owner(session_id) is None:
                raise AuthorizationError()
            logger.info("feedback_rejected_closed", session_id=str(session_id))
            raise SessionConflictError()

        await self.repository.commit()

        logger.info(
            "session_closed",
            session_id=str(session_id),
            status=status.value,
            parts_replaced=len(feedback.parts_replaced),
        )
        return feedback, status
