"""Tests for mechanic feedback and session closure."""

import uuid

import pytest

from src.diagnostics.feedback import FeedbackRecorder
from src.errors import AuthorizationError, SessionConflictError, ValidationError
from src.schemas.diagnostic import SessionStatus

from conftest import FakeRepository


class TestFeedbackRecorder:
    """Test the open → closed transition."""

    @pytest.mark.asyncio
    async def test_resolved_closes_session(self, store, repository, owned_session):
        recorder = FeedbackRecorder(repository)

        feedback, status = await recorder.record(
            owned_session.id,
            root_cause="  Durite d'admission fendue ",
            parts_replaced=["Durite d'admission", "  ", "Collier "],
            notes="Fuite visible au fumigène",
            resolved=True,
        )

        assert status == SessionStatus.CLOSED_RESOLVED
        assert owned_session.status == "closed-resolved"
        assert owned_session.closed_at is not None
        assert owned_session.mechanic_feedback == {
            "root_cause": "Durite d'admission fendue",
            "parts_replaced": ["Durite d'admission", "Collier"],
            "notes": "Fuite visible au fumigène",
            "resolved": True,
        }
        assert feedback.parts_replaced == ["Durite d'admission", "Collier"]
        assert store.commits == 1

    @pytest.mark.asyncio
    async def test_unresolved_closes_session(self, repository, owned_session):
        recorder = FeedbackRecorder(repository)

        _, status = await recorder.record(owned_session.id, "Inconnue", [], "", resolved=False)

        assert status == SessionStatus.CLOSED_UNRESOLVED
        assert owned_session.status == "closed-unresolved"
        assert owned_session.mechanic_feedback["parts_replaced"] == []

    @pytest.mark.asyncio
    async def test_closed_session_is_conflict(self, repository, owned_session):
        recorder = FeedbackRecorder(repository)
        await recorder.record(owned_session.id, "Bougie", ["Bougie"], "", resolved=True)
        first_closed_at = owned_session.closed_at

        with pytest.raises(SessionConflictError) as exc_info:
            await recorder.record(owned_session.id, "Autre", [], "", resolved=False)

        assert exc_info.value.status_code == 409
        assert owned_session.status == "closed-resolved"
        assert owned_session.closed_at == first_closed_at
        assert owned_session.mechanic_feedback["root_cause"] == "Bougie"

    @pytest.mark.asyncio
    async def test_requires_root_cause(self, repository, owned_session):
        recorder = FeedbackRecorder(repository)

        with pytest.raises(ValidationError):
            await recorder.record(owned_session.id, "   ", [], "", resolved=True)

        assert owned_session.status == "open"
        assert owned_session.mechanic_feedback is None

    @pytest.mark.asyncio
    async def test_foreign_or_missing_session_is_denied(self, store, owned_session):
        recorder = FeedbackRecorder(FakeRepository(store, "user-2"))

        with pytest.raises(AuthorizationError):
            await recorder.record(owned_session.id, "Bougie", [], "", resolved=True)
        with pytest.raises(AuthorizationError):
            await recorder.record(uuid.uuid4(), "Bougie", [], "", resolved=True)

        assert owned_session.status == "open"
