"""AI analysis gateway — ownership check, model call, reply parsing, persistence.

Order matters: the caller is checked against the session owner with a
user-scoped read before the (paid) model call, and only a grant issued by
that check can unlock the unscoped write of the analysis.
"""

from __future__ import annotations

import uuid

import anthropic
import structlog
from anthropic import AsyncAnthropic
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import settings
from src.errors import (
    AuthenticationError,
    AuthorizationError,
    PersistenceError,
    UpstreamError,
    UpstreamQuotaExhaustedError,
    UpstreamRateLimitedError,
)
from src.llm.analysis import parse_analysis_reply
from src.llm.prompts.diagnostic_prompt import DIAGNOSTIC_SYSTEM_PROMPT, build_user_content
from src.models.diagnostic import DiagnosticSession
from src.repositories.diagnostic import DiagnosticRepository
from src.schemas.diagnostic import AIAnalysis, AnalysisRequest

logger = structlog.get_logger()

_GRANT_KEY = object()


class SessionGrant:
    """Proof that the caller owns the session. Issued by AnalysisGateway only."""

    __slots__ = ("session_id", "user_id")

    def __init__(self, session_id: uuid.UUID, user_id: str, *, _key: object = None):
        if _key is not _GRANT_KEY:
            raise RuntimeError("SessionGrant can only be issued by AnalysisGateway")
        self.session_id = session_id
        self.user_id = user_id


class SessionAnalysisWriter:
    """Writes ``ai_analysis`` without the per-user filter.

    Usable only with a SessionGrant, i.e. after the ownership check.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def write(self, grant: SessionGrant, analysis: AIAnalysis) -> None:
        if not isinstance(grant, SessionGrant):
            raise TypeError("write() requires a SessionGrant")

        stmt = (
            update(DiagnosticSession)
            .where(DiagnosticSession.id == grant.session_id)
            .values(ai_analysis=analysis.model_dump(mode="json"))
        )
        try:
            result = await self.db.execute(stmt)
            if result.rowcount != 1:
                raise PersistenceError()
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("analysis_write_failed", session_id=str(grant.session_id), error=str(e))
            raise PersistenceError() from e


class AnalysisGateway:
    """Runs one diagnostic analysis for an authenticated caller."""

    def __init__(
        self,
        repository: DiagnosticRepository,
        writer: SessionAnalysisWriter,
        llm_client: AsyncAnthropic,
        model: str | None = None,
        max_tokens: int | None = None,
    ):
        self.repository = repository
        self.writer = writer
        self.llm = llm_client
        self.model = model or settings.llm_model
        self.max_tokens = max_tokens or settings.llm_max_tokens

    async def analyze(self, caller_id: str | None, request: AnalysisRequest) -> AIAnalysis:
        """Authorize, prompt the model, parse the reply and store it.

        An unparseable reply is not an error: a fallback analysis holding the
        raw text is stored and returned instead.

        Raises:
            AuthenticationError, AuthorizationError, UpstreamRateLimitedError,
            UpstreamQuotaExhaustedError, UpstreamError, PersistenceError
        """
        grant = await self.authorize(caller_id, request.session_id)
        # No transaction stays open across the model call
        await self.repository.rollback()

        logger.info(
            "analysis_started",
            session_id=str(request.session_id),
            images=len(request.image_urls),
        )

        raw_text = await self._complete(request)
        analysis, degraded = parse_analysis_reply(raw_text)

        await self.writer.write(grant, analysis)

        logger.info(
            "analysis_stored",
            session_id=str(request.session_id),
            degraded=degraded,
            causes=len(analysis.causes_probables),
        )
        return analysis

    async def authorize(self, caller_id: str | None, session_id: uuid.UUID) -> SessionGrant:
        if not caller_id:
            raise AuthenticationError()

        # Scoped read: a foreign session looks exactly like a missing one
        owner_id = await self.repository.find_session_owner(session_id)
        if owner_id is None or owner_id != caller_id:
            logger.warning("analysis_access_denied", session_id=str(session_id), caller_id=caller_id)
            raise AuthorizationError()

        return SessionGrant(session_id, caller_id, _key=_GRANT_KEY)

    async def _complete(self, request: AnalysisRequest) -> str:
        """Single model call. Non-2xx answers map to typed upstream errors."""
        try:
            response = await self.llm.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                system=DIAGNOSTIC_SYSTEM_PROMPT,
                messages=[{"role": "user", "content": build_user_content(request)}],
            )
        except anthropic.RateLimitError as e:
            logger.warning("upstream_rate_limited", session_id=str(request.session_id))
            raise UpstreamRateLimitedError() from e
        except anthropic.APIStatusError as e:
            if e.status_code == 402:
                logger.error("upstream_quota_exhausted", session_id=str(request.session_id))
                raise UpstreamQuotaExhaustedError() from e
            logger.error("upstream_error", session_id=str(request.session_id), status=e.status_code)
            raise UpstreamError(e.status_code) from e
        except anthropic.APIConnectionError as e:
            logger.error("upstream_unreachable", session_id=str(request.session_id), error=str(e))
            raise UpstreamError("connexion") from e

        text = next(
            (block.text for block in response.content if getattr(block, "type", None) == "text"),
            "",
        )

        logger.info(
            "analysis_reply_received",
            session_id=str(request.session_id),
            tokens_in=response.usage.input_tokens,
            tokens_out=response.usage.output_tokens,
        )
        return text
