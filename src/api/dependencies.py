"""FastAPI dependencies wiring repositories and services per request."""

from __future__ import annotations

from anthropic import AsyncAnthropic
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth.dependencies import get_current_user_id
from src.database import get_db
from src.diagnostics.gateway import AnalysisGateway, SessionAnalysisWriter
from src.llm.client import get_llm_client
from src.repositories.diagnostic import DiagnosticRepository


async def get_repository(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> DiagnosticRepository:
    """Repository scoped to the authenticated caller."""
    return DiagnosticRepository(db, user_id)

def build_gateway(
    db: AsyncSession,
    user_id: str,
    llm_client: AsyncAnthropic | None = None,
) -> AnalysisGateway:
    return AnalysisGateway(
        repository=DiagnosticRepository(db, user_id),
        writer=SessionAnalysisWriter(db),
        llm_client=llm_client or get_llm_client(),
    )

async def get_gateway(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> AnalysisGateway:
    return build_gateway(db, user_id)
