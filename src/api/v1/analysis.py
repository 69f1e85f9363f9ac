"""Analysis API — runs (or re-runs) the AI diagnostic for an owned session."""

import structlog
from fastapi import APIRouter, Depends

from src.api.dependencies import get_gateway
from src.auth.dependencies import get_current_user_id
from src.diagnostics.gateway import AnalysisGateway
from src.schemas.diagnostic import AnalysisRequest, AnalysisResponse

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1", tags=["analysis"])

ANALYSIS_PATH = "/api/v1/analyze-diagnostic"


@router.post("/analyze-diagnostic", response_model=AnalysisResponse)
async def analyze_diagnostic(
    request: AnalysisRequest,
    user_id: str = Depends(get_current_user_id),
    gateway: AnalysisGateway = Depends(get_gateway),
) -> AnalysisResponse:
    """Analyse a diagnostic session with the model.

    Args:
        request: Session id plus the vehicle, symptoms, codes, tests and photo URLs
        user_id: Authenticated caller
        gateway: Analysis gateway bound to the caller

    Returns:
        {"success": true, "analysis": {...}}
    """
    logger.info("analysis_requested", session_id=str(request.session_id), user_id=user_id)
    analysis = await gateway.analyze(user_id, request)
    return AnalysisResponse(success=True, analysis=analysis)
