"""Diagnostics API — intake, listing, detail and mechanic feedback."""

import uuid
from typing import Optional

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, Query, UploadFile

from src.api.dependencies import build_gateway, get_repository
from src.config import settings
from src.database import async_session_factory
from src.diagnostics.assembler import SessionAssembler
from src.diagnostics.feedback import FeedbackRecorder
from src.errors import AuthorizationError, DiagnosticError
from src.intake.images import ImageUpload
from src.intake.parser import parse_fault_codes, parse_lines, validate_vehicle_identity
from src.models.diagnostic import DiagnosticSession
from src.repositories.diagnostic import DiagnosticRepository
from src.schemas.diagnostic import (
    AnalysisRequest,
    FeedbackRequest,
    SessionCreated,
    SessionDetail,
    SessionStatus,
    SessionSummary,
    VehicleSummary,
)
from src.storage.images import ImageStore, get_image_store

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1", tags=["diagnostics"])


async def run_analysis_in_background(user_id: str, request: AnalysisRequest) -> None:
    """Analyse a freshly created session with its own database session.

    Failures leave ``ai_analysis`` unset; the mechanic can re-run the
    analysis from the session page.
    """
    async with async_session_factory() as db:
        try:
            gateway = build_gateway(db, user_id)
            await gateway.analyze(user_id, request)
        except DiagnosticError as e:
            logger.warning(
                "background_analysis_failed",
                session_id=str(request.session_id),
                status=e.status_code,
                error=e.message,
            )
        except Exception:
            logger.exception(
                "background_analysis_crashed", session_id=str(request.session_id)
            )


@router.post("/diagnostics", response_model=SessionCreated, status_code=201)
async def create_diagnostic(
    background_tasks: BackgroundTasks,
    vin: str = Form(""),
    make: str = Form(""),
    model: str = Form(""),
    year: str = Form(""),
    engine_code: Optional[str] = Form(None),
    symptoms: str = Form(""),
    fault_codes: str = Form(""),
    tests_done: str = Form(""),
    images: Optional[list[UploadFile]] = File(None),
    repository: DiagnosticRepository = Depends(get_repository),
    image_store: ImageStore = Depends(get_image_store),
) -> SessionCreated:
    """Create a diagnostic session from the intake form and start its analysis.

    Textareas hold one symptom, fault code (``CODE - description``) or test
    per line. The session is committed before the analysis is scheduled.
    """
    vehicle = validate_vehicle_identity(
        {"vin": vin, "make": make, "model": model, "year": year, "engine_code": engine_code}
    )

    uploads = []
    for upload in images or []:
        # Read one byte past the ceiling so oversize files are detected without reading them whole
        data = await upload.read(settings.image_max_bytes + 1)
        uploads.append(
            ImageUpload(
                filename=upload.filename or "image",
                content_type=upload.content_type or "",
                data=data,
            )
        )

    assembler = SessionAssembler(repository, image_store)
    assembled = await assembler.assemble(
        vehicle=vehicle,
        symptoms=parse_lines(symptoms),
        fault_codes=parse_fault_codes(fault_codes),
        tests_done=parse_lines(tests_done),
        images=uploads,
    )

    background_tasks.add_task(
        run_analysis_in_background, repository.user_id, assembled.analysis_request()
    )

    return SessionCreated(
        session_id=str(assembled.session_id),
        status=SessionStatus.OPEN,
        rejected_images=assembled.rejected_images,
    )


@router.get("/diagnostics")
async def list_diagnostics(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    repository: DiagnosticRepository = Depends(get_repository),
) -> dict:
    """List the caller's sessions, newest first.

    Returns:
        {"sessions": [...], "total": int}
    """
    sessions, total = await repository.list_sessions(limit=limit, offset=offset)
    return {
        "sessions": [
            SessionSummary(
                id=str(session.id),
                status=SessionStatus(session.status),
                vehicle=_vehicle_summary(session),
                has_analysis=session.ai_analysis is not None,
                created_at=session.created_at.isoformat() if session.created_at else None,
            ).model_dump(mode="json")
            for session in sessions
        ],
        "total": total,
    }


@router.get("/diagnostics/{session_id}", response_model=SessionDetail)
async def get_diagnostic(
    session_id: uuid.UUID,
    repository: DiagnosticRepository = Depends(get_repository),
) -> SessionDetail:
    """Full session: vehicle, input, analysis (once available) and feedback."""
    session = await repository.get_session(session_id)
    if session is None:
        raise AuthorizationError()

    return SessionDetail(
        id=str(session.id),
        status=SessionStatus(session.status),
        vehicle=_vehicle_summary(session),
        input_data=session.input_data,
        ai_analysis=session.ai_analysis,
        mechanic_feedback=session.mechanic_feedback,
        created_at=session.created_at.isoformat() if session.created_at else None,
        closed_at=session.closed_at.isoformat() if session.closed_at else None,
    )


@router.post("/diagnostics/{session_id}/feedback")
async def submit_feedback(
    session_id: uuid.UUID,
    data: FeedbackRequest,
    repository: DiagnosticRepository = Depends(get_repository),
) -> dict:
    """Record the repair outcome and close the session.

    Returns 409 if the session is already closed.
    """
    recorder = FeedbackRecorder(repository)
    feedback, status = await recorder.record(
        session_id=session_id,
        root_cause=data.root_cause,
        parts_replaced=data.parts_replaced,
        notes=data.notes,
        resolved=data.resolved,
    )
    return {
        "success": True,
        "status": status.value,
        "feedback": feedback.model_dump(mode="json"),
    }


def _vehicle_summary(session: DiagnosticSession) -> Optional[VehicleSummary]:
    vehicle = session.vehicle
    if vehicle is None:
        return None
    return VehicleSummary(
        vin=vehicle.vin,
        make=vehicle.make,
        model=vehicle.model,
        year=vehicle.year,
        engine_code=vehicle.engine_code,
    )
