"""Diagnostic schemas — typed shapes of the session JSON blobs and API bodies."""

from __future__ import annotations

import re
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, ValidationInfo, field_validator
from pydantic_core import PydanticCustomError

VIN_LENGTH = 17
VIN_PATTERN = r"^[A-HJ-NPR-Z0-9]+$"
MIN_YEAR = 1900


class SessionStatus(str, Enum):
    """Session lifecycle. Created open, closed exactly once, never reopened."""

    OPEN = "open"
    CLOSED_RESOLVED = "closed-resolved"
    CLOSED_UNRESOLVED = "closed-unresolved"


class VehicleIdentity(BaseModel):
    """Validated vehicle identity.

    Built through ``src.intake.parser.validate_vehicle_identity``, which maps
    validation errors to form messages. Pass ``context={"current_year": ...}``
    to pin the upper year bound; it defaults to the current UTC year.
    """

    # 17 characters, I/O/Q excluded (ISO 3779)
    vin: str = Field(min_length=VIN_LENGTH, max_length=VIN_LENGTH, pattern=VIN_PATTERN)
    make: str = Field(min_length=1)
    model: str = Field(min_length=1)
    year: int = Field(ge=MIN_YEAR)
    engine_code: Optional[str] = None

    @field_validator("vin", mode="before")
    @classmethod
    def _normalize_vin(cls, value):
        return str(value or "").strip().upper()

    @field_validator("make", "model", mode="before")
    @classmethod
    def _strip(cls, value):
        return str(value or "").strip()

    @field_validator("engine_code", mode="before")
    @classmethod
    def _blank_engine_code(cls, value):
        return str(value or "").strip() or None

    @field_validator("year", mode="before")
    @classmethod
    def _integer_year(cls, value):
        # Form posts send strings; floats and booleans are never a year
        if isinstance(value, bool):
            raise PydanticCustomError("year_not_integer", "L'année doit être un nombre entier")
        if isinstance(value, int):
            return value
        if isinstance(value, str) and re.fullmatch(r"-?[0-9]+", value.strip()):
            return int(value.strip())
        raise PydanticCustomError("year_not_integer", "L'année doit être un nombre entier")

    @field_validator("year")
    @classmethod
    def _not_after_next_year(cls, value: int, info: ValidationInfo) -> int:
        current_year = (info.context or {}).get("current_year")
        if current_year is None:
            current_year = datetime.now(timezone.utc).year
        max_year = current_year + 1
        if value > max_year:
            raise PydanticCustomError(
                "year_too_recent",
                "L'année ne peut pas dépasser {max_year}",
                {"max_year": max_year},
            )
        return value


class FaultCode(BaseModel):
    """Diagnostic trouble code, e.g. P0171 with an optional description."""

    code: str = Field(min_length=1)
    description: str = ""


class DiagnosticInput(BaseModel):
    """Input payload stored on the session row."""

    symptoms: list[str] = []
    fault_codes: list[FaultCode] = []
    tests_done: list[str] = []
    image_urls: list[str] = []


class ProbableCause(BaseModel):
    cause: str
    probabilite: float = Field(ge=0.0, le=1.0)

    @field_validator("probabilite", mode="before")
    @classmethod
    def _percent_to_ratio(cls, value):
        # Models sometimes answer 75 instead of 0.75
        if isinstance(value, (int, float)) and not isinstance(value, bool) and 1 < value <= 100:
            return value / 100
        return value


class AIAnalysis(BaseModel):
    """Structured diagnostic hypothesis returned by the model.

    Field names are the JSON keys the model is instructed to produce.
    ``causes_probables`` is kept in the order the model ranked them.
    """

    resume_probleme: str
    causes_probables: list[ProbableCause] = []
    tests_a_faire: list[str] = []
    logique_diagnostic: str = ""
    attention: Optional[str] = None

    @classmethod
    def fallback(cls, raw_text: str) -> "AIAnalysis":
        """Degraded analysis used when the model reply cannot be parsed.

        The raw reply is kept in ``logique_diagnostic`` so nothing is lost.
        """
        return cls(
            resume_probleme="Erreur lors de l'analyse de la réponse de l'IA",
            causes_probables=[],
            tests_a_faire=[],
            logique_diagnostic=raw_text,
            attention="",
        )


class MechanicFeedback(BaseModel):
    """Post-repair outcome recorded by the mechanic."""

    root_cause: str
    parts_replaced: list[str] = []
    notes: str = ""
    resolved: bool


# --- API bodies ---


class VehicleData(BaseModel):
    """Vehicle description sent along with an analysis request."""

    make: str
    model: str
    year: int
    engine_code: Optional[str] = None
    engine_description: Optional[str] = None


class AnalysisRequest(BaseModel):
    """Body of the analysis invocation call."""

    session_id: uuid.UUID = Field(alias="sessionId")
    vehicle_data: VehicleData = Field(alias="vehicleData")
    symptoms: list[str] = []
    dtc_codes: list[FaultCode] = Field(default=[], alias="dtcCodes")
    tests_already_done: list[str] = Field(default=[], alias="testsAlreadyDone")
    image_urls: list[str] = Field(default=[], alias="imageUrls")

    model_config = {"populate_by_name": True}


class AnalysisResponse(BaseModel):
    success: bool = True
    analysis: AIAnalysis


class FeedbackRequest(BaseModel):
    """Body of the feedback submission call."""

    root_cause: str = Field(alias="rootCause")
    parts_replaced: list[str] = Field(default=[], alias="partsReplaced")
    notes: str = ""
    resolved: bool

    model_config = {"populate_by_name": True}


class SessionCreated(BaseModel):
    session_id: str
    status: SessionStatus = SessionStatus.OPEN
    rejected_images: list[str] = []


class VehicleSummary(BaseModel):
    vin: str
    make: str
    model: str
    year: int
    engine_code: Optional[str] = None


class SessionSummary(BaseModel):
    id: str
    status: SessionStatus
    vehicle: Optional[VehicleSummary] = None
    has_analysis: bool = False
    created_at: Optional[str] = None


class SessionDetail(BaseModel):
    id: str
    status: SessionStatus
    vehicle: Optional[VehicleSummary] = None
    input_data: DiagnosticInput
    ai_analysis: Optional[AIAnalysis] = None
    mechanic_feedback: Optional[MechanicFeedback] = None
    created_at: Optional[str] = None
    closed_at: Optional[str] = None
