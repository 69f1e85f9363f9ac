"""Intake parser — turns the mechanic's textarea input into typed records."""

from __future__ import annotations

import re
from typing import Any, Mapping, Optional

import structlog
from pydantic import ValidationError as PydanticValidationError

from src.errors import ValidationError
from src.schemas.diagnostic import (
    MIN_YEAR,
    VIN_LENGTH,
    VIN_PATTERN,
    FaultCode,
    VehicleIdentity,
)

logger = structlog.get_logger()

# (field, pydantic error type) -> form message
FIELD_MESSAGES = {
    ("vin", "string_too_short"): f"Le VIN doit contenir exactement {VIN_LENGTH} caractères",
    ("vin", "string_too_long"): f"Le VIN doit contenir exactement {VIN_LENGTH} caractères",
    ("vin", "string_pattern_mismatch"): "Format VIN invalide (lettres I, O et Q interdites)",
    ("make", "string_too_short"): "La marque est requise",
    ("model", "string_too_short"): "Le modèle est requis",
    ("year", "greater_than_equal"): f"L'année doit être supérieure ou égale à {MIN_YEAR}",
}


def parse_fault_code_line(line: str) -> Optional[FaultCode]:
    """Parse one ``CODE - description`` (or bare ``CODE``) line.

    Splits on the first hyphen only, so descriptions may contain hyphens.
    Returns None for blank lines and for lines with an empty code part.
    """
    trimmed = line.strip()
    if not trimmed:
        return None

    code, _, description = trimmed.partition("-")
    code = code.strip()
    if not code:
        logger.warning("fault_code_line_invalid", line=trimmed[:80])
        return None

    return FaultCode(code=code, description=description.strip())


def parse_fault_codes(text: str) -> list[FaultCode]:
    """Parse a block of fault codes, one per line.

    Unparseable lines are dropped rather than reported.
    """
    codes = []
    for line in text.splitlines():
        fault_code = parse_fault_code_line(line)
        if fault_code is not None:
            codes.append(fault_code)
    return codes


def parse_lines(text: str) -> list[str]:
    """Split text into trimmed, non-empty lines, keeping their order.

    Used for both symptoms and tests already done.
    """
    return [line.strip() for line in text.splitlines() if line.strip()]


def validate_vehicle_identity(
    fields: Mapping[str, Any],
    current_year: Optional[int] = None,
) -> VehicleIdentity:
    """Validate raw vehicle form fields.

    Args:
        fields: Mapping with vin, make, model, year and optional engine_code
        current_year: Override for the reference year (defaults to now, UTC)

    Returns:
        VehicleIdentity with a normalized (uppercased, trimmed) VIN

    Raises:
        ValidationError: with one message per violated rule
    """
    data = {name: fields.get(name) for name in VehicleIdentity.model_fields}
    context = {"current_year": current_year} if current_year is not None else None

    try:
        return VehicleIdentity.model_validate(data, context=context)
    except PydanticValidationError as exc:
        errors = []
        for error in exc.errors():
            errors.append(_field_message(error))
            # Length is checked first; a short VIN can also have bad characters
            vin = str(error.get("input") or "").strip().upper()
            if _is_vin_length_error(error) and not re.match(VIN_PATTERN, vin):
                errors.append(f"vin: {FIELD_MESSAGES[('vin', 'string_pattern_mismatch')]}")
        logger.info("vehicle_identity_rejected", errors=errors)
        raise ValidationError(errors) from exc


def _is_vin_length_error(error: Mapping[str, Any]) -> bool:
    return tuple(error.get("loc") or ())[:1] == ("vin",) and error["type"] in (
        "string_too_short",
        "string_too_long",
    )


def _field_message(error: Mapping[str, Any]) -> str:
    field = str(error["loc"][0]) if error.get("loc") else "vehicle"
    message = FIELD_MESSAGES.get((field, error["type"]), error["msg"])
    return f"{field}: {message}"
