"""Analysis reply parser — model text to AIAnalysis, with a degraded fallback."""

from __future__ import annotations

import json
import re

import structlog
from pydantic import ValidationError as PydanticValidationError

from src.schemas.diagnostic import AIAnalysis

logger = structlog.get_logger()

_FENCE = re.compile(r"```(?:json|JSON)?[ \t]*\n?")


def strip_code_fences(text: str) -> str:
    """Remove Markdown code fences wrapped around a JSON reply."""
    return _FENCE.sub("", text).strip()


def parse_analysis_reply(raw_text: str) -> tuple[AIAnalysis, bool]:
    """Parse the model reply.

    Returns:
        (analysis, degraded), degraded is True when the fallback was used
    """
    try:
        data = json.loads(strip_code_fences(raw_text))
        return AIAnalysis.model_validate(data), False
    except (json.JSONDecodeError, PydanticValidationError) as e:
        logger.warning(
            "analysis_reply_unparseable",
            error=str(e)[:200],
            raw_text=raw_text[:200],
        )
        return AIAnalysis.fallback(raw_text), True
