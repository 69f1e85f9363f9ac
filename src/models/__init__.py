"""SQLAlchemy ORM models."""

from src.models.base import Base
from src.models.vehicle import Vehicle
from src.models.diagnostic import DiagnosticSession

__all__ = [
    "Base",
    "Vehicle",
    "DiagnosticSession",
]
