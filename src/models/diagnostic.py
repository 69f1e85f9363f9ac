"""Diagnostic session model."""

import uuid
from datetime import datetime
from typing import Dict, Optional

from sqlalchemy import DateTime, ForeignKey, String
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models.base import Base, TimestampMixin, UUIDMixin


class DiagnosticSession(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "diagnostic_sessions"

    user_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    vehicle_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("vehicles.id"), nullable=False
    )

    status: Mapped[str] = mapped_column(
        String(30), default="open"
    )  # open | closed-resolved | closed-unresolved

    # JSON blobs, shapes defined in src.schemas.diagnostic
    input_data: Mapped[Dict] = mapped_column(JSONB, nullable=False)
    ai_analysis: Mapped[Optional[Dict]] = mapped_column(JSONB, nullable=True)
    mechanic_feedback: Mapped[Optional[Dict]] = mapped_column(JSONB, nullable=True)

    closed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Relationships
    vehicle = relationship("Vehicle", back_populates="sessions", lazy="selectin")
