"""Vehicle model — one row per VIN."""

from typing import Optional

from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models.base import Base, TimestampMixin, UUIDMixin


class Vehicle(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "vehicles"

    # Unique constraint makes concurrent first-time inserts resolve to one row
    vin: Mapped[str] = mapped_column(String(17), unique=True, nullable=False)
    make: Mapped[str] = mapped_column(String(100), nullable=False)
    model: Mapped[str] = mapped_column(String(100), nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    engine_code: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    # Relationships
    sessions = relationship("DiagnosticSession", back_populates="vehicle")
