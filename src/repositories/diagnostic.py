"""Diagnostic repository — vehicles and owner-scoped session rows."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.errors import PersistenceError, VehicleConflictError
from src.models.diagnostic import DiagnosticSession
from src.models.vehicle import Vehicle
from src.schemas.diagnostic import (
    DiagnosticInput,
    MechanicFeedback,
    SessionStatus,
    VehicleIdentity,
)

logger = structlog.get_logger()


class DiagnosticRepository:
    """Data access on behalf of one authenticated user.

    Every session read and write is filtered on ``user_id``, so a session
    owned by someone else behaves exactly like a missing one. Vehicles are
    shared between users and are looked up by VIN.
    """

    def __init__(self, db: AsyncSession, user_id: str):
        self.db = db
        self.user_id = user_id

    async def _read(self, stmt, event: str, **fields):
        try:
            return await self.db.execute(stmt)
        except SQLAlchemyError as e:
            logger.error(event, user_id=self.user_id, error=str(e), **fields)
            raise PersistenceError() from e

    # --- Vehicles ---

    async def find_vehicle_by_vin(self, vin: str) -> Optional[Vehicle]:
        result = await self._read(
            select(Vehicle).where(Vehicle.vin == vin), "vehicle_lookup_failed", vin=vin
        )
        return result.scalar_one_or_none()

    async def insert_vehicle(self, identity: VehicleIdentity) -> Vehicle:
        """Insert a vehicle row.

        Raises:
            VehicleConflictError: If the VIN was inserted concurrently.
            PersistenceError: On any other database failure.
        """
        vehicle = Vehicle(
            vin=identity.vin,
            make=identity.make,
            model=identity.model,
            year=identity.year,
            engine_code=identity.engine_code,
        )
        try:
            # Savepoint so a unique violation leaves the outer transaction usable
            async with self.db.begin_nested():
                self.db.add(vehicle)
                await self.db.flush()
        except IntegrityError as e:
            raise VehicleConflictError(identity.vin) from e
        except SQLAlchemyError as e:
            logger.error("vehicle_insert_failed", vin=identity.vin, error=str(e))
            raise PersistenceError() from e

        logger.info("vehicle_created", vehicle_id=str(vehicle.id), vin=identity.vin)
        return vehicle

    # --- Sessions ---

    async def insert_session(
        self, vehicle_id: uuid.UUID, payload: DiagnosticInput
    ) -> DiagnosticSession:
        session = DiagnosticSession(
            user_id=self.user_id,
            vehicle_id=vehicle_id,
            status=SessionStatus.OPEN.value,
            input_data=payload.model_dump(mode="json"),
        )
        try:
            self.db.add(session)
            await self.db.flush()
        except SQLAlchemyError as e:
            logger.error("session_insert_failed", user_id=self.user_id, error=str(e))
            raise PersistenceError() from e
        return session

    async def find_session_owner(self, session_id: uuid.UUID) -> Optional[str]:
        """Owner of a session visible to this user, or None."""
        result = await self._read(
            select(DiagnosticSession.user_id).where(
                DiagnosticSession.id == session_id,
                DiagnosticSession.user_id == self.user_id,
            ),
            "session_owner_lookup_failed",
            session_id=str(session_id),
        )
        return result.scalar_one_or_none()

    async def get_session(self, session_id: uuid.UUID) -> Optional[DiagnosticSession]:
        result = await self._read(
            select(DiagnosticSession).where(
                DiagnosticSession.id == session_id,
                DiagnosticSession.user_id == self.user_id,
            ),
            "session_lookup_failed",
            session_id=str(session_id),
        )
        return result.scalar_one_or_none()

    async def list_sessions(
        self, limit: int = 20, offset: int = 0
    ) -> tuple[list[DiagnosticSession], int]:
        """Newest first, with the total count for pagination."""
        stmt = select(DiagnosticSession).where(DiagnosticSession.user_id == self.user_id)

        count_stmt = select(func.count()).select_from(stmt.subquery())
        total = (await self._read(count_stmt, "session_list_failed")).scalar_one()

        stmt = stmt.order_by(DiagnosticSession.created_at.desc()).offset(offset).limit(limit)
        result = await self._read(stmt, "session_list_failed")
        return list(result.scalars().all()), total

    async def update_session_feedback(
        self,
        session_id: uuid.UUID,
        feedback: MechanicFeedback,
        status: SessionStatus,
        closed_at: datetime,
    ) -> bool:
        """Close an open session with its feedback in one UPDATE.

        Returns False when no open session matched (missing, foreign or
        already closed).
        """
        stmt = (
            update(DiagnosticSession)
            .where(
                DiagnosticSession.id == session_id,
                DiagnosticSession.user_id == self.user_id,
                DiagnosticSession.status == SessionStatus.OPEN.value,
            )
            .values(
                mechanic_feedback=feedback.model_dump(mode="json"),
                status=status.value,
                closed_at=closed_at,
            )
        )
        try:
            result = await self.db.execute(stmt)
        except SQLAlchemyError as e:
            logger.error("feedback_update_failed", session_id=str(session_id), error=str(e))
            raise PersistenceError() from e
        return result.rowcount == 1

    async def commit(self) -> None:
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            logger.error("commit_failed", user_id=self.user_id, error=str(e))
            raise PersistenceError() from e

    async def rollback(self) -> None:
        await self.db.rollback()
