"""Session assembler — persists vehicle, photos and the open session row."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field

import structlog

from src.errors import DiagnosticError, PersistenceError, ValidationError, VehicleConflictError
from src.intake.images import ImageUpload, validate_images
from src.repositories.diagnostic import DiagnosticRepository
from src.schemas.diagnostic import (
    AnalysisRequest,
    DiagnosticInput,
    FaultCode,
    VehicleData,
    VehicleIdentity,
)
from src.storage.images import ImageStore

logger = structlog.get_logger()


@dataclass
class AssembledSession:
    """A durably created session, ready to be analysed."""

    session_id: uuid.UUID
    vehicle: VehicleIdentity
    payload: DiagnosticInput
    rejected_images: list[str] = field(default_factory=list)

    def analysis_request(self) -> AnalysisRequest:
        return AnalysisRequest(
            session_id=self.session_id,
            vehicle_data=VehicleData(
                make=self.vehicle.make,
                model=self.vehicle.model,
                year=self.vehicle.year,
                engine_code=self.vehicle.engine_code,
            ),
            symptoms=self.payload.symptoms,
            dtc_codes=self.payload.fault_codes,
            tests_already_done=self.payload.tests_done,
            image_urls=self.payload.image_urls,
        )


class SessionAssembler:
    """Creates diagnostic sessions for one authenticated user."""

    def __init__(self, repository: DiagnosticRepository, image_store: ImageStore):
        self.repository = repository
        self.image_store = image_store

    async def assemble(
        self,
        vehicle: VehicleIdentity,
        symptoms: list[str],
        fault_codes: list[FaultCode],
        tests_done: list[str],
        images: list[ImageUpload],
    ) -> AssembledSession:
        """Create the vehicle (if new), store photos and insert the open session.

        Invalid photos are skipped and reported in ``rejected_images``.
        Any storage failure aborts the whole operation: nothing is committed.

        Raises:
            ValidationError: If no symptom was given.
            PersistenceError: If a vehicle, photo or session write fails.
        """
        if not symptoms:
            raise ValidationError(["symptoms: Au moins un symptôme est requis"])

        accepted, rejected = validate_images(images)
        user_id = self.repository.user_id

        try:
            vehicle_id = await self._resolve_vehicle(vehicle)

            image_urls = []
            for image in accepted:
                url = await self.image_store.upload(
                    user_id, image.filename, image.data, image.content_type
                )
                image_urls.append(url)

            payload = DiagnosticInput(
                symptoms=symptoms,
                fault_codes=fault_codes,
                tests_done=tests_done,
                image_urls=image_urls,
            )
            session = await self.repository.insert_session(vehicle_id, payload)
            await self.repository.commit()
        except DiagnosticError:
            await self.repository.rollback()
            raise

        logger.info(
            "session_created",
            session_id=str(session.id),
            user_id=user_id,
            vin=vehicle.vin,
            symptoms=len(symptoms),
            fault_codes=len(fault_codes),
            images=len(image_urls),
            rejected_images=len(rejected),
        )

        return AssembledSession(
            session_id=session.id,
            vehicle=vehicle,
            payload=payload,
            rejected_images=rejected,
        )

    async def _resolve_vehicle(self, identity: VehicleIdentity) -> uuid.UUID:
        """Existing vehicle id for the VIN, inserting the vehicle if needed.

        A concurrent insert of the same VIN resolves to the row that won.
        """
        existing = await self.repository.find_vehicle_by_vin(identity.vin)
        if existing is not None:
            return existing.id

        try:
            vehicle = await self.repository.insert_vehicle(identity)
            return vehicle.id
        except VehicleConflictError:
            existing = await self.repository.find_vehicle_by_vin(identity.vin)
            if existing is None:
                logger.error("vehicle_conflict_unresolved", vin=identity.vin)
                raise PersistenceError()
            logger.info("vehicle_conflict_resolved", vin=identity.vin, vehicle_id=str(existing.id))
            return existing.id
