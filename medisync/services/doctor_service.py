"""
Doctor Directory Service.

Read access for everyone, additions for admins.
"""

from __future__ import annotations

from typing import Optional

from pydantic import ValidationError

from medisync.database import DatabaseManager
from medisync.logger import StructuredLogger
from medisync.models.doctor import Doctor, NewDoctor
from medisync.models.enums import UserRole
from medisync.models.service_models import ServiceResult
from medisync.repositories.doctor_repository import DoctorRepository
from medisync.services.base_service import BaseService
from medisync.utils.audit import log_audit_event


class DoctorService(BaseService):
    def __init__(
        self,
        doctor_repo: DoctorRepository,
        logger: StructuredLogger,
        db: Optional[DatabaseManager] = None,
    ) -> None:
        super().__init__(logger)
        self._doctor_repo = doctor_repo
        self._db = db

    def list_doctors(self) -> list[Doctor]:
        """Directory ordered by name."""
        return self._doctor_repo.get_all()

    def add_doctor(
        self,
        actor_role: UserRole,
        name: str,
        specialty: str,
        image_url: Optional[str] = None,
        actor_id: str = "system",
    ) -> ServiceResult:
        """
        Add a doctor to the directory.  Admin only.

        Returns:
            ServiceResult carrying the new ``Doctor``; 403 for non-admins,
            400 when name or specialty is blank, 500 on storage failure.
        """
        if actor_role != UserRole.ADMIN:
            return self._fail("Only admins can add doctors.", 403)

        try:
            new_doctor = NewDoctor(
                name=name,
                specialty=specialty,
                image_url=(image_url or "").strip() or None,
            )
        except ValidationError:
            return self._fail("Doctor name and specialty are required.", 400)

        try:
            doctor = self._doctor_repo.create(new_doctor)
        except Exception as exc:
            self._logger.error(
                "Error adding doctor %s: %s", new_doctor.name, exc, exc_info=True,
            )
            return self._fail(f"Database error: {exc}", 500)

        log_audit_event(
            logger=self._logger,
            action="ADD_DOCTOR",
            entity_type="Doctor",
            entity_id=doctor.id,
            user_id=actor_id,
            details={"name": doctor.name, "specialty": doctor.specialty},
            db=self._db,
        )
        return ServiceResult(success=True, data=doctor, status_code=201)
