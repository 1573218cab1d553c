"""
Appointment Service.

Role-aware booking workflow on top of ``AppointmentRepository``: booking,
per-role listing, the doctor request queue, status changes and the
dashboard summary.  Every method returns a ``ServiceResult`` envelope;
status changes and bookings are written to the audit trail.
"""

from __future__ import annotations

import datetime as dt
from collections import Counter
from typing import Optional

from pydantic import ValidationError

from medisync.database import DatabaseManager
from medisync.exceptions import InvalidStatusTransitionError, StorageWriteError
from medisync.logger import StructuredLogger
from medisync.models.appointment import Appointment, DashboardSummary, NewAppointment
from medisync.models.enums import AppointmentStatus, UserRole
from medisync.models.service_models import ServiceResult
from medisync.models.user import AuthenticatedUser
from medisync.repositories.appointment_repository import AppointmentRepository
from medisync.repositories.doctor_repository import DoctorRepository
from medisync.services.base_service import BaseService
from medisync.utils.audit import log_audit_event

# Target statuses each role may request.  Legality of the move itself is
# decided by the status state machine.
_ROLE_TARGETS: dict[UserRole, frozenset[AppointmentStatus]] = {
    UserRole.ADMIN: frozenset(AppointmentStatus),
    UserRole.DOCTOR: frozenset({
        AppointmentStatus.APPROVED,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.COMPLETED,
    }),
    UserRole.PATIENT: frozenset({AppointmentStatus.CANCELLED}),
    UserRole.UNKNOWN: frozenset(),
}

_BOOKING_ROLES: frozenset[UserRole] = frozenset({UserRole.PATIENT, UserRole.ADMIN})


def parse_status(value: AppointmentStatus | str) -> AppointmentStatus:
    """Case-insensitive lookup of an ``AppointmentStatus``.

    Raises:
        ValueError: *value* names no status.
    """
    if isinstance(value, AppointmentStatus):
        return value
    wanted = (value or "").strip().lower()
    for status in AppointmentStatus:
        if status.value.lower() == wanted:
            return status
    raise ValueError(f"Unknown appointment status '{value}'.")


class AppointmentService(BaseService):
    """
    Appointment workflows for admins, doctors and patients.

    Dependencies are injected via __init__; ``db`` is only used to
    persist audit events.
    """

    def __init__(
        self,
        appointment_repo: AppointmentRepository,
        doctor_repo: DoctorRepository,
        time_slots: list[str],
        logger: StructuredLogger,
        db: Optional[DatabaseManager] = None,
    ) -> None:
        super().__init__(logger)
        self._appt_repo = appointment_repo
        self._doctor_repo = doctor_repo
        self._time_slots: tuple[str, ...] = tuple(time_slots)
        self._db = db

    @property
    def time_slots(self) -> tuple[str, ...]:
        return self._time_slots

    # ------------------------------------------------------------------
    # Public: book_appointment
    # ------------------------------------------------------------------

    def book_appointment(
        self,
        user: AuthenticatedUser,
        role: UserRole,
        doctor_id: str,
        date: dt.date | str,
        time: str,
        reason: Optional[str] = None,
    ) -> ServiceResult:
        """
        Book a ``Pending`` appointment with a directory doctor.

        The doctor's name and specialty are copied onto the record; the
        patient name comes from the booking user's profile.

        Returns:
            ServiceResult carrying the new ``Appointment``.  400 for an
            unknown time slot or invalid fields, 403 for roles that
            cannot book, 404 for an unknown doctor, 500 when the store
            rejects the write.
        """
        if role not in _BOOKING_ROLES:
            return self._fail("Only patients and admins can book appointments.", 403)

        if time not in self._time_slots:
            return self._fail(
                f"'{time}' is not an available time slot. "
                f"Choose one of: {', '.join(self._time_slots)}.",
                400,
            )

        doctor = self._doctor_repo.get_by_id(doctor_id)
        if doctor is None:
            return self._fail("Doctor not found.", 404)

        try:
            new_appointment = NewAppointment(
                patient_name=user.patient_display_name,
                patient_user_id=user.id,
                doctor_id=doctor.id,
                doctor_name=doctor.name,
                specialty=doctor.specialty,
                date=date,
                time=time,
                reason=reason,
            )
        except ValidationError as exc:
            return self._fail(f"Invalid booking: {exc.errors()[0]['msg']}", 400)

        try:
            appointment = self._appt_repo.create(new_appointment)
        except StorageWriteError as exc:
            self._logger.error("Booking for %s not saved: %s", user.id, exc)
            return self._fail(str(exc), 500)

        log_audit_event(
            logger=self._logger,
            action="BOOK",
            entity_type="Appointment",
            entity_id=appointment.id,
            user_id=user.id,
            details={
                "doctor_id": appointment.doctor_id,
                "date": appointment.date.isoformat(),
                "time": appointment.time,
            },
            db=self._db,
        )
        return ServiceResult(success=True, data=appointment, status_code=201)

    # ------------------------------------------------------------------
    # Public: listings
    # ------------------------------------------------------------------

    def list_appointments(
        self,
        user: Optional[AuthenticatedUser],
        role: UserRole,
        status: Optional[AppointmentStatus | str] = None,
    ) -> ServiceResult:
        """
        Appointments visible to *role*, optionally filtered by *status*.

        Admins and doctors see every record; patients see only records
        they booked.
        """
        status_filter: Optional[AppointmentStatus] = None
        if status is not None and str(status).strip():
            try:
                status_filter = parse_status(status)
            except ValueError as exc:
                return self._fail(str(exc), 400)

        if role in (UserRole.ADMIN, UserRole.DOCTOR):
            appointments = self._appt_repo.list()
        elif role == UserRole.PATIENT and user is not None:
            appointments = [
                appt for appt in self._appt_repo.list()
                if appt.patient_user_id == user.id
            ]
        else:
            return self._fail("You do not have access to appointments.", 403)

        if status_filter is not None:
            appointments = [a for a in appointments if a.status == status_filter]
        return ServiceResult(success=True, data=appointments)

    def pending_requests(self) -> list[Appointment]:
        """Every ``Pending`` appointment, in booking order."""
        return [
            appt for appt in self._appt_repo.list()
            if appt.status == AppointmentStatus.PENDING
        ]

    # ------------------------------------------------------------------
    # Public: update_status
    # ------------------------------------------------------------------

    def update_status(
        self,
        user: AuthenticatedUser,
        role: UserRole,
        appointment_id: str,
        new_status: AppointmentStatus | str,
    ) -> ServiceResult:
        """
        Move an appointment to *new_status* on behalf of *user*.

        Admins may make any legal move; doctors may approve, cancel or
        complete; patients may only cancel their own appointments.

        Returns:
            ServiceResult carrying the updated ``Appointment``.  400 for
            an unknown status or illegal transition, 403 when the role may
            not make the change, 404 for an unknown appointment, 500 when
            the store rejects the write.
        """
        try:
            target = parse_status(new_status)
        except ValueError as exc:
            return self._fail(str(exc), 400)

        if target not in _ROLE_TARGETS.get(role, frozenset()):
            return self._fail(f"Role '{role}' cannot set appointments to '{target}'.", 403)

        appointment = self._appt_repo.get(appointment_id)
        if appointment is None:
            return self._fail("Appointment not found.", 404)

        if role == UserRole.PATIENT and appointment.patient_user_id != user.id:
            return self._fail("Patients can only cancel their own appointments.", 403)

        try:
            updated = self._appt_repo.update_status(appointment_id, target)
        except InvalidStatusTransitionError as exc:
            return self._fail(str(exc), 400)
        except StorageWriteError as exc:
            self._logger.error(
                "Status change for %s not saved: %s", appointment_id, exc,
            )
            return self._fail(str(exc), 500)

        if updated is None:
            return self._fail("Appointment not found.", 404)

        log_audit_event(
            logger=self._logger,
            action="STATUS_CHANGE",
            entity_type="Appointment",
            entity_id=appointment_id,
            user_id=user.id,
            details={
                "role": str(role),
                "from_status": str(appointment.status),
                "to_status": str(updated.status),
            },
            db=self._db,
        )
        return ServiceResult(success=True, data=updated)

    # ------------------------------------------------------------------
    # Public: dashboard_summary
    # ------------------------------------------------------------------

    def dashboard_summary(self, today: Optional[dt.date] = None) -> DashboardSummary:
        """Per-status counts plus the approved appointments dated *today*."""
        today = today or dt.date.today()
        appointments = self._appt_repo.list()
        tally = Counter(appt.status for appt in appointments)
        return DashboardSummary(
            total=len(appointments),
            counts={status: tally.get(status, 0) for status in AppointmentStatus},
            todays_approved=[
                appt for appt in appointments
                if appt.status == AppointmentStatus.APPROVED and appt.date == today
            ],
        )
