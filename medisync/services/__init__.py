"""
Business Logic Services Package.

Services depend on the repository layer for data access and on the shared
``AuthContext`` for user state.

The ``create_services()`` factory wires every repository and service together,
returning a typed dict that the application layer can consume without
knowing the internal dependency graph.
"""

from __future__ import annotations

from typing import TypedDict

from medisync.auth import AuthContext
from medisync.config import AppConfig
from medisync.database import DatabaseManager
from medisync.local_storage import LocalStorageService
from medisync.logger import get_logger
from medisync.repositories.appointment_repository import AppointmentRepository
from medisync.repositories.appointment_store import AppointmentStore
from medisync.repositories.doctor_repository import DoctorRepository
from medisync.services.appointment_service import AppointmentService
from medisync.services.auth_service import AuthService
from medisync.services.doctor_service import DoctorService
from medisync.services.role_resolver import EmailSubstringRoleResolver, RoleResolver


class ServiceContainer(TypedDict):
    """Typed container for all portal services."""

    auth_service: AuthService
    appointment_service: AppointmentService
    doctor_service: DoctorService
    appointment_repository: AppointmentRepository
    local_storage: LocalStorageService


def create_services(
    db: DatabaseManager,
    config: AppConfig,
    auth_context: AuthContext,
    role_resolver: RoleResolver | None = None,
) -> ServiceContainer:
    """
    Wire all repositories and services together.

    This is the single composition root for the service layer.  The
    entry-point calls it once at startup.

    Args:
        db: Initialised DatabaseManager with the schema applied.
        config: Application configuration.
        auth_context: Shared auth state; the returned ``auth_service`` is
            its only writer.
        role_resolver: Role strategy; defaults to the email rule.

    Returns:
        ServiceContainer mapping service names to fully-wired instances.
    """
    logger = get_logger("medisync.services")

    # ------------------------------------------------------------------
    # 1. Storage and repositories (data-access layer)
    # ------------------------------------------------------------------
    local_storage = LocalStorageService(db=db, logger=logger)
    appointment_store = AppointmentStore(
        storage=local_storage,
        storage_key=config.APPOINTMENTS_STORAGE_KEY,
        logger=logger,
    )
    appointment_repo = AppointmentRepository(store=appointment_store, logger=logger)
    doctor_repo = DoctorRepository(db=db, logger=logger)

    # ------------------------------------------------------------------
    # 2. Services
    # ------------------------------------------------------------------
    auth_service = AuthService(
        db=db,
        context=auth_context,
        role_resolver=role_resolver or EmailSubstringRoleResolver(),
        config=config,
        logger=get_logger("medisync.auth"),
    )
    doctor_service = DoctorService(doctor_repo=doctor_repo, logger=logger, db=db)
    appointment_service = AppointmentService(
        appointment_repo=appointment_repo,
        doctor_repo=doctor_repo,
        time_slots=config.APPOINTMENT_TIME_SLOTS,
        logger=logger,
        db=db,
    )

    return ServiceContainer(
        auth_service=auth_service,
        appointment_service=appointment_service,
        doctor_service=doctor_service,
        appointment_repository=appointment_repo,
        local_storage=local_storage,
    )
