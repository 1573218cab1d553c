"""
Repository Layer Package.

Data-access abstractions over the local appointment store and the doctor
directory (Supabase with a SQLite mirror).  Services never touch
``db.supabase``, ``db.sqlite`` or local storage keys directly.

Usage:
    from medisync.repositories.appointment_repository import AppointmentRepository
    from medisync.repositories.doctor_repository import DoctorRepository
"""

from medisync.repositories.appointment_repository import AppointmentRepository
from medisync.repositories.appointment_store import AppointmentStore
from medisync.repositories.base_repository import BaseRepository
from medisync.repositories.doctor_repository import DoctorRepository

__all__ = [
    "AppointmentRepository",
    "AppointmentStore",
    "BaseRepository",
    "DoctorRepository",
]
