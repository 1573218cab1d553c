"""MediSync portal core: role-based sessions, appointments and the doctor directory."""

__version__ = "0.1.0"
