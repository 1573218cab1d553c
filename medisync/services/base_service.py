"""Common base for the portal services: a logger and the failure envelope."""

from __future__ import annotations

from medisync.logger import StructuredLogger
from medisync.models.service_models import ServiceResult


class BaseService:
    def __init__(self, logger: StructuredLogger) -> None:
        self._logger: StructuredLogger = logger

    @staticmethod
    def _fail(error: str, status_code: int) -> ServiceResult:
        """Unsuccessful ``ServiceResult`` carrying *error* and *status_code*."""
        return ServiceResult(success=False, error=error, status_code=status_code)
