"""
Shared base for services that talk to the card processor.
"""

from __future__ import annotations

from core.services import BaseService, ServiceResult

from payments.adapters import StripeAdapter
from payments.exceptions import ProcessorError


class ProcessorBackedService(BaseService):
    """
    BaseService with an injected processor adapter.

    The processor defaults to StripeAdapter; tests pass a double exposing
    the same methods.
    """

    def __init__(self, processor=None):
        self.processor = processor or StripeAdapter

    @classmethod
    def handle_exception(cls, exc, context="", log_level=None) -> ServiceResult:
        """
        Processor failures are reported to callers as PROCESSOR_UNAVAILABLE
        or PROCESSOR_ERROR; the detailed processor code stays in the logs.
        """
        result = super().handle_exception(exc, context, log_level)
        if isinstance(exc, ProcessorError):
            return ServiceResult.failure(
                exc.message,
                error_code=exc.public_error_code,
                http_status=exc.http_status,
                details={"retryable": exc.is_retryable},
            )
        return result
