"""
Tests for ServiceResult and BaseService.
"""

import logging

import pytest

from core.exceptions import (
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    PreconditionError,
)
from core.services import BaseService, ServiceResult


class TestServiceResult:
    def test_success(self):
        result = ServiceResult.success({"id": 1})

        assert result
        assert result.data == {"id": 1}
        assert result.error is None
        assert result.to_response() == {"success": True, "data": {"id": 1}}

    def test_failure_response_shape(self):
        result = ServiceResult.failure(
            "Escrow hold not found",
            error_code="ESCROW_HOLD_NOT_FOUND",
            http_status=404,
            details={"hold_id": "abc"},
        )

        assert not result
        assert result.http_status == 404
        assert result.to_response() == {
            "success": False,
            "error": "Escrow hold not found",
            "error_code": "ESCROW_HOLD_NOT_FOUND",
            "details": {"hold_id": "abc"},
        }

    def test_failure_omits_empty_keys(self):
        assert ServiceResult.failure("Nope").to_response() == {"success": False, "error": "Nope"}

    def test_processor_unavailable_maps_to_503(self):
        result = ServiceResult.failure("Stripe down", error_code="PROCESSOR_UNAVAILABLE", http_status=502)

        assert result.http_status == 503

    def test_from_application_error(self):
        exc = PreconditionError("Work not done", error_code="WORK_NOT_COMPLETED", details={"hold_id": "h1"})

        result = ServiceResult.from_exception(exc)

        assert result.error == "Work not done"
        assert result.error_code == "WORK_NOT_COMPLETED"
        assert result.http_status == 409
        assert result.details == {"hold_id": "h1"}

    def test_from_unexpected_error(self):
        result = ServiceResult.from_exception(KeyError("payment"))

        assert result.error_code == "KEYERROR"
        assert result.http_status == 500

    def test_map(self):
        assert ServiceResult.success(2).map(lambda x: x * 10).data == 20

        failure = ServiceResult.failure("bad")
        assert failure.map(lambda x: x * 10) is failure


class TestBaseService:
    @pytest.mark.parametrize(
        "exc, status",
        [
            (NotFoundError("missing"), 404),
            (ConflictError("clash"), 409),
            (ExternalServiceError("down"), 502),
        ],
    )
    def test_expected_errors_log_warning(self, caplog, exc, status):
        with caplog.at_level(logging.WARNING):
            result = BaseService.handle_exception(exc, "Release")

        assert result.http_status == status
        record = caplog.records[-1]
        assert record.levelno == logging.WARNING
        assert record.getMessage().startswith("Release: ")
        assert record.exc_info is None

    def test_unexpected_errors_log_error_with_traceback(self, caplog):
        try:
            raise RuntimeError("kaboom")
        except RuntimeError as e:
            with caplog.at_level(logging.WARNING):
                result = BaseService.handle_exception(e)

        assert result.http_status == 500
        assert caplog.records[-1].levelno == logging.ERROR
        assert caplog.records[-1].exc_info is not None

    def test_validate_required(self):
        assert BaseService.validate_required(hold_id="h1") is None

        result = BaseService.validate_required(hold_id="", actor=None)

        assert result.error_code == "VALIDATION_ERROR"
        assert set(result.errors) == {"hold_id", "actor"}
