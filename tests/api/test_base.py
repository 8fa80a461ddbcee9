"""Tests for api/base.py - response envelope."""

from datetime import timezone

from api.base import (
    success_response,
    error_response,
    ErrorCodes,
)


class TestSuccessResponse:
    """Tests for success_response()."""

    def test_structure(self):
        resp = success_response({"number": "INV-0001"})
        assert resp.success is True
        assert resp.data == {"number": "INV-0001"}
        assert resp.error is None

    def test_request_id_generated(self):
        assert success_response({}).meta.request_id

    def test_request_id_passed_through(self):
        assert success_response({}, "req-1").meta.request_id == "req-1"

    def test_timestamp_is_utc(self):
        assert success_response({}).meta.timestamp.tzinfo == timezone.utc


class TestErrorResponse:
    """Tests for error_response()."""

    def test_structure(self):
        resp = error_response(ErrorCodes.NO_BILLABLE_ITEMS, "Nothing to invoice")
        assert resp.success is False
        assert resp.data is None
        assert resp.error.code == "NO_BILLABLE_ITEMS"
        assert resp.error.message == "Nothing to invoice"
        assert resp.error.details is None

    def test_details_included(self):
        resp = error_response(
            ErrorCodes.TIME_ENTRY_OVERLAP, "overlap", {"conflicting_entry_id": 3}
        )
        dumped = resp.model_dump(mode="json")
        assert dumped["error"]["details"] == {"conflicting_entry_id": 3}
