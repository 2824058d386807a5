import json
import logging

import pytest
from django.db import transaction

from billing.audit_logging import StructuredLogger
from quoteflow.logging_filters import (
    RequestIDFilter,
    get_current_request_id,
    request_id_scope,
    set_current_request_id,
)


class TestRequestIDFilter:
    def test_filter_tags_record(self):
        record = logging.LogRecord("billing", logging.INFO, __file__, 1, "hello", None, None)
        with request_id_scope("req-123"):
            assert RequestIDFilter().filter(record)
        assert record.request_id == "req-123"

    def test_scope_restores_previous_id(self):
        set_current_request_id("outer")
        with request_id_scope("inner"):
            assert get_current_request_id() == "inner"
        assert get_current_request_id() == "outer"

    def test_scope_generates_id(self):
        with request_id_scope() as request_id:
            assert request_id
            assert get_current_request_id() == request_id


class TestStructuredLogger:
    @pytest.mark.django_db
    def test_audit_entry_is_json(self, caplog, django_capture_on_commit_callbacks):
        logger = StructuredLogger("tests.audit")
        with caplog.at_level(logging.INFO, logger="tests.audit"):
            with django_capture_on_commit_callbacks(execute=True):
                with request_id_scope("req-9"):
                    logger.audit("status_changed", resource="Quote", resource_id=4, company_id=2, to_status="sent")

        entry = json.loads(caplog.records[-1].getMessage())
        assert entry["level"] == "AUDIT"
        assert entry["message"] == "status_changed"
        assert entry["resource"] == "Quote"
        assert entry["resource_id"] == 4
        assert entry["to_status"] == "sent"
        assert entry["request_id"] == "req-9"
        assert entry["service"] == "quoteflow"

    @pytest.mark.django_db
    def test_audit_waits_for_commit(self, caplog, django_capture_on_commit_callbacks):
        logger = StructuredLogger("tests.audit")
        with caplog.at_level(logging.INFO, logger="tests.audit"):
            with django_capture_on_commit_callbacks() as callbacks:
                logger.audit("document_created", resource="Invoice", resource_id=1)
                assert not caplog.records

        assert len(callbacks) == 1

    @pytest.mark.django_db
    def test_rolled_back_audit_is_dropped(self, caplog, django_capture_on_commit_callbacks):
        logger = StructuredLogger("tests.audit")
        with caplog.at_level(logging.INFO, logger="tests.audit"):
            with django_capture_on_commit_callbacks(execute=True) as callbacks:
                with pytest.raises(RuntimeError):
                    with transaction.atomic():
                        logger.audit("document_created", resource="Invoice", resource_id=1)
                        raise RuntimeError("boom")

        assert callbacks == []
        assert not caplog.records

    def test_error_includes_exception(self, caplog):
        logger = StructuredLogger("tests.audit")
        with caplog.at_level(logging.ERROR, logger="tests.audit"):
            logger.error("sweep failed", exception=RuntimeError("boom"))

        entry = json.loads(caplog.records[-1].getMessage())
        assert entry["exception"] == {"type": "RuntimeError", "message": "boom"}
