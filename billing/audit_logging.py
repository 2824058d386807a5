"""Structured JSON logging for the billing audit trail."""

import json
import logging
from typing import Any, Dict, Optional

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from quoteflow.logging_filters import get_current_request_id


class StructuredLogger:
    """Emits one JSON document per log call."""

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)

    def _build_log(self, level: str, message: str, **context: Any) -> Dict:
        return {
            "timestamp": timezone.now().isoformat(),
            "level": level,
            "message": message,
            "service": "quoteflow",
            "environment": "production" if settings.DEBUG is False else "development",
            "request_id": get_current_request_id(),
            **context
        }

    def _emit(self, level: int, entry: Dict) -> None:
        self.logger.log(level, json.dumps(entry, default=str))

    def info(self, message: str, **context: Any) -> None:
        self._emit(logging.INFO, self._build_log("INFO", message, **context))

    def warning(self, message: str, **context: Any) -> None:
        self._emit(logging.WARNING, self._build_log("WARNING", message, **context))

    def error(self, message: str, exception: Optional[Exception] = None, **context: Any) -> None:
        log_entry = self._build_log("ERROR", message, **context)
        if exception:
            log_entry["exception"] = {
                "type": type(exception).__name__,
                "message": str(exception),
            }
        self._emit(logging.ERROR, log_entry)

    def audit(self, action: str, resource: str, resource_id: Any = None, company_id: Any = None, **details: Any) -> None:
        """
        Record a state change on a billing resource.

        The entry is built immediately, so it carries the current request id,
        and emitted once the surrounding transaction commits. A rolled-back
        change leaves no audit entry.
        """
        log_entry = self._build_log("AUDIT", action,
            resource=resource,
            resource_id=resource_id,
            company_id=company_id,
            **details
        )
        transaction.on_commit(lambda: self._emit(logging.INFO, log_entry))


audit_logger = StructuredLogger("billing.audit")
