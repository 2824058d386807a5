"""
Billing error taxonomy.

Every error raised at the service boundary is a ``BillingError`` and
carries what the presentation layer needs to render it:

- 400: ValidationError (invariant violation, points at field / row)
- 404: NotFoundError (absent or soft-deleted entity)
- 409: ConflictError (stale optimistic-lock token, reload and retry)
- 422: InvalidTransitionError (status change not in the rule table)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from rest_framework import status


class ErrorCode(str, Enum):
    VALIDATION_ERROR = "VALIDATION_ERROR"
    FIELD_REQUIRED = "FIELD_REQUIRED"
    FIELD_INVALID = "FIELD_INVALID"
    FIELD_TOO_SHORT = "FIELD_TOO_SHORT"
    FIELD_TOO_LONG = "FIELD_TOO_LONG"
    FIELD_OUT_OF_RANGE = "FIELD_OUT_OF_RANGE"
    FIELD_NOT_ALLOWED = "FIELD_NOT_ALLOWED"

    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    RESOURCE_CONFLICT = "RESOURCE_CONFLICT"

    BUSINESS_RULE_VIOLATION = "BUSINESS_RULE_VIOLATION"
    INVALID_STATE_TRANSITION = "INVALID_STATE_TRANSITION"
    ITEMS_REQUIRED = "ITEMS_REQUIRED"
    PAYMENT_DATE_REQUIRED = "PAYMENT_DATE_REQUIRED"


@dataclass
class FieldError:
    field: str
    code: str
    message: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "field": self.field,
            "code": self.code,
            "message": self.message,
        }


class BillingError(Exception):
    """Base billing error with rich context."""

    http_status = status.HTTP_400_BAD_REQUEST
    error_code = ErrorCode.VALIDATION_ERROR.value
    message = "An error occurred"

    def __init__(self, message: Optional[str] = None, **context: Any):
        self.message = message or self.message
        self.context = context
        super().__init__(self.message)

    def add_context(self, **context: Any) -> "BillingError":
        """Tag the error with where it happened (batch index, item id)."""
        self.context.update({key: value for key, value in context.items() if value is not None})
        return self

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to an API payload."""
        return {
            "status": "error",
            "code": self.http_status,
            "error_code": self.error_code,
            "message": self.message,
            "context": self.context if self.context else None,
        }


class NotFoundError(BillingError):
    http_status = status.HTTP_404_NOT_FOUND
    error_code = ErrorCode.RESOURCE_NOT_FOUND.value
    message = "Resource not found"

    @classmethod
    def for_resource(cls, resource: str, resource_id: Any) -> "NotFoundError":
        return cls(f"{resource} {resource_id} not found", resource=resource, resource_id=resource_id)


class ValidationError(BillingError):
    """Invariant violation; ``row`` is 1-indexed, ``index`` is the batch position."""

    http_status = status.HTTP_400_BAD_REQUEST
    error_code = ErrorCode.VALIDATION_ERROR.value
    message = "Validation failed. Please check your input."

    def __init__(
        self,
        message: Optional[str] = None,
        fields: Optional[List[FieldError]] = None,
        **context: Any,
    ):
        self.fields = list(fields or [])
        super().__init__(message, **context)

    @property
    def row(self) -> Optional[int]:
        return self.context.get("row")

    @property
    def index(self) -> Optional[int]:
        return self.context.get("index")

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        if self.fields:
            result["fields"] = [f.to_dict() for f in self.fields]
        return result


class ConflictError(BillingError):
    http_status = status.HTTP_409_CONFLICT
    error_code = ErrorCode.RESOURCE_CONFLICT.value
    message = "This record was modified by someone else. Please reload and try again."

    def __init__(self, message: Optional[str] = None, item_ids: Optional[Iterable[Any]] = None, **context: Any):
        if item_ids is not None:
            context["item_ids"] = list(item_ids)
        super().__init__(message, **context)

    @property
    def item_ids(self) -> List[Any]:
        return self.context.get("item_ids", [])


class InvalidTransitionError(ValidationError):
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    error_code = ErrorCode.INVALID_STATE_TRANSITION.value
    message = "Status change not allowed"

    def __init__(self, current_status: str, requested_status: str, allowed: Iterable[str]):
        allowed = sorted(str(value) for value in allowed)
        if allowed:
            message = (
                f"Cannot change status from '{current_status}' to '{requested_status}'. "
                f"Allowed: {', '.join(allowed)}"
            )
        else:
            message = f"Cannot change status from '{current_status}': no further transitions are allowed"
        super().__init__(
            message,
            current_status=current_status,
            requested_status=requested_status,
            allowed=allowed,
        )

    @property
    def allowed(self) -> List[str]:
        return self.context["allowed"]
