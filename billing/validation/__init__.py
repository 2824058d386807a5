"""
Centralized Validation Module

Domain schemas and the error taxonomy raised by the billing services.

Domains:
- Quote / Invoice: document creation and updates
- LineItem: item fields and persisted-item invariants
- Conversion: quote to invoice conversion input
"""

from .schemas import (
    QuoteSchema,
    InvoiceSchema,
    LineItemSchema,
    ConversionSchema,
)
from .errors import (
    BillingError,
    ConflictError,
    ErrorCode,
    FieldError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)

__all__ = [
    "QuoteSchema",
    "InvoiceSchema",
    "LineItemSchema",
    "ConversionSchema",
    "BillingError",
    "ConflictError",
    "ErrorCode",
    "FieldError",
    "InvalidTransitionError",
    "NotFoundError",
    "ValidationError",
]
