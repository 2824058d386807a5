"""
Billing Services Layer

This module provides the business logic layer following strict separation:
- Models: Pure data + constraints (no business logic)
- Services: Business logic + transactions + audit logging
- Tax engine / transition tables: pure helpers, no I/O

All document and line item mutations should flow through these services.
"""

from .conversion_service import ConversionResult, ConversionService
from .document_service import DocumentLifecycleService, InvoiceService, QuoteService
from .line_item_service import InvoiceItemService, LineItemService, QuoteItemService
from .numbering import format_document_number
from .tax_service import TaxSettings, compute_line, compute_totals, resolve_tax_rate
from .transitions import INVOICE_TRANSITIONS, QUOTE_TRANSITIONS, StatusTransitionPolicy, TransitionRule

__all__ = [
    "ConversionResult",
    "ConversionService",
    "DocumentLifecycleService",
    "InvoiceService",
    "QuoteService",
    "InvoiceItemService",
    "LineItemService",
    "QuoteItemService",
    "format_document_number",
    "TaxSettings",
    "compute_line",
    "compute_totals",
    "resolve_tax_rate",
    "INVOICE_TRANSITIONS",
    "QUOTE_TRANSITIONS",
    "StatusTransitionPolicy",
    "TransitionRule",
]
