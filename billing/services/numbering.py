import logging
import secrets
import time

from django.conf import settings
from django.db.models import F

from ..models import Company
from ..validation.errors import NotFoundError

logger = logging.getLogger(__name__)

DEFAULT_PATTERN = "X{seq:04d}"


def format_document_number(sequence: int, pattern: str = DEFAULT_PATTERN) -> str:
    """Render ``sequence`` through ``pattern``; ``{seq:04d}`` pads to at least 4 digits."""
    if sequence < 0:
        raise ValueError(f"Document sequence must be non-negative, got {sequence}")
    return pattern.format(seq=sequence)


def generate_draft_number(prefix: str = None) -> str:
    prefix = prefix or settings.BILLING_DRAFT_NUMBER_PREFIX
    return f"{prefix}-{int(time.time() * 1000)}-{secrets.token_hex(3).upper()}"


def next_sequence_value(company_id: int, field_name: str) -> int:
    """
    Atomically bump a company counter and return the new value.

    Must run inside the caller's transaction: the UPDATE holds the row lock
    until commit, so concurrent finalizations serialize on the counter.
    """
    updated = Company.objects.alive().filter(pk=company_id).update(**{field_name: F(field_name) + 1})
    if not updated:
        raise NotFoundError.for_resource("Company", company_id)
    value = Company.objects.filter(pk=company_id).values_list(field_name, flat=True).get()
    logger.info(f"Company {company_id} {field_name} advanced to {value}")
    return value
