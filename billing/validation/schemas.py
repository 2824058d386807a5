"""
Domain-Specific Validation Schemas

Centralized validation rules for quotes, invoices and their line items.
The services are authoritative; preview clients mirror these constraints.

Each schema provides:
- Field constraints (min/max length, range, type, required)
- Business rules (cross-field invariants)
- ``clean`` to coerce accepted input into model-ready values
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from ..models import Invoice, TaxCategory
from ..utils import to_date, to_decimal
from .errors import FieldError, ValidationError, ErrorCode

DECIMAL = "decimal"
INTEGER = "integer"
DATE = "date"
TEXT = "text"

ZERO_RATE_CATEGORIES = (TaxCategory.EXEMPT, TaxCategory.NON_TAX)


@dataclass
class FieldConstraints:
    required: bool = True
    value_type: str = TEXT
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    min_value: Optional[Decimal] = None
    max_value: Optional[Decimal] = None
    min_exclusive: bool = False
    decimal_places: Optional[int] = None
    choices: Optional[List[str]] = None


class BaseSchema:
    FIELDS: Dict[str, FieldConstraints] = {}

    @classmethod
    def validate(cls, data: Dict[str, Any], partial: bool = False) -> Tuple[bool, List[FieldError]]:
        errors = []

        for field_name, constraints in cls.FIELDS.items():
            if partial and field_name not in data:
                continue
            value = data.get(field_name)
            field_errors = cls._validate_field(field_name, value, constraints)
            errors.extend(field_errors)

        # Cross-field rules only make sense once every field parsed.
        if not errors:
            errors.extend(cls.validate_business_rules(data))

        return len(errors) == 0, errors

    @classmethod
    def _validate_field(
        cls,
        field_name: str,
        value: Any,
        constraints: FieldConstraints,
    ) -> List[FieldError]:
        errors = []

        if isinstance(value, str):
            value = value.strip()

        if constraints.required and (value is None or value == ""):
            errors.append(FieldError(
                field=field_name,
                code=ErrorCode.FIELD_REQUIRED.value,
                message=f"{cls._humanize(field_name)} is required.",
            ))
            return errors

        if value is None or value == "":
            return errors

        if constraints.value_type == TEXT and isinstance(value, str):
            if constraints.min_length and len(value) < constraints.min_length:
                errors.append(FieldError(
                    field=field_name,
                    code=ErrorCode.FIELD_TOO_SHORT.value,
                    message=f"{cls._humanize(field_name)} must be at least {constraints.min_length} characters.",
                ))

            if constraints.max_length and len(value) > constraints.max_length:
                errors.append(FieldError(
                    field=field_name,
                    code=ErrorCode.FIELD_TOO_LONG.value,
                    message=f"{cls._humanize(field_name)} must be at most {constraints.max_length} characters.",
                ))

        if constraints.value_type == DATE and to_date(value) is None:
            errors.append(FieldError(
                field=field_name,
                code=ErrorCode.FIELD_INVALID.value,
                message=f"{cls._humanize(field_name)} must be a valid date (YYYY-MM-DD).",
            ))

        if constraints.value_type in (DECIMAL, INTEGER):
            decimal_value = to_decimal(value)
            if decimal_value is None or (
                constraints.value_type == INTEGER and decimal_value != decimal_value.to_integral_value()
            ):
                kind = "whole number" if constraints.value_type == INTEGER else "number"
                errors.append(FieldError(
                    field=field_name,
                    code=ErrorCode.FIELD_INVALID.value,
                    message=f"{cls._humanize(field_name)} must be a valid {kind}.",
                ))
                return errors

            # Values must fit the scale of the column they are stored in.
            places = constraints.decimal_places
            if places is not None and -decimal_value.normalize().as_tuple().exponent > places:
                errors.append(FieldError(
                    field=field_name,
                    code=ErrorCode.FIELD_INVALID.value,
                    message=f"{cls._humanize(field_name)} can have at most {places} decimal places.",
                ))
                return errors

            if constraints.min_value is not None:
                too_small = (
                    decimal_value <= constraints.min_value
                    if constraints.min_exclusive
                    else decimal_value < constraints.min_value
                )
                if too_small:
                    bound = "greater than" if constraints.min_exclusive else "at least"
                    errors.append(FieldError(
                        field=field_name,
                        code=ErrorCode.FIELD_OUT_OF_RANGE.value,
                        message=f"{cls._humanize(field_name)} must be {bound} {constraints.min_value}.",
                    ))

            if constraints.max_value is not None and decimal_value > constraints.max_value:
                errors.append(FieldError(
                    field=field_name,
                    code=ErrorCode.FIELD_OUT_OF_RANGE.value,
                    message=f"{cls._humanize(field_name)} must be at most {constraints.max_value}.",
                ))

        if constraints.choices and value not in constraints.choices:
            errors.append(FieldError(
                field=field_name,
                code=ErrorCode.FIELD_INVALID.value,
                message=f"{cls._humanize(field_name)} must be one of: {', '.join(constraints.choices)}.",
            ))

        return errors

    @classmethod
    def validate_business_rules(cls, data: Dict[str, Any]) -> List[FieldError]:
        return []

    @staticmethod
    def _humanize(field_name: str) -> str:
        return field_name.replace("_", " ").capitalize()

    @classmethod
    def raise_if_invalid(cls, data: Dict[str, Any], partial: bool = False, **context: Any) -> None:
        is_valid, errors = cls.validate(data, partial=partial)
        if not is_valid:
            raise ValidationError(errors[0].message, fields=errors, **context)

    @classmethod
    def clean(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        """Coerce the known fields present in ``data`` into model values."""
        cleaned = {}
        for field_name, constraints in cls.FIELDS.items():
            if field_name not in data:
                continue
            value = data[field_name]
            if isinstance(value, str):
                value = value.strip()
            if value == "" and constraints.value_type != TEXT:
                value = None
            if value is None:
                cleaned[field_name] = "" if constraints.value_type == TEXT else None
            elif constraints.value_type == DECIMAL:
                cleaned[field_name] = to_decimal(value)
            elif constraints.value_type == INTEGER:
                cleaned[field_name] = int(to_decimal(value))
            elif constraints.value_type == DATE:
                cleaned[field_name] = to_date(value)
            else:
                cleaned[field_name] = value
        return cleaned


class LineItemSchema(BaseSchema):
    FIELDS = {
        "description": FieldConstraints(
            required=True,
            min_length=1,
            max_length=500,
        ),
        "quantity": FieldConstraints(
            required=True,
            value_type=DECIMAL,
            min_value=Decimal("0"),
            min_exclusive=True,
            max_value=Decimal("99999999999.9999"),
            decimal_places=4,
        ),
        "unit_price": FieldConstraints(
            required=True,
            value_type=DECIMAL,
            min_value=Decimal("0"),
            max_value=Decimal("9999999999999.99"),
            decimal_places=2,
        ),
        "discount_amount": FieldConstraints(
            required=False,
            value_type=DECIMAL,
            min_value=Decimal("0"),
            max_value=Decimal("9999999999999.99"),
            decimal_places=2,
        ),
        "tax_category": FieldConstraints(
            required=False,
            choices=list(TaxCategory.values),
        ),
        "tax_rate": FieldConstraints(
            required=False,
            value_type=DECIMAL,
            min_value=Decimal("0"),
            max_value=Decimal("100"),
            decimal_places=2,
        ),
        "unit": FieldConstraints(
            required=False,
            max_length=50,
        ),
        "sku": FieldConstraints(
            required=False,
            max_length=100,
        ),
        "sort_order": FieldConstraints(
            required=False,
            value_type=INTEGER,
            min_value=Decimal("0"),
        ),
    }

    @classmethod
    def validate_business_rules(cls, data: Dict[str, Any]) -> List[FieldError]:
        errors = []

        quantity = to_decimal(data.get("quantity"))
        unit_price = to_decimal(data.get("unit_price"))
        discount = to_decimal(data.get("discount_amount")) or Decimal("0")
        if quantity is not None and unit_price is not None and discount > quantity * unit_price:
            errors.append(FieldError(
                field="discount_amount",
                code=ErrorCode.BUSINESS_RULE_VIOLATION.value,
                message="Discount cannot exceed the line amount (unit price × quantity).",
            ))

        category = data.get("tax_category") or TaxCategory.STANDARD
        tax_rate = to_decimal(data.get("tax_rate"))
        if category in ZERO_RATE_CATEGORIES and tax_rate is not None and tax_rate != 0:
            errors.append(FieldError(
                field="tax_rate",
                code=ErrorCode.BUSINESS_RULE_VIOLATION.value,
                message=f"Tax rate must be empty or 0 for {TaxCategory(category).label.lower()} items.",
            ))

        return errors

    @classmethod
    def invariant_errors(cls, values: Dict[str, Any]) -> List[FieldError]:
        """Check the persisted-item invariants on a full set of effective values."""
        errors = []

        quantity = to_decimal(values.get("quantity"))
        if quantity is None or quantity <= 0:
            errors.append(FieldError(
                field="quantity",
                code=ErrorCode.FIELD_OUT_OF_RANGE.value,
                message="Quantity must be greater than 0.",
            ))

        unit_price = to_decimal(values.get("unit_price"))
        if unit_price is None or unit_price < 0:
            errors.append(FieldError(
                field="unit_price",
                code=ErrorCode.FIELD_OUT_OF_RANGE.value,
                message="Unit price cannot be negative.",
            ))

        discount = values.get("discount_amount")
        if discount not in (None, "") and (to_decimal(discount) is None or to_decimal(discount) < 0):
            errors.append(FieldError(
                field="discount_amount",
                code=ErrorCode.FIELD_OUT_OF_RANGE.value,
                message="Discount cannot be negative.",
            ))

        if not str(values.get("description") or "").strip():
            errors.append(FieldError(
                field="description",
                code=ErrorCode.FIELD_REQUIRED.value,
                message="Description is required.",
            ))

        if not errors:
            errors.extend(cls.validate_business_rules(values))
        return errors

    @classmethod
    def raise_for_invariants(cls, values: Dict[str, Any], **context: Any) -> None:
        errors = cls.invariant_errors(values)
        if errors:
            raise ValidationError(errors[0].message, fields=errors, **context)


class DocumentSchema(BaseSchema):
    """Shared rules for quotes and invoices."""

    SECONDARY_DATE_FIELD = ""
    SECONDARY_DATE_MESSAGE = ""

    @classmethod
    def validate_business_rules(cls, data: Dict[str, Any]) -> List[FieldError]:
        errors = []

        issue_date = to_date(data.get("issue_date"))
        secondary = to_date(data.get(cls.SECONDARY_DATE_FIELD))
        if issue_date and secondary and secondary < issue_date:
            errors.append(FieldError(
                field=cls.SECONDARY_DATE_FIELD,
                code=ErrorCode.BUSINESS_RULE_VIOLATION.value,
                message=cls.SECONDARY_DATE_MESSAGE,
            ))

        return errors


class QuoteSchema(DocumentSchema):
    SECONDARY_DATE_FIELD = "expiry_date"
    SECONDARY_DATE_MESSAGE = "Expiry date must be on or after the issue date."

    FIELDS = {
        "client_id": FieldConstraints(
            required=True,
            value_type=INTEGER,
            min_value=Decimal("1"),
        ),
        "issue_date": FieldConstraints(
            required=True,
            value_type=DATE,
        ),
        "expiry_date": FieldConstraints(
            required=False,
            value_type=DATE,
        ),
        "notes": FieldConstraints(
            required=False,
            max_length=5000,
        ),
    }


class InvoiceSchema(DocumentSchema):
    SECONDARY_DATE_FIELD = "due_date"
    SECONDARY_DATE_MESSAGE = "Due date must be on or after the issue date."

    FIELDS = {
        "client_id": FieldConstraints(
            required=True,
            value_type=INTEGER,
            min_value=Decimal("1"),
        ),
        "quote_id": FieldConstraints(
            required=False,
            value_type=INTEGER,
            min_value=Decimal("1"),
        ),
        "issue_date": FieldConstraints(
            required=True,
            value_type=DATE,
        ),
        "due_date": FieldConstraints(
            required=False,
            value_type=DATE,
        ),
        "payment_method": FieldConstraints(
            required=False,
            choices=list(Invoice.PaymentMethod.values),
        ),
        "payment_terms": FieldConstraints(
            required=False,
            max_length=200,
        ),
        "notes": FieldConstraints(
            required=False,
            max_length=5000,
        ),
    }


class ConversionSchema(DocumentSchema):
    SECONDARY_DATE_FIELD = "due_date"
    SECONDARY_DATE_MESSAGE = "Due date must be on or after the issue date."

    FIELDS = {
        "issue_date": FieldConstraints(
            required=True,
            value_type=DATE,
        ),
        "due_date": FieldConstraints(
            required=False,
            value_type=DATE,
        ),
        "notes": FieldConstraints(
            required=False,
            max_length=5000,
        ),
        "payment_method": FieldConstraints(
            required=False,
            choices=list(Invoice.PaymentMethod.values),
        ),
        "payment_terms": FieldConstraints(
            required=False,
            max_length=200,
        ),
    }
