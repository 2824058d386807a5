import logging
from datetime import timedelta, timezone as dt_timezone
from decimal import Decimal
from typing import Any, Dict, Optional

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from ..audit_logging import audit_logger
from ..models import Client, Company, Invoice, InvoiceItem, Quote, QuoteItem
from ..utils import to_date
from ..validation.errors import (
    ConflictError,
    ErrorCode,
    FieldError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from ..validation.schemas import InvoiceSchema, LineItemSchema, QuoteSchema
from .numbering import format_document_number, generate_draft_number, next_sequence_value
from .tax_service import TaxSettings, TotalsResult, compute_totals
from .transitions import INVOICE_TRANSITIONS, QUOTE_TRANSITIONS

logger = logging.getLogger(__name__)


def tax_quantum() -> Decimal:
    return Decimal(str(settings.BILLING_TAX_QUANTUM))


def next_lock_token(previous=None):
    """A new ``updated_at`` value, strictly later than ``previous``."""
    now = timezone.now()
    if previous is not None and now <= previous:
        return previous + timedelta(microseconds=1)
    return now


def parse_lock_token(value, **context):
    token = value
    if isinstance(value, str):
        token = parse_datetime(value.strip())
    if token is None or not hasattr(token, "tzinfo"):
        raise ValidationError(
            "The last-modified timestamp (updated_at) is required to save changes.",
            fields=[FieldError(
                field="updated_at",
                code=ErrorCode.FIELD_REQUIRED.value,
                message="Updated at is required.",
            )],
            **context,
        )
    if timezone.is_naive(token):
        token = timezone.make_aware(token, dt_timezone.utc)
    return token


def get_company(company_id) -> Company:
    company = Company.objects.alive().filter(pk=company_id).first()
    if company is None:
        raise NotFoundError.for_resource("Company", company_id)
    return company


def get_client(company_id, client_id) -> Client:
    client = Client.objects.alive().filter(pk=client_id, company_id=company_id).first()
    if client is None:
        raise NotFoundError.for_resource("Client", client_id)
    return client


class DocumentLifecycleService:
    """
    Create, update, transition and soft-delete for one document type.

    Subclasses bind the model, its item model, the validation schema and
    the transition table; the lifecycle itself is shared.
    """

    model = None
    item_model = None
    item_parent_field = ""
    schema = None
    policy = None
    resource_name = ""
    number_field = ""
    sequence_field = ""
    format_field = ""
    secondary_date_field = ""
    UPDATABLE_FIELDS = ()

    @classmethod
    def alive(cls, company_id):
        return cls.model.objects.alive().filter(company_id=company_id)

    @classmethod
    def get(cls, document_id, company_id):
        document = (
            cls.alive(company_id)
            .select_related("client", "company")
            .prefetch_related("items")
            .filter(pk=document_id)
            .first()
        )
        if document is None:
            raise NotFoundError.for_resource(cls.resource_name, document_id)
        return document

    @classmethod
    def _resolve_relations(cls, company: Company, values: Dict[str, Any]) -> Dict[str, Any]:
        return {}

    @classmethod
    @transaction.atomic
    def create(cls, company_id, data: Dict[str, Any]):
        company = get_company(company_id)
        cls.schema.raise_if_invalid(data)
        values = cls.schema.clean(data)
        client = get_client(company.pk, values.pop("client_id"))
        values.update(cls._resolve_relations(company, values))

        document = cls.model.objects.create(
            company=company,
            client=client,
            status=cls.model.Status.DRAFT,
            **{cls.number_field: generate_draft_number()},
            **values,
        )

        audit_logger.audit(
            "document_created",
            resource=cls.resource_name,
            resource_id=document.pk,
            company_id=company.pk,
            number=getattr(document, cls.number_field),
        )
        logger.info(f"{cls.resource_name} {document.pk} created for company {company.pk}")
        return document

    @classmethod
    @transaction.atomic
    def update(cls, document_id, company_id, data: Dict[str, Any]):
        """Patch a document; ``data["updated_at"]`` must match the stored token."""
        expected = parse_lock_token(data.get("updated_at"))

        disallowed = sorted(set(data) - set(cls.UPDATABLE_FIELDS) - {"updated_at"})
        if disallowed:
            raise ValidationError(
                f"These fields cannot be changed here: {', '.join(disallowed)}. "
                "Use a status transition to change status or number.",
                fields=[
                    FieldError(field=name, code=ErrorCode.FIELD_NOT_ALLOWED.value, message="Field cannot be updated.")
                    for name in disallowed
                ],
            )

        document = cls.get(document_id, company_id)
        patch = {name: data[name] for name in cls.UPDATABLE_FIELDS if name in data}
        cls.schema.raise_if_invalid(patch, partial=True)
        values = cls.schema.clean(patch)

        effective = {
            "issue_date": values.get("issue_date", document.issue_date),
            cls.secondary_date_field: values.get(
                cls.secondary_date_field, getattr(document, cls.secondary_date_field)
            ),
        }
        date_errors = cls.schema.validate_business_rules(effective)
        if date_errors:
            raise ValidationError(date_errors[0].message, fields=date_errors)

        if "client_id" in values:
            values["client_id"] = get_client(company_id, values["client_id"]).pk

        updated = cls.alive(company_id).filter(pk=document_id, updated_at=expected).update(
            updated_at=next_lock_token(expected),
            **values,
        )
        if not updated:
            audit_logger.warning(
                "optimistic lock conflict",
                resource=cls.resource_name,
                resource_id=document_id,
                company_id=company_id,
            )
            raise ConflictError(resource=cls.resource_name, resource_id=document_id)

        logger.info(f"{cls.resource_name} {document_id} updated ({', '.join(sorted(values)) or 'no fields'})")
        return cls.get(document_id, company_id)

    @classmethod
    def _transition_changes(cls, document, new_status: str, payment_date) -> Dict[str, Any]:
        return {}

    @classmethod
    @transaction.atomic
    def transition_status(cls, document_id, company_id, new_status: str, payment_date=None):
        document = cls.alive(company_id).select_for_update().filter(pk=document_id).first()
        if document is None:
            raise NotFoundError.for_resource(cls.resource_name, document_id)

        current = document.status
        if not cls.policy.is_valid(current, new_status):
            raise InvalidTransitionError(current, new_status, cls.policy.allowed_targets(current))

        if cls.policy.requires_items(current, new_status):
            items = list(document.items.all())
            if not items:
                raise ValidationError(
                    "At least one line item is required before this status change.",
                    fields=[FieldError(
                        field="items",
                        code=ErrorCode.ITEMS_REQUIRED.value,
                        message="Items required.",
                    )],
                )
            for row, item in enumerate(items, start=1):
                errors = LineItemSchema.invariant_errors(item.copy_values())
                if errors:
                    for error in errors:
                        error.field = f"items.{row}.{error.field}"
                    raise ValidationError(
                        f"Line {row}: {errors[0].message}",
                        fields=errors,
                        row=row,
                        item_id=item.pk,
                    )

        paid_on = None
        if cls.policy.requires_payment_date(current, new_status):
            paid_on = to_date(payment_date)
            if paid_on is None:
                raise ValidationError(
                    "A payment date is required to record this payment.",
                    fields=[FieldError(
                        field="payment_date",
                        code=ErrorCode.PAYMENT_DATE_REQUIRED.value,
                        message="Payment date is required.",
                    )],
                )

        changes = {
            "status": new_status,
            "updated_at": next_lock_token(document.updated_at),
            **cls._transition_changes(document, new_status, paid_on),
        }

        if cls.policy.requires_number_generation(current, new_status):
            sequence = next_sequence_value(company_id, cls.sequence_field)
            pattern = Company.objects.filter(pk=company_id).values_list(cls.format_field, flat=True).get()
            changes[cls.number_field] = format_document_number(sequence, pattern)

        try:
            cls.model.objects.filter(pk=document.pk).update(**changes)
        except IntegrityError as exc:
            raise ConflictError(
                f"Document number {changes.get(cls.number_field)} is already in use.",
                resource=cls.resource_name,
                resource_id=document_id,
            ) from exc

        audit_logger.audit(
            "status_changed",
            resource=cls.resource_name,
            resource_id=document.pk,
            company_id=company_id,
            from_status=current,
            to_status=new_status,
            number=changes.get(cls.number_field),
        )
        logger.info(f"{cls.resource_name} {document.pk} transitioned from {current} to {new_status}")
        return cls.get(document_id, company_id)

    @classmethod
    @transaction.atomic
    def delete(cls, document_id, company_id) -> None:
        deleted = cls.alive(company_id).filter(pk=document_id).update(deleted_at=timezone.now())
        if not deleted:
            raise NotFoundError.for_resource(cls.resource_name, document_id)

        audit_logger.audit("document_deleted", resource=cls.resource_name, resource_id=document_id, company_id=company_id)
        logger.info(f"{cls.resource_name} {document_id} soft-deleted")

    @classmethod
    def _duplicate_data(cls, source) -> Dict[str, Any]:
        today = timezone.localdate()
        secondary = getattr(source, cls.secondary_date_field)
        if secondary is not None:
            # Keep the same validity window relative to the new issue date.
            secondary = today + (secondary - source.issue_date)
        return {
            "client_id": source.client_id,
            "issue_date": today,
            cls.secondary_date_field: secondary,
            "notes": source.notes,
        }

    @classmethod
    @transaction.atomic
    def duplicate(cls, document_id, company_id):
        source = cls.get(document_id, company_id)
        copy = cls.create(company_id, cls._duplicate_data(source))

        cls.item_model.objects.bulk_create([
            cls.item_model(**{cls.item_parent_field: copy}, sort_order=position, **item.copy_values())
            for position, item in enumerate(source.items.all())
        ])

        logger.info(f"{cls.resource_name} {source.pk} duplicated to {copy.pk}")
        return cls.get(copy.pk, company_id)

    @classmethod
    def calculate_totals(cls, document_id, company_id) -> TotalsResult:
        document = cls.get(document_id, company_id)
        return compute_totals(document.items.all(), TaxSettings.from_company(document.company), tax_quantum())


class QuoteService(DocumentLifecycleService):
    model = Quote
    item_model = QuoteItem
    item_parent_field = "quote"
    schema = QuoteSchema
    policy = QUOTE_TRANSITIONS
    resource_name = "Quote"
    number_field = "quote_number"
    sequence_field = "quote_number_seq"
    format_field = "quote_number_format"
    secondary_date_field = "expiry_date"
    UPDATABLE_FIELDS = ("client_id", "issue_date", "expiry_date", "notes")


class InvoiceService(DocumentLifecycleService):
    model = Invoice
    item_model = InvoiceItem
    item_parent_field = "invoice"
    schema = InvoiceSchema
    policy = INVOICE_TRANSITIONS
    resource_name = "Invoice"
    number_field = "invoice_number"
    sequence_field = "invoice_number_seq"
    format_field = "invoice_number_format"
    secondary_date_field = "due_date"
    UPDATABLE_FIELDS = ("client_id", "issue_date", "due_date", "payment_method", "payment_terms", "notes")

    @classmethod
    def _resolve_relations(cls, company: Company, values: Dict[str, Any]) -> Dict[str, Any]:
        quote_id = values.pop("quote_id", None)
        if quote_id is None:
            return {}
        quote = Quote.objects.alive().filter(pk=quote_id, company=company).first()
        if quote is None:
            raise NotFoundError.for_resource("Quote", quote_id)
        return {"quote": quote}

    @classmethod
    def _transition_changes(cls, document, new_status: str, payment_date) -> Dict[str, Any]:
        return {"payment_date": payment_date if new_status == Invoice.Status.PAID else None}

    @classmethod
    def _duplicate_data(cls, source) -> Dict[str, Any]:
        data = super()._duplicate_data(source)
        data.update(payment_method=source.payment_method, payment_terms=source.payment_terms)
        return data

    @classmethod
    def overdue_candidates(cls, company_id=None, today=None):
        today = today or timezone.localdate()
        queryset = Invoice.objects.alive().filter(
            status=Invoice.Status.SENT,
            due_date__lt=today,
            payment_date__isnull=True,
        )
        if company_id:
            queryset = queryset.filter(company_id=company_id)
        return queryset.order_by("due_date", "id")

    @classmethod
    def mark_overdue(cls, company_id=None, today: Optional[Any] = None) -> int:
        """Flip sent, unpaid, past-due invoices to overdue; returns how many changed."""
        count = 0
        for invoice in cls.overdue_candidates(company_id, today).only("id", "company_id", "updated_at"):
            # Rows edited since the scan keep their state; the next sweep retries them.
            updated = Invoice.objects.filter(
                pk=invoice.pk,
                status=Invoice.Status.SENT,
                updated_at=invoice.updated_at,
            ).update(status=Invoice.Status.OVERDUE, updated_at=next_lock_token(invoice.updated_at))
            if updated:
                audit_logger.audit(
                    "status_changed",
                    resource=cls.resource_name,
                    resource_id=invoice.pk,
                    company_id=invoice.company_id,
                    from_status=Invoice.Status.SENT,
                    to_status=Invoice.Status.OVERDUE,
                    automated=True,
                )
            count += updated

        logger.info(f"Marked {count} invoices as overdue")
        return count
