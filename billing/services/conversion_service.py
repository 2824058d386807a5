import logging
from dataclasses import dataclass
from typing import Any, Dict, List

from django.db import transaction

from ..audit_logging import audit_logger
from ..models import ConversionLog, Invoice, InvoiceItem
from ..validation.errors import ErrorCode, FieldError, NotFoundError, ValidationError
from ..validation.schemas import ConversionSchema
from .document_service import InvoiceService, QuoteService

logger = logging.getLogger(__name__)


@dataclass
class ConversionResult:
    invoice: Invoice
    duplicated_items_count: int
    total_source_items_count: int
    conversion_log: ConversionLog


class ConversionService:
    @classmethod
    @transaction.atomic
    def convert_quote_to_invoice(cls, company_id, quote_id, data: Dict[str, Any]) -> ConversionResult:
        """
        Create a draft invoice from a quote and copy the chosen items onto it.

        ``data`` takes ``issue_date`` and optionally ``due_date``, ``notes``,
        ``payment_method``, ``payment_terms`` and ``selected_item_ids``
        (empty or missing means every item).
        """
        quote = QuoteService.get(quote_id, company_id)
        source_items = list(quote.items.all())
        if not source_items:
            raise ValidationError(
                "This quote has no line items to convert.",
                fields=[FieldError(field="items", code=ErrorCode.ITEMS_REQUIRED.value, message="Items required.")],
            )

        ConversionSchema.raise_if_invalid(data)

        selected_ids = data.get("selected_item_ids") or []
        if selected_ids:
            wanted = {str(item_id) for item_id in selected_ids}
            items = [item for item in source_items if str(item.pk) in wanted]
        else:
            items = source_items
        if not items:
            raise ValidationError(
                "None of the selected items belong to this quote.",
                fields=[FieldError(
                    field="selected_item_ids",
                    code=ErrorCode.FIELD_INVALID.value,
                    message="Select at least one item from this quote.",
                )],
                selected_item_ids=list(selected_ids),
            )

        invoice_data = {name: data[name] for name in ConversionSchema.FIELDS if name in data}
        invoice_data.setdefault("notes", quote.notes)
        invoice_data.update(client_id=quote.client_id, quote_id=quote.pk)
        invoice = InvoiceService.create(company_id, invoice_data)

        # Financial fields are copied as stored; the source items already passed validation.
        InvoiceItem.objects.bulk_create([
            InvoiceItem(invoice=invoice, sort_order=position, **item.copy_values())
            for position, item in enumerate(items)
        ])

        conversion_log = ConversionLog.objects.create(
            company_id=quote.company_id,
            quote=quote,
            invoice=invoice,
            selected_item_ids=[item.pk for item in items] if selected_ids else [],
            duplicated_items_count=len(items),
            total_items_count=len(source_items),
            issue_date=invoice.issue_date,
            due_date=invoice.due_date,
        )

        audit_logger.audit(
            "quote_converted",
            resource="Quote",
            resource_id=quote.pk,
            company_id=quote.company_id,
            invoice_id=invoice.pk,
            duplicated_items=len(items),
            total_items=len(source_items),
        )
        logger.info(f"Quote {quote.pk} converted to invoice {invoice.pk} ({len(items)}/{len(source_items)} items)")

        return ConversionResult(
            invoice=InvoiceService.get(invoice.pk, company_id),
            duplicated_items_count=len(items),
            total_source_items_count=len(source_items),
            conversion_log=conversion_log,
        )

    @staticmethod
    def history_for_invoice(invoice_id, company_id) -> ConversionLog:
        log = (
            ConversionLog.objects.select_related("quote", "invoice")
            .filter(invoice_id=invoice_id, company_id=company_id)
            .first()
        )
        if log is None:
            raise NotFoundError(
                f"Invoice {invoice_id} was not created from a quote",
                resource="ConversionLog",
                invoice_id=invoice_id,
            )
        return log

    @staticmethod
    def history_for_quote(quote_id, company_id) -> List[ConversionLog]:
        QuoteService.get(quote_id, company_id)
        return list(
            ConversionLog.objects.select_related("invoice")
            .filter(quote_id=quote_id, company_id=company_id)
            .order_by("-converted_at", "-id")
        )
