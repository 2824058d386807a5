import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List

from django.conf import settings
from django.db import DataError, IntegrityError, transaction
from django.db.models import Max

from ..audit_logging import audit_logger
from ..models import InvoiceItem, QuoteItem, TaxCategory
from ..validation.errors import (
    BillingError,
    ConflictError,
    FieldError,
    NotFoundError,
    ValidationError,
)
from ..validation.schemas import LineItemSchema
from .document_service import InvoiceService, QuoteService, next_lock_token, parse_lock_token

logger = logging.getLogger(__name__)

CREATE = "create"
UPDATE = "update"
DELETE = "delete"
BULK_ACTIONS = (CREATE, UPDATE, DELETE)


@dataclass
class BulkResult:
    created: List[Any] = field(default_factory=list)
    updated: List[Any] = field(default_factory=list)
    deleted: List[Any] = field(default_factory=list)
    items: List[Any] = field(default_factory=list)


@dataclass
class ImportRowError:
    row: int
    message: str
    fields: List[FieldError] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "row": self.row,
            "message": self.message,
            "fields": [f.to_dict() for f in self.fields],
        }


@dataclass
class ImportResult:
    imported: List[Any] = field(default_factory=list)
    errors: List[ImportRowError] = field(default_factory=list)

    @property
    def imported_count(self) -> int:
        return len(self.imported)


class LineItemService:
    """
    Line item mutations for one document type.

    Every mutation locks the parent document row, so concurrent batches on
    the same document serialize. Sort orders are kept dense (0..n-1).
    """

    document_service = None
    model = None
    parent_field = ""

    @classmethod
    def _get_document(cls, document_id, company_id, lock: bool = False):
        queryset = cls.document_service.alive(company_id).filter(pk=document_id)
        if lock:
            queryset = queryset.select_for_update()
        document = queryset.first()
        if document is None:
            raise NotFoundError.for_resource(cls.document_service.resource_name, document_id)
        return document

    @classmethod
    def _items(cls, document):
        return cls.model.objects.filter(**{cls.parent_field: document})

    @classmethod
    def _get_item(cls, document, item_id):
        item = cls._items(document).filter(pk=item_id).first()
        if item is None:
            raise NotFoundError.for_resource("Line item", item_id)
        return item

    @classmethod
    def _next_sort_order(cls, document) -> int:
        current = cls._items(document).aggregate(top=Max("sort_order"))["top"]
        return 0 if current is None else current + 1

    @staticmethod
    def _clean(data: Dict[str, Any], partial: bool = False, **context: Any) -> Dict[str, Any]:
        LineItemSchema.raise_if_invalid(data, partial=partial, **context)
        values = LineItemSchema.clean(data)
        if "discount_amount" in values and values["discount_amount"] is None:
            values["discount_amount"] = Decimal("0")
        if "tax_category" in values and not values["tax_category"]:
            values["tax_category"] = TaxCategory.STANDARD
        if "sort_order" in values and values["sort_order"] is None:
            del values["sort_order"]
        if not partial:
            values.setdefault("discount_amount", Decimal("0"))
            values.setdefault("tax_category", TaxCategory.STANDARD)
        return values

    @classmethod
    def renormalize(cls, document) -> int:
        """Rewrite sort orders to 0..n-1, touching only rows whose position moved."""
        changed = 0
        rows = cls._items(document).order_by("sort_order", "id").only("id", "sort_order", "updated_at")
        for position, item in enumerate(rows):
            if item.sort_order != position:
                cls.model.objects.filter(pk=item.pk).update(
                    sort_order=position,
                    updated_at=next_lock_token(item.updated_at),
                )
                changed += 1
        return changed

    @classmethod
    def list_items(cls, document_id, company_id) -> List[Any]:
        document = cls._get_document(document_id, company_id)
        return list(cls._items(document).order_by("sort_order", "id"))

    # -- single item -------------------------------------------------------

    @classmethod
    def _insert(cls, document, data: Dict[str, Any], **context: Any):
        values = cls._clean(data, **context)
        sort_order = values.pop("sort_order", None)
        if not sort_order:
            sort_order = cls._next_sort_order(document)
        return cls.model.objects.create(**{cls.parent_field: document}, sort_order=sort_order, **values)

    @classmethod
    def _apply_update(cls, document, item_id, data: Dict[str, Any]):
        expected = parse_lock_token(data.get("updated_at"), item_id=item_id)
        item = cls._get_item(document, item_id)
        patch = {name: value for name, value in data.items() if name in LineItemSchema.FIELDS}
        values = cls._clean(patch, partial=True, item_id=item_id)

        # A partial patch is checked against the stored values it leaves in place.
        LineItemSchema.raise_for_invariants({**item.copy_values(), **values}, item_id=item_id)

        updated = cls._items(document).filter(pk=item_id, updated_at=expected).update(
            updated_at=next_lock_token(expected),
            **values,
        )
        if not updated:
            raise ConflictError(item_ids=[item_id])
        return values

    @classmethod
    def _apply_delete(cls, document, item_id) -> None:
        deleted, _ = cls._items(document).filter(pk=item_id).delete()
        if not deleted:
            raise NotFoundError.for_resource("Line item", item_id)

    @classmethod
    @transaction.atomic
    def create(cls, document_id, company_id, data: Dict[str, Any]):
        document = cls._get_document(document_id, company_id, lock=True)
        item = cls._insert(document, data)
        cls.renormalize(document)
        item.refresh_from_db()
        logger.info(f"Line item {item.pk} added to {cls.document_service.resource_name} {document.pk}")
        return item

    @classmethod
    @transaction.atomic
    def update(cls, item_id, document_id, company_id, data: Dict[str, Any]):
        document = cls._get_document(document_id, company_id, lock=True)
        try:
            values = cls._apply_update(document, item_id, data)
        except ConflictError:
            audit_logger.warning(
                "optimistic lock conflict",
                resource="Line item",
                resource_id=item_id,
                company_id=company_id,
            )
            raise
        if "sort_order" in values:
            cls.renormalize(document)
        return cls._get_item(document, item_id)

    @classmethod
    @transaction.atomic
    def delete(cls, item_id, document_id, company_id) -> None:
        document = cls._get_document(document_id, company_id, lock=True)
        cls._apply_delete(document, item_id)
        cls.renormalize(document)
        logger.info(f"Line item {item_id} removed from {cls.document_service.resource_name} {document.pk}")

    # -- batches -----------------------------------------------------------

    @classmethod
    @transaction.atomic
    def bulk_process(cls, document_id, company_id, operations: List[Dict[str, Any]]) -> BulkResult:
        """
        Apply ``{"action", "id", "data"}`` operations in order, all or nothing.

        Errors are tagged with the operation ``index`` and ``item_id``.
        """
        document = cls._get_document(document_id, company_id, lock=True)
        if not operations:
            raise ValidationError("At least one operation is required.")

        result = BulkResult()
        for index, operation in enumerate(operations):
            action = operation.get("action")
            item_id = operation.get("id")
            data = operation.get("data") or {}
            try:
                if action not in BULK_ACTIONS:
                    raise ValidationError(f"Unknown action {action!r}; expected one of: {', '.join(BULK_ACTIONS)}.")
                if action != CREATE and item_id is None:
                    raise ValidationError(f"An item id is required for {action}.")

                if action == CREATE:
                    result.created.append(cls._insert(document, data).pk)
                elif action == UPDATE:
                    cls._apply_update(document, item_id, data)
                    result.updated.append(item_id)
                else:
                    cls._apply_delete(document, item_id)
                    result.deleted.append(item_id)
            except BillingError as exc:
                exc.add_context(index=index, item_id=item_id)
                raise

        cls.renormalize(document)
        result.items = list(cls._items(document).order_by("sort_order", "id"))
        logger.info(
            f"Bulk update on {cls.document_service.resource_name} {document.pk}: "
            f"{len(result.created)} created, {len(result.updated)} updated, {len(result.deleted)} deleted"
        )
        return result

    @classmethod
    @transaction.atomic
    def replace_all(cls, document_id, company_id, items: List[Dict[str, Any]]) -> List[Any]:
        document = cls._get_document(document_id, company_id, lock=True)

        replacements = []
        for index, data in enumerate(items):
            values = cls._clean(data, index=index, row=index + 1)
            sort_order = values.pop("sort_order", None)
            replacements.append(cls.model(
                **{cls.parent_field: document},
                sort_order=index if sort_order is None else sort_order,
                **values,
            ))

        cls._items(document).delete()
        cls.model.objects.bulk_create(replacements)
        cls.renormalize(document)

        logger.info(f"Replaced items on {cls.document_service.resource_name} {document.pk} ({len(replacements)} items)")
        return list(cls._items(document).order_by("sort_order", "id"))

    @classmethod
    @transaction.atomic
    def reorder(cls, document_id, company_id, moves: List[Dict[str, Any]]) -> List[Any]:
        """Apply ``{"id", "sort_order", "updated_at"}`` moves; any stale token fails the batch."""
        document = cls._get_document(document_id, company_id, lock=True)
        if not moves:
            raise ValidationError("At least one move is required.")

        conflicts = []
        for index, move in enumerate(moves):
            item_id = move.get("id")
            token = parse_lock_token(move.get("updated_at"), index=index, item_id=item_id)
            position = {"sort_order": move.get("sort_order")}
            LineItemSchema.raise_if_invalid(position, partial=True, index=index, item_id=item_id)
            sort_order = LineItemSchema.clean(position)["sort_order"]
            if sort_order is None:
                raise ValidationError("Sort order is required.", index=index, item_id=item_id)

            updated = cls._items(document).filter(pk=item_id, updated_at=token).update(
                sort_order=sort_order,
                updated_at=next_lock_token(token),
            )
            if updated != 1:
                conflicts.append(item_id)

        if conflicts:
            audit_logger.warning(
                "reorder conflict",
                resource="Line item",
                company_id=company_id,
                item_ids=conflicts,
            )
            raise ConflictError(
                "Some items were changed by someone else. Please reload and try again.",
                item_ids=conflicts,
            )

        cls.renormalize(document)
        return list(cls._items(document).order_by("sort_order", "id"))

    # -- import ------------------------------------------------------------

    @staticmethod
    def _row_to_item(row: Dict[str, Any]) -> Dict[str, Any]:
        data = {}
        for key, value in row.items():
            if key is None:
                continue
            name = str(key).strip().lower().replace(" ", "_")
            if name in LineItemSchema.FIELDS and name != "sort_order":
                data[name] = value.strip() if isinstance(value, str) else value

        category = str(data.get("tax_category") or "").lower()
        data["tax_category"] = category if category in TaxCategory.values else TaxCategory.STANDARD
        return data

    @classmethod
    @transaction.atomic
    def import_rows(
        cls,
        document_id,
        company_id,
        rows: List[Dict[str, Any]],
        overwrite: bool = False,
    ) -> ImportResult:
        """
        Import already-parsed rows (one dict per data line).

        Bad rows are reported with their file line number (the header is
        line 1) and skipped; good rows are kept.
        """
        document = cls._get_document(document_id, company_id, lock=True)
        if overwrite:
            cls._items(document).delete()

        step = settings.BILLING_IMPORT_SORT_STEP
        top = cls._items(document).aggregate(top=Max("sort_order"))["top"]
        next_order = step if top is None else top + step

        result = ImportResult()
        for offset, row in enumerate(rows):
            line = offset + 2
            try:
                with transaction.atomic():
                    values = cls._clean(cls._row_to_item(row), row=line)
                    values.pop("sort_order", None)
                    item = cls.model.objects.create(
                        **{cls.parent_field: document},
                        sort_order=next_order,
                        **values,
                    )
            except ValidationError as exc:
                result.errors.append(ImportRowError(row=line, message=exc.message, fields=exc.fields))
                continue
            except (DataError, IntegrityError) as exc:
                result.errors.append(ImportRowError(row=line, message=f"Row could not be saved: {exc}"))
                continue
            result.imported.append(item)
            next_order += step

        cls.renormalize(document)
        for item in result.imported:
            item.refresh_from_db()

        audit_logger.audit(
            "items_imported",
            resource=cls.document_service.resource_name,
            resource_id=document.pk,
            company_id=company_id,
            imported=result.imported_count,
            failed=len(result.errors),
            overwrite=overwrite,
        )
        return result


class QuoteItemService(LineItemService):
    document_service = QuoteService
    model = QuoteItem
    parent_field = "quote"


class InvoiceItemService(LineItemService):
    document_service = InvoiceService
    model = InvoiceItem
    parent_field = "invoice"
