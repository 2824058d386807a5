import logging
from datetime import date

from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone

from billing.audit_logging import audit_logger
from billing.services.document_service import InvoiceService
from quoteflow.logging_filters import request_id_scope

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Mark sent invoices past their due date with no payment date as overdue"

    def add_arguments(self, parser):
        parser.add_argument(
            '--company',
            type=int,
            help='Only sweep invoices of this company id.',
        )
        parser.add_argument(
            '--date',
            type=str,
            help='Treat this date as today (YYYY-MM-DD). Defaults to today.',
        )
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='List the invoices that would be marked without changing them.',
        )

    def handle(self, *args, **options):
        target_date = None
        if options['date']:
            try:
                target_date = date.fromisoformat(options['date'])
            except ValueError:
                raise CommandError(f"Invalid date format: {options['date']}")

        target_date = target_date or timezone.localdate()
        company_id = options['company']

        with request_id_scope() as request_id:
            self.stdout.write(f"Checking overdue invoices as of {target_date} (run {request_id})")

            if options['dry_run']:
                candidates = list(InvoiceService.overdue_candidates(company_id, target_date).select_related('client'))
                self.stdout.write(f"[DRY RUN] {len(candidates)} invoices would be marked overdue:")
                for invoice in candidates:
                    self.stdout.write(
                        f"  - Invoice #{invoice.pk} {invoice.invoice_number}: {invoice.client.name} "
                        f"(due {invoice.due_date})"
                    )
                return

            try:
                count = InvoiceService.mark_overdue(company_id=company_id, today=target_date)
            except Exception as exc:
                audit_logger.error("overdue sweep failed", exception=exc, company_id=company_id)
                raise CommandError(f"Overdue sweep failed: {exc}") from exc

            audit_logger.info("overdue sweep finished", company_id=company_id, marked=count, as_of=target_date)
            self.stdout.write(self.style.SUCCESS(f"Marked {count} invoices as overdue"))
