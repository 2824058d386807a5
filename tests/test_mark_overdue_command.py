from datetime import date
from io import StringIO

import pytest
from django.core.management import call_command
from django.core.management.base import CommandError

from billing.models import Invoice
from tests.factories import InvoiceFactory


@pytest.mark.django_db
class TestMarkOverdueInvoicesCommand:
    def test_marks_past_due_invoices(self, company, client_record):
        late = InvoiceFactory(company=company, client=client_record, status=Invoice.Status.SENT,
                              due_date=date(2024, 6, 1))
        out = StringIO()

        call_command("mark_overdue_invoices", "--date", "2024-06-10", stdout=out)

        assert "Marked 1 invoices as overdue" in out.getvalue()
        assert Invoice.objects.get(pk=late.pk).status == Invoice.Status.OVERDUE

    def test_dry_run_changes_nothing(self, company, client_record):
        late = InvoiceFactory(company=company, client=client_record, status=Invoice.Status.SENT,
                              due_date=date(2024, 6, 1))
        out = StringIO()

        call_command("mark_overdue_invoices", "--date", "2024-06-10", "--dry-run", stdout=out)

        assert "1 invoices would be marked overdue" in out.getvalue()
        assert late.invoice_number in out.getvalue()
        assert Invoice.objects.get(pk=late.pk).status == Invoice.Status.SENT

    def test_company_filter(self, company, client_record):
        mine = InvoiceFactory(company=company, client=client_record, status=Invoice.Status.SENT,
                              due_date=date(2024, 6, 1))
        theirs = InvoiceFactory(status=Invoice.Status.SENT, due_date=date(2024, 6, 1))

        call_command("mark_overdue_invoices", "--date", "2024-06-10", "--company", str(company.pk), stdout=StringIO())

        assert Invoice.objects.get(pk=mine.pk).status == Invoice.Status.OVERDUE
        assert Invoice.objects.get(pk=theirs.pk).status == Invoice.Status.SENT

    def test_invalid_date(self):
        with pytest.raises(CommandError):
            call_command("mark_overdue_invoices", "--date", "10/06/2024", stdout=StringIO())
