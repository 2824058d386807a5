from decimal import Decimal

import pytest

from tests.factories import ClientFactory, CompanyFactory, InvoiceFactory, QuoteFactory, QuoteItemFactory


@pytest.fixture
def company(db):
    return CompanyFactory(name="Acme Studio")


@pytest.fixture
def client_record(company):
    return ClientFactory(company=company, name="Globex")


@pytest.fixture
def quote(company, client_record):
    return QuoteFactory(company=company, client=client_record)


@pytest.fixture
def quote_with_items(quote):
    QuoteItemFactory(quote=quote, description="Design", quantity=Decimal("2"), unit_price=Decimal("1000.00"), sort_order=0)
    QuoteItemFactory(quote=quote, description="Hosting", quantity=Decimal("1"), unit_price=Decimal("999.00"),
                     tax_category="reduced", sort_order=1)
    return quote


@pytest.fixture
def invoice(company, client_record):
    return InvoiceFactory(company=company, client=client_record)
