from decimal import Decimal

import factory
from django.utils import timezone

from billing.models import Client, Company, Invoice, InvoiceItem, Quote, QuoteItem, TaxCategory


class CompanyFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Company

    name = factory.Sequence(lambda n: f"Company {n}")
    standard_tax_rate = Decimal("10.00")
    reduced_tax_rate = Decimal("8.00")


class ClientFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Client

    company = factory.SubFactory(CompanyFactory)
    name = factory.Sequence(lambda n: f"Client {n}")
    email = factory.LazyAttribute(lambda obj: f"{obj.name.lower().replace(' ', '.')}@example.com")


class QuoteFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Quote

    company = factory.SubFactory(CompanyFactory)
    client = factory.SubFactory(ClientFactory, company=factory.SelfAttribute("..company"))
    quote_number = factory.Sequence(lambda n: f"DRAFT-{n:06d}")
    status = Quote.Status.DRAFT
    issue_date = factory.LazyFunction(timezone.localdate)
    updated_at = factory.LazyFunction(timezone.now)


class InvoiceFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Invoice

    company = factory.SubFactory(CompanyFactory)
    client = factory.SubFactory(ClientFactory, company=factory.SelfAttribute("..company"))
    invoice_number = factory.Sequence(lambda n: f"DRAFT-{n:06d}")
    status = Invoice.Status.DRAFT
    issue_date = factory.LazyFunction(timezone.localdate)
    updated_at = factory.LazyFunction(timezone.now)


class QuoteItemFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = QuoteItem

    quote = factory.SubFactory(QuoteFactory)
    description = factory.Sequence(lambda n: f"Service {n}")
    quantity = Decimal("1")
    unit_price = Decimal("100.00")
    discount_amount = Decimal("0.00")
    tax_category = TaxCategory.STANDARD
    sort_order = factory.Sequence(lambda n: n)
    updated_at = factory.LazyFunction(timezone.now)


class InvoiceItemFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = InvoiceItem

    invoice = factory.SubFactory(InvoiceFactory)
    description = factory.Sequence(lambda n: f"Service {n}")
    quantity = Decimal("1")
    unit_price = Decimal("100.00")
    discount_amount = Decimal("0.00")
    tax_category = TaxCategory.STANDARD
    sort_order = factory.Sequence(lambda n: n)
    updated_at = factory.LazyFunction(timezone.now)
