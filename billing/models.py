from __future__ import annotations

from decimal import Decimal

from django.db import models
from django.utils import timezone


class AliveQuerySet(models.QuerySet):
    def alive(self):
        return self.filter(deleted_at__isnull=True)


class Company(models.Model):
    name = models.CharField(max_length=200)
    standard_tax_rate = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal('10.00'))
    reduced_tax_rate = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal('8.00'))
    price_includes_tax = models.BooleanField(default=False)

    # Bumped only through F() increments when a document is finalized.
    quote_number_seq = models.PositiveIntegerField(default=0)
    invoice_number_seq = models.PositiveIntegerField(default=0)
    quote_number_format = models.CharField(max_length=50, default="Q{seq:04d}")
    invoice_number_format = models.CharField(max_length=50, default="I{seq:04d}")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    deleted_at = models.DateTimeField(null=True, blank=True)

    objects = AliveQuerySet.as_manager()

    class Meta:
        verbose_name_plural = "companies"

    def __str__(self):
        return self.name


class Client(models.Model):
    company = models.ForeignKey(Company, on_delete=models.CASCADE, related_name="clients")
    name = models.CharField(max_length=200)
    email = models.EmailField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    deleted_at = models.DateTimeField(null=True, blank=True)

    objects = AliveQuerySet.as_manager()

    class Meta:
        ordering = ['name']

    def __str__(self):
        return self.name


class Quote(models.Model):
    class Status(models.TextChoices):
        DRAFT = "draft", "Draft"
        SENT = "sent", "Sent"
        ACCEPTED = "accepted", "Accepted"
        DECLINED = "declined", "Declined"

    company = models.ForeignKey(Company, on_delete=models.CASCADE, related_name="quotes")
    client = models.ForeignKey(Client, on_delete=models.CASCADE, related_name="quotes")
    quote_number = models.CharField(max_length=50, db_index=True)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.DRAFT, db_index=True)
    issue_date = models.DateField(default=timezone.localdate)
    expiry_date = models.DateField(null=True, blank=True)
    notes = models.TextField(blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    # Optimistic lock token, written explicitly by the services.
    updated_at = models.DateTimeField(default=timezone.now)
    deleted_at = models.DateTimeField(null=True, blank=True)

    objects = AliveQuerySet.as_manager()

    class Meta:
        unique_together = ('company', 'quote_number')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['company', 'status'], name='quote_company_status_idx'),
        ]

    def __str__(self):
        return f"{self.quote_number} - {self.client.name}"

    @property
    def is_deleted(self):
        return self.deleted_at is not None


class Invoice(models.Model):
    class Status(models.TextChoices):
        DRAFT = "draft", "Draft"
        SENT = "sent", "Sent"
        PAID = "paid", "Paid"
        OVERDUE = "overdue", "Overdue"

    class PaymentMethod(models.TextChoices):
        BANK_TRANSFER = "bank_transfer", "Bank Transfer"
        CASH = "cash", "Cash"
        CARD = "card", "Card"
        OTHER = "other", "Other"

    company = models.ForeignKey(Company, on_delete=models.CASCADE, related_name="invoices")
    client = models.ForeignKey(Client, on_delete=models.CASCADE, related_name="invoices")
    quote = models.ForeignKey(Quote, on_delete=models.SET_NULL, null=True, blank=True, related_name="invoices")
    invoice_number = models.CharField(max_length=50, db_index=True)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.DRAFT, db_index=True)
    issue_date = models.DateField(default=timezone.localdate)
    due_date = models.DateField(null=True, blank=True)
    payment_method = models.CharField(max_length=20, choices=PaymentMethod.choices, blank=True)
    payment_terms = models.CharField(max_length=200, blank=True)
    payment_date = models.DateField(null=True, blank=True)
    notes = models.TextField(blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(default=timezone.now)
    deleted_at = models.DateTimeField(null=True, blank=True)

    objects = AliveQuerySet.as_manager()

    class Meta:
        unique_together = ('company', 'invoice_number')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['company', 'status'], name='invoice_company_status_idx'),
            models.Index(fields=['company', 'due_date'], name='invoice_company_due_idx'),
        ]

    def __str__(self):
        return f"{self.invoice_number} - {self.client.name}"

    @property
    def is_deleted(self):
        return self.deleted_at is not None

    @property
    def is_overdue(self):
        if self.status != self.Status.SENT or self.payment_date or not self.due_date:
            return False
        return self.due_date < timezone.localdate()


class TaxCategory(models.TextChoices):
    STANDARD = "standard", "Standard"
    REDUCED = "reduced", "Reduced"
    EXEMPT = "exempt", "Exempt"
    NON_TAX = "non_tax", "Non-taxable"


class BaseLineItem(models.Model):
    description = models.CharField(max_length=500)
    quantity = models.DecimalField(max_digits=15, decimal_places=4, default=Decimal('1.0000'))
    unit_price = models.DecimalField(max_digits=15, decimal_places=2, default=Decimal('0.00'))
    discount_amount = models.DecimalField(max_digits=15, decimal_places=2, default=Decimal('0.00'))
    tax_category = models.CharField(max_length=20, choices=TaxCategory.choices, default=TaxCategory.STANDARD)
    tax_rate = models.DecimalField(max_digits=5, decimal_places=2, null=True, blank=True)
    unit = models.CharField(max_length=50, blank=True)
    sku = models.CharField(max_length=100, blank=True)
    sort_order = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(default=timezone.now)

    # Fields copied verbatim when an item is duplicated onto another document.
    COPY_FIELDS = (
        'description', 'quantity', 'unit_price', 'discount_amount',
        'tax_category', 'tax_rate', 'unit', 'sku',
    )

    class Meta:
        abstract = True
        ordering = ['sort_order', 'id']

    def __str__(self):
        return self.description

    @property
    def gross_amount(self):
        return self.quantity * self.unit_price

    def copy_values(self):
        return {name: getattr(self, name) for name in self.COPY_FIELDS}


class QuoteItem(BaseLineItem):
    quote = models.ForeignKey(Quote, on_delete=models.CASCADE, related_name="items")

    class Meta(BaseLineItem.Meta):
        pass


class InvoiceItem(BaseLineItem):
    invoice = models.ForeignKey(Invoice, on_delete=models.CASCADE, related_name="items")

    class Meta(BaseLineItem.Meta):
        pass


class ConversionLog(models.Model):
    """Append-only record of a quote converted into an invoice."""

    company = models.ForeignKey(Company, on_delete=models.CASCADE, related_name="conversion_logs")
    quote = models.ForeignKey(Quote, on_delete=models.CASCADE, related_name="conversion_logs")
    invoice = models.OneToOneField(Invoice, on_delete=models.CASCADE, related_name="conversion_log")
    selected_item_ids = models.JSONField(default=list, blank=True)
    duplicated_items_count = models.PositiveIntegerField(default=0)
    total_items_count = models.PositiveIntegerField(default=0)
    issue_date = models.DateField()
    due_date = models.DateField(null=True, blank=True)
    converted_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-converted_at']
        indexes = [
            models.Index(fields=['company', 'quote'], name='conversion_company_quote_idx'),
        ]

    def __str__(self):
        return f"Quote {self.quote_id} -> Invoice {self.invoice_id}"
