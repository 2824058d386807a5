from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone
from decimal import Decimal


LINE_ITEM_FIELDS = [
    ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
    ('description', models.CharField(max_length=500)),
    ('quantity', models.DecimalField(decimal_places=4, default=Decimal('1.0000'), max_digits=15)),
    ('unit_price', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=15)),
    ('discount_amount', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=15)),
    ('tax_category', models.CharField(choices=[('standard', 'Standard'), ('reduced', 'Reduced'), ('exempt', 'Exempt'), ('non_tax', 'Non-taxable')], default='standard', max_length=20)),
    ('tax_rate', models.DecimalField(blank=True, decimal_places=2, max_digits=5, null=True)),
    ('unit', models.CharField(blank=True, max_length=50)),
    ('sku', models.CharField(blank=True, max_length=100)),
    ('sort_order', models.PositiveIntegerField(default=0)),
    ('created_at', models.DateTimeField(auto_now_add=True)),
    ('updated_at', models.DateTimeField(default=django.utils.timezone.now)),
]


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Company',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=200)),
                ('standard_tax_rate', models.DecimalField(decimal_places=2, default=Decimal('10.00'), max_digits=5)),
                ('reduced_tax_rate', models.DecimalField(decimal_places=2, default=Decimal('8.00'), max_digits=5)),
                ('price_includes_tax', models.BooleanField(default=False)),
                ('quote_number_seq', models.PositiveIntegerField(default=0)),
                ('invoice_number_seq', models.PositiveIntegerField(default=0)),
                ('quote_number_format', models.CharField(default='Q{seq:04d}', max_length=50)),
                ('invoice_number_format', models.CharField(default='I{seq:04d}', max_length=50)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('deleted_at', models.DateTimeField(blank=True, null=True)),
            ],
            options={
                'verbose_name_plural': 'companies',
            },
        ),
        migrations.CreateModel(
            name='Client',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=200)),
                ('email', models.EmailField(blank=True, max_length=254)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('deleted_at', models.DateTimeField(blank=True, null=True)),
                ('company', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='clients', to='billing.company')),
            ],
            options={
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='Quote',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('quote_number', models.CharField(db_index=True, max_length=50)),
                ('status', models.CharField(choices=[('draft', 'Draft'), ('sent', 'Sent'), ('accepted', 'Accepted'), ('declined', 'Declined')], db_index=True, default='draft', max_length=20)),
                ('issue_date', models.DateField(default=django.utils.timezone.localdate)),
                ('expiry_date', models.DateField(blank=True, null=True)),
                ('notes', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('deleted_at', models.DateTimeField(blank=True, null=True)),
                ('client', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='quotes', to='billing.client')),
                ('company', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='quotes', to='billing.company')),
            ],
            options={
                'ordering': ['-created_at'],
                'indexes': [models.Index(fields=['company', 'status'], name='quote_company_status_idx')],
                'unique_together': {('company', 'quote_number')},
            },
        ),
        migrations.CreateModel(
            name='Invoice',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('invoice_number', models.CharField(db_index=True, max_length=50)),
                ('status', models.CharField(choices=[('draft', 'Draft'), ('sent', 'Sent'), ('paid', 'Paid'), ('overdue', 'Overdue')], db_index=True, default='draft', max_length=20)),
                ('issue_date', models.DateField(default=django.utils.timezone.localdate)),
                ('due_date', models.DateField(blank=True, null=True)),
                ('payment_method', models.CharField(blank=True, choices=[('bank_transfer', 'Bank Transfer'), ('cash', 'Cash'), ('card', 'Card'), ('other', 'Other')], max_length=20)),
                ('payment_terms', models.CharField(blank=True, max_length=200)),
                ('payment_date', models.DateField(blank=True, null=True)),
                ('notes', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('deleted_at', models.DateTimeField(blank=True, null=True)),
                ('client', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='invoices', to='billing.client')),
                ('company', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='invoices', to='billing.company')),
                ('quote', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='invoices', to='billing.quote')),
            ],
            options={
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['company', 'status'], name='invoice_company_status_idx'),
                    models.Index(fields=['company', 'due_date'], name='invoice_company_due_idx'),
                ],
                'unique_together': {('company', 'invoice_number')},
            },
        ),
        migrations.CreateModel(
            name='QuoteItem',
            fields=[(name, field.clone()) for name, field in LINE_ITEM_FIELDS] + [
                ('quote', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='items', to='billing.quote')),
            ],
            options={
                'ordering': ['sort_order', 'id'],
                'abstract': False,
            },
        ),
        migrations.CreateModel(
            name='InvoiceItem',
            fields=[(name, field.clone()) for name, field in LINE_ITEM_FIELDS] + [
                ('invoice', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='items', to='billing.invoice')),
            ],
            options={
                'ordering': ['sort_order', 'id'],
                'abstract': False,
            },
        ),
        migrations.CreateModel(
            name='ConversionLog',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('selected_item_ids', models.JSONField(blank=True, default=list)),
                ('duplicated_items_count', models.PositiveIntegerField(default=0)),
                ('total_items_count', models.PositiveIntegerField(default=0)),
                ('issue_date', models.DateField()),
                ('due_date', models.DateField(blank=True, null=True)),
                ('converted_at', models.DateTimeField(auto_now_add=True)),
                ('company', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='conversion_logs', to='billing.company')),
                ('invoice', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='conversion_log', to='billing.invoice')),
                ('quote', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='conversion_logs', to='billing.quote')),
            ],
            options={
                'ordering': ['-converted_at'],
                'indexes': [models.Index(fields=['company', 'quote'], name='conversion_company_quote_idx')],
            },
        ),
    ]
