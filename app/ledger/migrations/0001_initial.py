from decimal import Decimal

import django.db.models.deletion
import django_fsm
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Subscriber",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, help_text="Timestamp when this record was created")),
                ("updated_at", models.DateTimeField(auto_now=True, help_text="Timestamp when this record was last modified")),
                ("email", models.EmailField(db_index=True, help_text="Subscriber email address", max_length=254)),
                ("name_f", models.CharField(blank=True, default="", max_length=64)),
                ("name_l", models.CharField(blank=True, default="", max_length=64)),
                ("street", models.CharField(blank=True, default="", max_length=255)),
                ("street2", models.CharField(blank=True, default="", max_length=255)),
                ("city", models.CharField(blank=True, default="", max_length=128)),
                ("state", models.CharField(blank=True, default="", max_length=64)),
                ("country", models.CharField(blank=True, default="", help_text="ISO 3166-1 alpha-2 country code", max_length=2)),
                ("zip", models.CharField(blank=True, default="", max_length=32)),
                ("tax_id", models.CharField(blank=True, default="", max_length=64)),
                ("is_locked", models.BooleanField(default=False, help_text="Locked accounts lose access (e.g. after a chargeback)")),
            ],
            options={
                "verbose_name": "Subscriber",
                "verbose_name_plural": "Subscribers",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="Invoice",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, help_text="Timestamp when this record was created")),
                ("updated_at", models.DateTimeField(auto_now=True, help_text="Timestamp when this record was last modified")),
                ("public_id", models.CharField(help_text="Public invoice identifier shared with the payment provider", max_length=32, unique=True)),
                ("currency", models.CharField(help_text="ISO 4217 currency code", max_length=3)),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[
                            ("pending", "Pending"),
                            ("paid", "Paid"),
                            ("recurring_active", "Recurring Active"),
                            ("recurring_failed", "Recurring Failed"),
                            ("recurring_finished", "Recurring Finished"),
                            ("cancelled", "Cancelled"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="Current state of the invoice (managed by FSM)",
                        max_length=50,
                    ),
                ),
                ("first_total", models.DecimalField(decimal_places=2, max_digits=12)),
                ("first_period", models.CharField(max_length=16)),
                ("second_total", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                ("second_period", models.CharField(blank=True, default="", max_length=16)),
                ("rebill_times", models.PositiveIntegerField(default=0, help_text="Number of rebills after the first payment (99999 = until cancelled)")),
                ("rebill_date", models.DateField(blank=True, help_text="Date of the next expected rebill", null=True)),
                ("paysys_id", models.CharField(default="paddle", max_length=32)),
                (
                    "subscriber",
                    models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="invoices", to="ledger.subscriber"),
                ),
            ],
            options={
                "verbose_name": "Invoice",
                "verbose_name_plural": "Invoices",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="InvoiceItem",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, help_text="Timestamp when this record was created")),
                ("updated_at", models.DateTimeField(auto_now=True, help_text="Timestamp when this record was last modified")),
                ("item_id", models.CharField(help_text="Product identifier in the catalogue", max_length=64)),
                ("title", models.CharField(max_length=255)),
                ("description", models.TextField(blank=True, default="")),
                ("terms", models.CharField(blank=True, default="", help_text="Human-readable billing terms, e.g. '$10.00 for 1 month'", max_length=255)),
                ("image_url", models.URLField(blank=True, default="")),
                ("qty", models.PositiveIntegerField(default=1)),
                ("currency", models.CharField(max_length=3)),
                ("first_total", models.DecimalField(decimal_places=2, max_digits=12)),
                ("first_period", models.CharField(max_length=16)),
                ("second_total", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                ("second_period", models.CharField(blank=True, default="", max_length=16)),
                ("rebill_times", models.PositiveIntegerField(default=0)),
                (
                    "invoice",
                    models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="items", to="ledger.invoice"),
                ),
            ],
            options={
                "ordering": ["pk"],
            },
        ),
        migrations.CreateModel(
            name="InvoicePayment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, help_text="Timestamp when this record was created")),
                ("updated_at", models.DateTimeField(auto_now=True, help_text="Timestamp when this record was last modified")),
                ("receipt_id", models.CharField(db_index=True, max_length=64)),
                ("transaction_id", models.CharField(blank=True, default="", help_text="Provider notification/event identifier that created the payment", max_length=64)),
                ("amount", models.DecimalField(decimal_places=2, max_digits=12)),
                ("currency", models.CharField(max_length=3)),
                ("paysys_id", models.CharField(default="paddle", max_length=32)),
                (
                    "invoice",
                    models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="payments", to="ledger.invoice"),
                ),
                (
                    "subscriber",
                    models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="payments", to="ledger.subscriber"),
                ),
            ],
            options={
                "ordering": ["created_at"],
                "constraints": [
                    models.UniqueConstraint(fields=("invoice", "receipt_id"), name="unique_payment_receipt_per_invoice"),
                ],
            },
        ),
        migrations.CreateModel(
            name="InvoiceRefund",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, help_text="Timestamp when this record was created")),
                ("updated_at", models.DateTimeField(auto_now=True, help_text="Timestamp when this record was last modified")),
                ("receipt_id", models.CharField(max_length=64)),
                ("transaction_id", models.CharField(db_index=True, max_length=64)),
                ("amount", models.DecimalField(decimal_places=2, max_digits=12)),
                ("currency", models.CharField(max_length=3)),
                ("paysys_id", models.CharField(default="paddle", max_length=32)),
                (
                    "invoice",
                    models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="refunds", to="ledger.invoice"),
                ),
            ],
            options={
                "ordering": ["created_at"],
                "constraints": [
                    models.UniqueConstraint(fields=("invoice", "receipt_id"), name="unique_refund_receipt_per_invoice"),
                ],
            },
        ),
        migrations.CreateModel(
            name="InvoiceChargeback",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, help_text="Timestamp when this record was created")),
                ("updated_at", models.DateTimeField(auto_now=True, help_text="Timestamp when this record was last modified")),
                ("receipt_id", models.CharField(max_length=64)),
                ("transaction_id", models.CharField(db_index=True, max_length=64)),
                ("paysys_id", models.CharField(default="paddle", max_length=32)),
                (
                    "invoice",
                    models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="chargebacks", to="ledger.invoice"),
                ),
            ],
            options={
                "ordering": ["created_at"],
                "constraints": [
                    models.UniqueConstraint(fields=("invoice", "receipt_id"), name="unique_chargeback_receipt_per_invoice"),
                ],
            },
        ),
        migrations.CreateModel(
            name="AccessPeriod",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, help_text="Timestamp when this record was created")),
                ("updated_at", models.DateTimeField(auto_now=True, help_text="Timestamp when this record was last modified")),
                ("transaction_id", models.CharField(max_length=64)),
                ("begin_date", models.DateField()),
                ("expire_date", models.DateField()),
                (
                    "invoice",
                    models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="access_periods", to="ledger.invoice"),
                ),
                (
                    "subscriber",
                    models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="access_periods", to="ledger.subscriber"),
                ),
            ],
            options={
                "ordering": ["begin_date"],
                "constraints": [
                    models.UniqueConstraint(fields=("invoice", "transaction_id"), name="unique_access_transaction_per_invoice"),
                ],
            },
        ),
        migrations.CreateModel(
            name="SubscriberNote",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, help_text="Timestamp when this record was created")),
                ("updated_at", models.DateTimeField(auto_now=True, help_text="Timestamp when this record was last modified")),
                ("content", models.TextField()),
                (
                    "subscriber",
                    models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="notes", to="ledger.subscriber"),
                ),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="InvoiceLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, help_text="Timestamp when this record was created")),
                ("updated_at", models.DateTimeField(auto_now=True, help_text="Timestamp when this record was last modified")),
                ("title", models.CharField(max_length=128)),
                ("paysys_id", models.CharField(default="paddle", max_length=32)),
                ("remote_addr", models.CharField(blank=True, default="", max_length=45)),
                (
                    "log_type",
                    models.CharField(
                        choices=[("request", "Outbound Request"), ("incoming", "Incoming Notification")],
                        default="request",
                        max_length=16,
                    ),
                ),
                ("entries", models.JSONField(blank=True, default=list)),
                (
                    "invoice",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="logs",
                        to="ledger.invoice",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [models.Index(fields=["paysys_id", "created_at"], name="invoicelog_paysys_created_idx")],
            },
        ),
    ]
