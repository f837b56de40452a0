import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("ledger", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="PaddleInvoiceData",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, help_text="Timestamp when this record was created")),
                ("updated_at", models.DateTimeField(auto_now=True, help_text="Timestamp when this record was last modified")),
                ("subscription_id", models.CharField(blank=True, db_index=True, default="", help_text="Paddle subscription ID (sub_xxx)", max_length=64)),
                ("billed_line_items", models.JSONField(blank=True, default=list, help_text="Paddle transaction item IDs billed with a positive total")),
                ("xrate", models.DecimalField(blank=True, decimal_places=10, help_text="Exchange rate snapshot: localized amount / invoice amount", max_digits=20, null=True)),
                ("xcurrency", models.CharField(blank=True, default="", help_text="Currency the exchange rate converts into", max_length=3)),
                (
                    "invoice",
                    models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name="paddle_data", to="ledger.invoice"),
                ),
            ],
            options={
                "verbose_name": "Paddle Invoice Data",
                "verbose_name_plural": "Paddle Invoice Data",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="PaddleCustomerData",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, help_text="Timestamp when this record was created")),
                ("updated_at", models.DateTimeField(auto_now=True, help_text="Timestamp when this record was last modified")),
                ("customer_id", models.CharField(blank=True, db_index=True, default="", help_text="Paddle customer ID (ctm_xxx)", max_length=64)),
                ("address_id", models.CharField(blank=True, default="", help_text="Paddle address ID (add_xxx)", max_length=64)),
                ("business_id", models.CharField(blank=True, default="", help_text="Paddle business ID (biz_xxx)", max_length=64)),
                (
                    "subscriber",
                    models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name="paddle_customer", to="ledger.subscriber"),
                ),
            ],
            options={
                "verbose_name": "Paddle Customer Data",
                "verbose_name_plural": "Paddle Customer Data",
                "ordering": ["-created_at"],
            },
        ),
    ]
