import django.db.models.deletion
from decimal import Decimal
from django.conf import settings
from django.db import migrations, models

KIND_CHOICES = [
    ("delivery", "Delivery"),
    ("stock_transfer", "Stock transfer"),
    ("supplier_return", "Supplier return"),
]

STATUS_CHOICES = [
    ("pending", "Pending"),
    ("requested", "Requested"),
    ("in_preparation", "In preparation"),
    ("approved", "Approved"),
    ("shipped", "Shipped"),
    ("in_transit", "In transit"),
    ("partially_received", "Partially received"),
    ("delivered", "Delivered"),
    ("received", "Received"),
    ("cancelled", "Cancelled"),
    ("failed_delivery", "Failed delivery"),
    ("rejected", "Rejected"),
]


def _user_fk():
    return models.ForeignKey(
        blank=True,
        null=True,
        on_delete=django.db.models.deletion.SET_NULL,
        related_name="+",
        to=settings.AUTH_USER_MODEL,
    )


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("orders", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Document",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("kind", models.CharField(choices=KIND_CHOICES, db_index=True, max_length=24)),
                ("number", models.CharField(max_length=32, unique=True)),
                ("status", models.CharField(choices=STATUS_CHOICES, db_index=True, max_length=24)),
                ("origin_location", models.CharField(blank=True, max_length=120)),
                ("destination_location", models.CharField(blank=True, max_length=120)),
                ("requested_date", models.DateField(blank=True, null=True)),
                ("shipped_at", models.DateTimeField(blank=True, null=True)),
                ("received_at", models.DateTimeField(blank=True, null=True)),
                ("carrier_name", models.CharField(blank=True, max_length=255)),
                ("tracking_number", models.CharField(blank=True, max_length=100)),
                ("notes", models.TextField(blank=True)),
                ("deleted_at", models.DateTimeField(blank=True, db_index=True, null=True)),
                (
                    "order",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT, related_name="documents", to="orders.order"
                    ),
                ),
                ("created_by", _user_fk()),
                ("updated_by", _user_fk()),
                ("shipped_by", _user_fk()),
                ("received_by", _user_fk()),
            ],
            options={
                "ordering": ["-created_at", "-id"],
                "indexes": [
                    models.Index(fields=["kind", "status"], name="document_kind_status_idx"),
                    models.Index(fields=["order", "kind"], name="document_order_kind_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="DocumentLine",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("sku", models.CharField(max_length=64)),
                ("product_name", models.CharField(blank=True, max_length=200)),
                ("variant_sku", models.CharField(blank=True, max_length=64)),
                ("quantity_requested", models.DecimalField(blank=True, decimal_places=3, max_digits=15, null=True)),
                ("quantity_shipped", models.DecimalField(decimal_places=3, default=Decimal("0"), max_digits=15)),
                ("quantity_received", models.DecimalField(decimal_places=3, default=Decimal("0"), max_digits=15)),
                (
                    "document",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE, related_name="lines", to="fulfillment.document"
                    ),
                ),
                (
                    "source_line",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="document_lines",
                        to="orders.orderline",
                    ),
                ),
            ],
            options={
                "ordering": ["id"],
                "indexes": [models.Index(fields=["source_line"], name="docline_source_line_idx")],
                "constraints": [
                    models.UniqueConstraint(fields=("document", "source_line"), name="unique_line_per_source_line"),
                    models.CheckConstraint(
                        condition=models.Q(("quantity_shipped__gte", 0)), name="line_shipped_non_negative"
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("quantity_received__gte", 0)), name="line_received_non_negative"
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("quantity_received__lte", models.F("quantity_shipped"))),
                        name="line_received_le_shipped",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            ("quantity_requested__isnull", True),
                            ("quantity_shipped__lte", models.F("quantity_requested")),
                            _connector="OR",
                        ),
                        name="line_shipped_le_requested",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="DocumentStatusEvent",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("status_from", models.CharField(blank=True, max_length=24)),
                ("status_to", models.CharField(max_length=24)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "document",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="status_events",
                        to="fulfillment.document",
                    ),
                ),
                ("actor", _user_fk()),
            ],
            options={
                "ordering": ["created_at", "id"],
                "indexes": [models.Index(fields=["document", "created_at"], name="docevent_document_created_idx")],
            },
        ),
    ]
