"""Fulfillment document models.

One header table serves every document kind (delivery, stock transfer,
supplier return); kind-specific rules live in ``fulfillment.kinds``.
Soft-deleted documents are hidden by the default managers so no reconciliation
query can count them by accident.
"""

from common.choices import DocumentKind, DocumentStatus
from django.conf import settings
from django.db import models
from django.db.models import F, Q, Sum, Value
from django.db.models.functions import Coalesce

from .kinds import QUANTITY_OUTPUT, ZERO, committed_quantity_expression


class TimeStampedModel(models.Model):
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class DocumentQuerySet(models.QuerySet):
    def live(self):
        return self.filter(deleted_at__isnull=True)


class LiveDocumentManager(models.Manager.from_queryset(DocumentQuerySet)):
    def get_queryset(self):
        return super().get_queryset().live()


class Document(TimeStampedModel):
    KIND_CHOICES = DocumentKind.choices
    STATUS_CHOICES = DocumentStatus.choices

    kind = models.CharField(max_length=24, choices=KIND_CHOICES, db_index=True)
    number = models.CharField(max_length=32, unique=True)
    status = models.CharField(max_length=24, choices=STATUS_CHOICES, db_index=True)
    order = models.ForeignKey("orders.Order", related_name="documents", on_delete=models.PROTECT)

    origin_location = models.CharField(max_length=120, blank=True)
    destination_location = models.CharField(max_length=120, blank=True)
    requested_date = models.DateField(null=True, blank=True)
    shipped_at = models.DateTimeField(null=True, blank=True)
    received_at = models.DateTimeField(null=True, blank=True)
    carrier_name = models.CharField(max_length=255, blank=True)
    tracking_number = models.CharField(max_length=100, blank=True)
    notes = models.TextField(blank=True)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, related_name="+", on_delete=models.SET_NULL
    )
    updated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, related_name="+", on_delete=models.SET_NULL
    )
    shipped_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, related_name="+", on_delete=models.SET_NULL
    )
    received_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, related_name="+", on_delete=models.SET_NULL
    )
    deleted_at = models.DateTimeField(null=True, blank=True, db_index=True)

    objects = LiveDocumentManager()
    all_objects = DocumentQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["kind", "status"], name="document_kind_status_idx"),
            models.Index(fields=["order", "kind"], name="document_order_kind_idx"),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.number} kind={self.kind} status={self.status}"


class DocumentLineQuerySet(models.QuerySet):
    def live(self):
        return self.filter(document__deleted_at__isnull=True)

    def for_source_line(self, source_line_id: int):
        return self.filter(source_line_id=source_line_id)

    def with_committed(self):
        return self.annotate(committed=committed_quantity_expression())

    def committed_total(self):
        return self.aggregate(
            total=Coalesce(Sum(committed_quantity_expression()), Value(ZERO), output_field=QUANTITY_OUTPUT)
        )["total"]


class LiveDocumentLineManager(models.Manager.from_queryset(DocumentLineQuerySet)):
    def get_queryset(self):
        return super().get_queryset().live()


class DocumentLine(TimeStampedModel):
    """One line of a document, consuming part of exactly one source line.

    Deliveries track a single ``quantity_shipped``; stock transfers and supplier
    returns track requested, shipped and received counters.
    """

    document = models.ForeignKey(Document, related_name="lines", on_delete=models.CASCADE)
    source_line = models.ForeignKey("orders.OrderLine", related_name="document_lines", on_delete=models.PROTECT)
    sku = models.CharField(max_length=64)
    product_name = models.CharField(max_length=200, blank=True)
    variant_sku = models.CharField(max_length=64, blank=True)
    quantity_requested = models.DecimalField(max_digits=15, decimal_places=3, null=True, blank=True)
    quantity_shipped = models.DecimalField(max_digits=15, decimal_places=3, default=ZERO)
    quantity_received = models.DecimalField(max_digits=15, decimal_places=3, default=ZERO)

    objects = LiveDocumentLineManager()
    all_objects = DocumentLineQuerySet.as_manager()

    class Meta:
        ordering = ["id"]
        indexes = [
            models.Index(fields=["source_line"], name="docline_source_line_idx"),
        ]
        constraints = [
            models.UniqueConstraint(fields=["document", "source_line"], name="unique_line_per_source_line"),
            models.CheckConstraint(name="line_shipped_non_negative", condition=Q(quantity_shipped__gte=0)),
            models.CheckConstraint(name="line_received_non_negative", condition=Q(quantity_received__gte=0)),
            models.CheckConstraint(
                name="line_received_le_shipped", condition=Q(quantity_received__lte=F("quantity_shipped"))
            ),
            models.CheckConstraint(
                name="line_shipped_le_requested",
                condition=Q(quantity_requested__isnull=True) | Q(quantity_shipped__lte=F("quantity_requested")),
            ),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"Line#{self.id} doc={self.document_id} source={self.source_line_id} sku={self.sku}"


class DocumentStatusEvent(models.Model):
    """Audit trail of status changes: who moved the document and when."""

    document = models.ForeignKey(Document, related_name="status_events", on_delete=models.CASCADE)
    status_from = models.CharField(max_length=24, blank=True)
    status_to = models.CharField(max_length=24)
    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, related_name="+", on_delete=models.SET_NULL
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(fields=["document", "created_at"], name="docevent_document_created_idx"),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.document_id}: {self.status_from or '-'} -> {self.status_to}"


# EOF
