from common.choices import OrderKind, OrderStatus
from django.conf import settings
from django.db import models


class TimeStampedModel(models.Model):
    """Abstract base model adding created/updated timestamps."""

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class Order(TimeStampedModel):
    """A confirmed order that authorizes stock to move.

    Sales orders are fulfilled by deliveries, transfer requests by stock
    transfers and return requests by supplier returns.
    """

    KIND_SALES_ORDER = OrderKind.SALES_ORDER
    KIND_TRANSFER_REQUEST = OrderKind.TRANSFER_REQUEST
    KIND_RETURN_REQUEST = OrderKind.RETURN_REQUEST
    KIND_CHOICES = OrderKind.choices

    STATUS_CONFIRMED = OrderStatus.CONFIRMED
    STATUS_CLOSED = OrderStatus.CLOSED
    STATUS_CHOICES = OrderStatus.choices

    kind = models.CharField(max_length=24, choices=KIND_CHOICES, db_index=True)
    number = models.CharField(max_length=32, unique=True)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_CONFIRMED, db_index=True)
    reference = models.CharField(max_length=120, blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, related_name="+", on_delete=models.SET_NULL
    )

    class Meta:
        ordering = ["-id"]
        indexes = [
            models.Index(fields=["kind", "status"], name="order_kind_status_idx"),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"Order#{self.id} {self.number} kind={self.kind} status={self.status}"


class OrderLine(TimeStampedModel):
    """Source line: the ordered quantity of one product that documents consume.

    Product identity is snapshotted (SKU, name) so document lines can copy it.
    """

    order = models.ForeignKey(Order, related_name="lines", on_delete=models.CASCADE)
    sku = models.CharField(max_length=64)
    product_name = models.CharField(max_length=200, blank=True)
    variant_sku = models.CharField(max_length=64, blank=True)
    ordered_quantity = models.DecimalField(max_digits=15, decimal_places=3)

    class Meta:
        ordering = ["id"]
        indexes = [
            models.Index(fields=["order", "sku"], name="orderline_order_sku_idx"),
        ]
        constraints = [
            models.CheckConstraint(name="orderline_quantity_positive", condition=models.Q(ordered_quantity__gt=0)),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"OrderLine#{self.id} order={self.order_id} sku={self.sku} qty={self.ordered_quantity}"

    @property
    def label(self) -> str:
        if self.product_name:
            return f"{self.sku} ({self.product_name})"
        return self.sku or f"line {self.id}"
