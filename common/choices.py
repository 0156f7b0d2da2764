"""Shared enumerations and choices used across apps."""

from django.db import models


class OrderKind(models.TextChoices):
    """Kinds of confirmed orders whose lines authorize stock movement."""

    SALES_ORDER = "sales_order", "Sales order"
    TRANSFER_REQUEST = "transfer_request", "Transfer request"
    RETURN_REQUEST = "return_request", "Return request"


class OrderStatus(models.TextChoices):
    """Lifecycle statuses for source orders."""

    CONFIRMED = "confirmed", "Confirmed"
    CLOSED = "closed", "Closed"


class DocumentKind(models.TextChoices):
    DELIVERY = "delivery", "Delivery"
    STOCK_TRANSFER = "stock_transfer", "Stock transfer"
    SUPPLIER_RETURN = "supplier_return", "Supplier return"


class DocumentStatus(models.TextChoices):
    """Union of the status labels used by every document kind.

    Which labels a document may take, and in what order, is decided by its
    kind policy (see ``fulfillment.kinds``).
    """

    PENDING = "pending", "Pending"
    REQUESTED = "requested", "Requested"
    IN_PREPARATION = "in_preparation", "In preparation"
    READY_TO_SHIP = "ready_to_ship", "Ready to ship"
    APPROVED = "approved", "Approved"
    SHIPPED = "shipped", "Shipped"
    IN_TRANSIT = "in_transit", "In transit"
    PARTIALLY_RECEIVED = "partially_received", "Partially received"
    DELIVERED = "delivered", "Delivered"
    RECEIVED = "received", "Received"
    CANCELLED = "cancelled", "Cancelled"
    FAILED_DELIVERY = "failed_delivery", "Failed delivery"
    REJECTED = "rejected", "Rejected"


class QuantityStep(models.TextChoices):
    """Which counter of a document line an operation sets."""

    REQUESTED = "requested", "Requested"
    SHIPPED = "shipped", "Shipped"
    RECEIVED = "received", "Received"
