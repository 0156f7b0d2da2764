import logging
from decimal import Decimal

from common.numbering import next_number
from django.db import IntegrityError, transaction
from fulfillment.aggregate import parse_quantity
from fulfillment.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from fulfillment.ledger import SourceLineLedger

from .models import Order, OrderLine

logger = logging.getLogger("fulfillment.orders")

ORDER_PREFIXES = {
    Order.KIND_SALES_ORDER: "SO",
    Order.KIND_TRANSFER_REQUEST: "TR",
    Order.KIND_RETURN_REQUEST: "RR",
}


def confirm_order(kind: str, lines, user=None, *, reference: str = "") -> Order:
    """Create a confirmed order with its source lines.

    ``lines`` is an iterable of dicts with ``sku``, ``ordered_quantity`` and
    optional ``product_name`` / ``variant_sku``.
    """

    prefix = ORDER_PREFIXES.get(str(kind))
    if prefix is None:
        raise ValidationError(f"Unknown order kind '{kind}'.", data={"allowed": sorted(ORDER_PREFIXES)})
    lines = list(lines or [])
    if not lines:
        raise ValidationError("An order requires at least one line.", data={"lines": 0})

    cleaned = []
    for data in lines:
        sku = str(data.get("sku") or "").strip()
        if not sku:
            raise ValidationError("'sku' is required.", data={"field": "sku"})
        quantity = parse_quantity(data.get("ordered_quantity"), "ordered_quantity")
        if quantity <= 0:
            raise ValidationError(
                f"Ordered quantity for {sku} must be positive.", data={"sku": sku, "ordered_quantity": str(quantity)}
            )
        cleaned.append((sku, quantity, data))

    try:
        with transaction.atomic():
            order = Order.objects.create(
                kind=kind,
                number=next_number(Order.objects.all(), prefix=prefix),
                reference=reference,
                created_by=user if getattr(user, "pk", None) else None,
            )
            for sku, quantity, data in cleaned:
                OrderLine.objects.create(
                    order=order,
                    sku=sku,
                    product_name=str(data.get("product_name") or ""),
                    variant_sku=str(data.get("variant_sku") or ""),
                    ordered_quantity=quantity,
                )
    except IntegrityError as exc:
        # Another order took the same number; the caller may simply retry.
        raise ConflictError("Order number already taken; retry.") from exc

    try:
        logger.info(
            "order_confirmed",
            extra={"event": "order_confirmed", "order_id": order.id, "number": order.number, "kind": order.kind},
        )
    except Exception:
        pass
    return order


@transaction.atomic
def change_ordered_quantity(line_id: int, quantity) -> OrderLine:
    """Correct the ordered quantity of a source line nothing references yet."""

    quantity = parse_quantity(quantity, "ordered_quantity")
    if quantity <= 0:
        raise ValidationError("Ordered quantity must be positive.", data={"ordered_quantity": str(quantity)})
    ledger = SourceLineLedger()
    line = ledger.get_line(line_id, lock=True)
    if ledger.is_referenced(line.id):
        raise ForbiddenError(
            f"Ordered quantity of source line {line.id} is fixed once documents reference it.",
            status=line.order.status,
            allowed=(),
        )
    previous = Decimal(line.ordered_quantity)
    line.ordered_quantity = quantity
    line.save(update_fields=["ordered_quantity", "updated_at"])
    try:
        logger.info(
            "order_line_quantity_changed",
            extra={
                "event": "order_line_quantity_changed",
                "line_id": line.id,
                "quantity_from": str(previous),
                "quantity_to": str(quantity),
            },
        )
    except Exception:
        pass
    return line


def close_order(order_id: int) -> Order:
    try:
        order = Order.objects.get(id=order_id)
    except Order.DoesNotExist:
        raise NotFoundError(f"Order {order_id} not found.", data={"order_id": order_id})
    if order.status == Order.STATUS_CLOSED:
        return order
    order.status = Order.STATUS_CLOSED
    order.save(update_fields=["status", "updated_at"])
    return order
