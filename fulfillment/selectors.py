"""Read-side queries for fulfillment documents and source lines."""

from decimal import Decimal

from django.db.models import Prefetch, Sum, Value
from django.db.models.functions import Coalesce
from orders.models import OrderLine

from .kinds import QUANTITY_OUTPUT, ZERO, committed_quantity_expression
from .models import Document, DocumentLine, DocumentStatusEvent


def list_documents(*, kind: str | None = None, status: str | None = None, order_id=None):
    qs = Document.objects.select_related("order").order_by("-created_at", "-id")
    if kind:
        qs = qs.filter(kind=kind)
    if status:
        qs = qs.filter(status=status)
    if order_id:
        qs = qs.filter(order_id=order_id)
    return qs


def document_detail_queryset():
    return Document.objects.select_related("order", "created_by", "shipped_by", "received_by").prefetch_related(
        Prefetch("lines", queryset=DocumentLine.objects.with_committed().order_by("id")),
        Prefetch("status_events", queryset=DocumentStatusEvent.objects.select_related("actor")),
    )


def source_line_summary(source_line_id: int) -> dict | None:
    """Ordered/committed/remaining for one source line, plus the live lines consuming it.

    Informational only: decisions against the remaining quantity happen inside
    a unit of work through the ledger.
    """

    try:
        line = OrderLine.objects.select_related("order").get(id=source_line_id)
    except OrderLine.DoesNotExist:
        return None
    consumers = list(
        DocumentLine.objects.live()
        .for_source_line(line.id)
        .select_related("document")
        .with_committed()
        .order_by("id")
    )
    committed = sum((Decimal(c.committed) for c in consumers), Decimal("0"))
    ordered = Decimal(line.ordered_quantity)
    return {
        "source_line_id": line.id,
        "order_id": line.order_id,
        "order_number": line.order.number,
        "sku": line.sku,
        "ordered": ordered,
        "committed": committed,
        "remaining": ordered - committed,
        "documents": [
            {
                "document_id": c.document_id,
                "number": c.document.number,
                "kind": c.document.kind,
                "status": c.document.status,
                "line_id": c.id,
                "committed": Decimal(c.committed),
            }
            for c in consumers
        ],
    }


def overcommitted_source_lines():
    """Source lines whose live committed quantity exceeds the ordered quantity."""

    rows = (
        DocumentLine.objects.live()
        .values("source_line_id", "source_line__ordered_quantity", "source_line__sku")
        .annotate(committed=_committed_sum())
        .order_by("source_line_id")
    )
    return [
        {
            "source_line_id": row["source_line_id"],
            "sku": row["source_line__sku"],
            "ordered": Decimal(row["source_line__ordered_quantity"]),
            "committed": Decimal(row["committed"]),
        }
        for row in rows
        if Decimal(row["committed"]) > Decimal(row["source_line__ordered_quantity"])
    ]


def _committed_sum():
    return Coalesce(Sum(committed_quantity_expression()), Value(ZERO), output_field=QUANTITY_OUTPUT)


# EOF
