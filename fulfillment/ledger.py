"""Source line ledger: ordered vs. committed quantity per order line.

All reads must run inside the caller's transaction. ``lock`` takes row locks
on the order lines so that read-decide-write sequences against the same
source line serialize across processes.
"""

from dataclasses import dataclass
from decimal import Decimal

from orders.models import OrderLine

from .exceptions import NotFoundError
from .kinds import QUANTITY_STEP
from .models import DocumentLine


@dataclass(frozen=True)
class LinePosition:
    line: OrderLine
    ordered: Decimal
    committed: Decimal

    @property
    def remaining(self) -> Decimal:
        return self.ordered - self.committed


class SourceLineLedger:
    def get_line(self, source_line_id: int, *, order_id: int | None = None, lock: bool = False) -> OrderLine:
        qs = OrderLine.objects.select_related("order")
        if lock:
            qs = qs.select_for_update()
        try:
            line = qs.get(id=source_line_id)
        except (OrderLine.DoesNotExist, ValueError, TypeError):
            raise NotFoundError(f"Source line {source_line_id} not found.", data={"source_line_id": source_line_id})
        if order_id is not None and line.order_id != order_id:
            raise NotFoundError(
                f"Source line {source_line_id} does not belong to order {order_id}.",
                data={"source_line_id": source_line_id, "order_id": order_id},
            )
        return line

    def lock(self, source_line_ids) -> dict:
        """Lock the given order lines in ascending id order and return them by id."""
        ids = sorted({int(i) for i in source_line_ids})
        if not ids:
            return {}
        rows = {line.id: line for line in OrderLine.objects.select_for_update().filter(id__in=ids).order_by("id")}
        missing = [i for i in ids if i not in rows]
        if missing:
            raise NotFoundError(f"Source line {missing[0]} not found.", data={"source_line_id": missing[0]})
        return rows

    def committed_quantity(self, source_line_id: int, *, excluding_line_id: int | None = None) -> Decimal:
        qs = DocumentLine.objects.live().for_source_line(source_line_id)
        if excluding_line_id is not None:
            qs = qs.exclude(id=excluding_line_id)
        # SQLite drops the column scale on aggregates
        return Decimal(qs.committed_total()).quantize(QUANTITY_STEP)

    def position(
        self, source_line_id: int, excluding_line_id: int | None = None, *, order_id: int | None = None
    ) -> LinePosition:
        line = self.get_line(source_line_id, order_id=order_id)
        return LinePosition(
            line=line,
            ordered=Decimal(line.ordered_quantity).quantize(QUANTITY_STEP),
            committed=self.committed_quantity(source_line_id, excluding_line_id=excluding_line_id),
        )

    def remaining_committable(
        self, source_line_id: int, excluding_line_id: int | None = None, *, order_id: int | None = None
    ) -> Decimal:
        return self.position(source_line_id, excluding_line_id, order_id=order_id).remaining

    def is_referenced(self, source_line_id: int) -> bool:
        return DocumentLine.objects.live().for_source_line(source_line_id).exists()


# EOF
