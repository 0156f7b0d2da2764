"""Line reconciliation: accept or reject a candidate line quantity.

Rejections always block the mutation. Quantities are never clamped to fit.
"""

from dataclasses import dataclass
from decimal import Decimal

from common.choices import QuantityStep

from .exceptions import ValidationError
from .ledger import SourceLineLedger


@dataclass(frozen=True)
class LineCandidate:
    source_line_id: int
    quantity: Decimal
    step: str = QuantityStep.REQUESTED


@dataclass(frozen=True)
class ReconciliationContext:
    order_id: int | None = None
    excluding_line_id: int | None = None
    # Existing line when shipping/receiving; needed for the step ordering checks.
    line: object = None
    multi_step: bool = False


def _fmt(value: Decimal) -> str:
    return f"{Decimal(value):.3f}"


class ReconciliationEngine:
    def __init__(self, ledger: SourceLineLedger | None = None):
        self.ledger = ledger or SourceLineLedger()

    def validate(self, candidate: LineCandidate, context: ReconciliationContext) -> None:
        quantity = Decimal(candidate.quantity)
        if quantity <= 0:
            raise ValidationError(
                f"Quantity for source line {candidate.source_line_id} must be positive.",
                data={"source_line_id": candidate.source_line_id, "requested": str(quantity), "minimum": "0"},
            )

        step = str(candidate.step)
        if context.multi_step and context.line is not None:
            self._check_step_order(step, quantity, context.line)

        if step == QuantityStep.RECEIVED:
            # Receipt is bounded by what was shipped, which was already reconciled.
            return

        position = self.ledger.position(
            candidate.source_line_id, context.excluding_line_id, order_id=context.order_id
        )
        if quantity > position.remaining:
            raise ValidationError(
                f"Quantity {_fmt(quantity)} for source line {position.line.id} "
                f"(product: {position.line.label}) exceeds remaining committable quantity "
                f"({_fmt(position.remaining)}). Ordered: {_fmt(position.ordered)}, "
                f"already committed: {_fmt(position.committed)}.",
                data={
                    "source_line_id": position.line.id,
                    "sku": position.line.sku,
                    "requested": str(quantity),
                    "remaining": str(position.remaining),
                    "ordered": str(position.ordered),
                    "committed": str(position.committed),
                },
            )

    def _check_step_order(self, step: str, quantity: Decimal, line) -> None:
        requested = Decimal(line.quantity_requested or 0)
        shipped = Decimal(line.quantity_shipped or 0)
        received = Decimal(line.quantity_received or 0)
        if step == QuantityStep.SHIPPED and quantity > requested:
            raise ValidationError(
                f"Shipped quantity {_fmt(quantity)} for line {line.id} exceeds requested quantity ({_fmt(requested)}).",
                data={"line_id": line.id, "shipped": str(quantity), "requested": str(requested)},
            )
        if step == QuantityStep.RECEIVED:
            if quantity > shipped:
                raise ValidationError(
                    f"Received quantity {_fmt(quantity)} for line {line.id} "
                    f"exceeds shipped quantity ({_fmt(shipped)}).",
                    data={"line_id": line.id, "received": str(quantity), "shipped": str(shipped)},
                )
            if quantity < received:
                raise ValidationError(
                    f"Received quantity for line {line.id} cannot decrease "
                    f"(currently {_fmt(received)}, got {_fmt(quantity)}).",
                    data={"line_id": line.id, "received": str(quantity), "current": str(received)},
                )


# EOF
