from decimal import Decimal
from types import SimpleNamespace

import pytest
from common.choices import QuantityStep
from fulfillment.exceptions import NotFoundError, ValidationError
from fulfillment.ledger import LinePosition, SourceLineLedger
from fulfillment.reconciliation import LineCandidate, ReconciliationContext, ReconciliationEngine
from fulfillment.tests.factories import DocumentLineFactory
from orders.tests.factories import OrderFactory, OrderLineFactory


class InMemoryLedger:
    """Ledger stand-in: fixed ordered/committed figures per source line."""

    def __init__(self, lines):
        self.lines = lines
        self.calls = []

    def position(self, source_line_id, excluding_line_id=None, *, order_id=None):
        self.calls.append((source_line_id, excluding_line_id, order_id))
        ordered, committed = self.lines[source_line_id]
        line = SimpleNamespace(id=source_line_id, sku=f"SKU-{source_line_id}", label=f"SKU-{source_line_id} (Jacket)")
        return LinePosition(line=line, ordered=Decimal(ordered), committed=Decimal(committed))


def test_accepts_quantity_up_to_remaining():
    ledger = InMemoryLedger({1: ("5", "3")})
    engine = ReconciliationEngine(ledger)

    engine.validate(LineCandidate(1, Decimal("2")), ReconciliationContext(order_id=7, excluding_line_id=11))
    assert ledger.calls == [(1, 11, 7)]


def test_rejects_quantity_above_remaining_with_bounds():
    engine = ReconciliationEngine(InMemoryLedger({1: ("5", "3")}))

    with pytest.raises(ValidationError) as exc:
        engine.validate(LineCandidate(1, Decimal("3")), ReconciliationContext())

    err = exc.value
    assert "SKU-1 (Jacket)" in err.message
    assert "exceeds remaining committable quantity (2.000)" in err.message
    assert "Ordered: 5.000, already committed: 3.000" in err.message
    assert err.data["requested"] == "3"
    assert err.data["remaining"] == "2"
    assert err.data["ordered"] == "5"
    assert err.data["committed"] == "3"


@pytest.mark.parametrize("quantity", [Decimal("0"), Decimal("-1")])
def test_rejects_non_positive_quantities_before_reading_the_ledger(quantity):
    ledger = InMemoryLedger({1: ("5", "0")})
    with pytest.raises(ValidationError) as exc:
        ReconciliationEngine(ledger).validate(LineCandidate(1, quantity), ReconciliationContext())
    assert "must be positive" in exc.value.message
    assert ledger.calls == []


def test_never_clamps_an_oversized_quantity():
    engine = ReconciliationEngine(InMemoryLedger({1: ("1", "0.999")}))
    with pytest.raises(ValidationError):
        engine.validate(LineCandidate(1, Decimal("0.002")), ReconciliationContext())


def _line(requested, shipped, received):
    return SimpleNamespace(
        id=3,
        quantity_requested=Decimal(requested),
        quantity_shipped=Decimal(shipped),
        quantity_received=Decimal(received),
    )


def test_shipped_step_cannot_exceed_requested():
    engine = ReconciliationEngine(InMemoryLedger({1: ("100", "10")}))
    context = ReconciliationContext(line=_line("10", "0", "0"), multi_step=True, excluding_line_id=3)

    engine.validate(LineCandidate(1, Decimal("6"), QuantityStep.SHIPPED), context)
    with pytest.raises(ValidationError) as exc:
        engine.validate(LineCandidate(1, Decimal("11"), QuantityStep.SHIPPED), context)
    assert "exceeds requested quantity" in exc.value.message


def test_received_step_is_bounded_by_shipped_and_never_decreases():
    ledger = InMemoryLedger({})
    engine = ReconciliationEngine(ledger)
    context = ReconciliationContext(line=_line("10", "6", "2"), multi_step=True)

    engine.validate(LineCandidate(1, Decimal("6"), QuantityStep.RECEIVED), context)
    with pytest.raises(ValidationError) as exc:
        engine.validate(LineCandidate(1, Decimal("8"), QuantityStep.RECEIVED), context)
    assert exc.value.data == {"line_id": 3, "received": "8", "shipped": "6"}
    with pytest.raises(ValidationError) as exc:
        engine.validate(LineCandidate(1, Decimal("1"), QuantityStep.RECEIVED), context)
    assert "cannot decrease" in exc.value.message
    # Receipts never consult source line capacity
    assert ledger.calls == []


@pytest.mark.django_db
def test_against_the_database_ledger():
    source = OrderLineFactory(ordered_quantity=Decimal("5"))
    DocumentLineFactory(document__order=source.order, source_line=source, quantity_shipped=Decimal("3"))
    engine = ReconciliationEngine(SourceLineLedger())

    engine.validate(LineCandidate(source.id, Decimal("2")), ReconciliationContext(order_id=source.order_id))
    with pytest.raises(ValidationError):
        engine.validate(LineCandidate(source.id, Decimal("3")), ReconciliationContext(order_id=source.order_id))
    with pytest.raises(NotFoundError):
        engine.validate(LineCandidate(source.id, Decimal("1")), ReconciliationContext(order_id=OrderFactory().id))


# EOF
