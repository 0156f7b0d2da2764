from decimal import Decimal

import pytest
from common.numbering import next_number, number_prefix
from django.db import transaction
from fulfillment import aggregate as aggregate_module
from fulfillment.aggregate import DocumentAggregate, parse_quantity
from fulfillment.coordinator import TransactionalCoordinator
from fulfillment.exceptions import NotFoundError, ValidationError
from fulfillment.ledger import SourceLineLedger
from fulfillment.models import Document, DocumentLine
from fulfillment.reconciliation import ReconciliationEngine
from fulfillment.services import FulfillmentService
from fulfillment.tests.factories import DocumentFactory, DocumentLineFactory
from orders.tests.factories import OrderLineFactory, UserFactory


def _load(document_id):
    ledger = SourceLineLedger()
    return DocumentAggregate.load(document_id, ledger=ledger, engine=ReconciliationEngine(ledger))


@pytest.mark.parametrize(
    "value,expected",
    [("3", Decimal("3")), (2, Decimal("2")), ("0.125", Decimal("0.125")), (Decimal("1.500"), Decimal("1.5"))],
)
def test_parse_quantity_accepts_finite_decimals(value, expected):
    assert parse_quantity(value) == expected


@pytest.mark.parametrize("value", [None, "", "abc", "NaN", "Infinity", True, "0.0001", "1e20"])
def test_parse_quantity_rejects_bad_input(value):
    with pytest.raises(ValidationError):
        parse_quantity(value, "quantity_shipped")


class RecordingLedger(SourceLineLedger):
    def __init__(self):
        self.locked = []

    def lock(self, source_line_ids):
        rows = super().lock(source_line_ids)
        self.locked.append(list(rows))
        return rows


@pytest.mark.django_db
def test_create_locks_all_source_lines_in_ascending_order_first():
    user = UserFactory()
    low = OrderLineFactory()
    high = OrderLineFactory(order=low.order)
    ledger = RecordingLedger()
    lines = [
        {"source_line_id": high.id, "quantity_shipped": "1"},
        {"source_line_id": low.id, "quantity_shipped": "1"},
    ]

    with transaction.atomic():
        DocumentAggregate.create(
            "delivery",
            {"order_id": low.order_id, "origin_location": "WH-1"},
            lines,
            actor=user,
            ledger=ledger,
            engine=ReconciliationEngine(ledger),
        )

    assert ledger.locked[0] == [low.id, high.id]


@pytest.mark.django_db
def test_create_rejects_non_object_lines():
    source = OrderLineFactory()
    ledger = SourceLineLedger()
    with pytest.raises(ValidationError):
        with transaction.atomic():
            DocumentAggregate.create(
                "delivery",
                {"order_id": source.order_id, "origin_location": "WH-1"},
                [source.id],
                actor=UserFactory(),
                ledger=ledger,
                engine=ReconciliationEngine(ledger),
            )


@pytest.mark.django_db
@pytest.mark.parametrize("items", [[7], ["line"], [None]])
def test_ship_rejects_non_object_items(items):
    line = DocumentLineFactory(quantity_shipped=Decimal("2"))
    with pytest.raises(ValidationError) as exc:
        with transaction.atomic():
            _load(line.document_id).ship(items, actor=UserFactory())
    assert "must be an object" in exc.value.message


@pytest.mark.django_db
def test_number_collision_is_retried_with_a_fresh_number(monkeypatch):
    user = UserFactory()
    source = OrderLineFactory()
    service = FulfillmentService(coordinator=TransactionalCoordinator(attempts=3, sleep=lambda s: None))
    header = {"order_id": source.order_id, "origin_location": "WH-1"}
    lines = [{"source_line_id": source.id, "quantity_shipped": "1"}]
    first = service.create_document("delivery", header, lines, actor=user)

    calls = []

    def stale_then_fresh(queryset, *, prefix, **kwargs):
        calls.append(prefix)
        if len(calls) == 1:
            return first.number
        return next_number(queryset, prefix=prefix, **kwargs)

    monkeypatch.setattr(aggregate_module, "next_number", stale_then_fresh)
    second = service.create_document("delivery", header, lines, actor=user)

    assert calls == ["DL", "DL"]
    assert second.number == f"{number_prefix('DL')}00002"
    assert Document.objects.count() == 2


@pytest.mark.django_db
def test_deleted_document_numbers_are_not_reused():
    user = UserFactory()
    source = OrderLineFactory()
    service = FulfillmentService()
    header = {"order_id": source.order_id, "origin_location": "WH-1"}
    lines = [{"source_line_id": source.id, "quantity_shipped": "1"}]
    first = service.create_document("delivery", header, lines, actor=user)
    service.delete_document(first.id, actor=user)

    second = service.create_document("delivery", header, lines, actor=user)
    assert second.number != first.number


@pytest.mark.django_db
def test_load_missing_document():
    with pytest.raises(NotFoundError):
        _load(999999)
    with pytest.raises(NotFoundError):
        _load("abc")


@pytest.mark.django_db
def test_validate_detects_overcommitment_written_behind_its_back():
    source = OrderLineFactory(ordered_quantity=Decimal("5"))
    line = DocumentLineFactory(document__order=source.order, source_line=source, quantity_shipped=Decimal("3"))
    DocumentLineFactory(document__order=source.order, source_line=source, quantity_shipped=Decimal("2"))

    with transaction.atomic():
        _load(line.document_id).validate()

    DocumentLine.objects.filter(id=line.id).update(quantity_shipped=Decimal("4"))
    with pytest.raises(ValidationError) as exc:
        with transaction.atomic():
            _load(line.document_id).validate()
    assert exc.value.data == {"source_line_id": source.id, "ordered": "5.000", "committed": "6.000"}


@pytest.mark.django_db
def test_validate_checks_multi_step_counters_and_source_order():
    source = OrderLineFactory(ordered_quantity=Decimal("10"))
    document = DocumentFactory(order=source.order, kind="stock_transfer", status="pending", destination_location="WH-2")
    DocumentLineFactory(
        document=document, source_line=source, quantity_requested=Decimal("0"), quantity_shipped=Decimal("0")
    )

    with pytest.raises(ValidationError) as exc:
        with transaction.atomic():
            _load(document.id).validate()
    assert "must be positive" in exc.value.message

    foreign = OrderLineFactory()
    other = DocumentFactory(order=source.order)
    DocumentLineFactory(document=other, source_line=foreign, quantity_shipped=Decimal("1"))
    with pytest.raises(NotFoundError):
        with transaction.atomic():
            _load(other.id).validate()


@pytest.mark.django_db
def test_lines_are_loaded_in_id_order():
    source_a = OrderLineFactory()
    source_b = OrderLineFactory(order=source_a.order)
    document = DocumentFactory(order=source_a.order)
    first = DocumentLineFactory(document=document, source_line=source_b)
    second = DocumentLineFactory(document=document, source_line=source_a)

    with transaction.atomic():
        aggregate = _load(document.id)
    assert [line.id for line in aggregate.lines] == [first.id, second.id]
    assert aggregate.get_line(str(second.id)) == second


# EOF
