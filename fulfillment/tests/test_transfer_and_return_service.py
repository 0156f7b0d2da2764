from decimal import Decimal

import pytest
from fulfillment.exceptions import ForbiddenError, ValidationError
from fulfillment.models import DocumentLine
from fulfillment.services import FulfillmentService
from orders.models import Order
from orders.tests.factories import OrderFactory, OrderLineFactory, UserFactory


def _transfer_line(quantity="10"):
    return OrderLineFactory(
        order=OrderFactory(kind=Order.KIND_TRANSFER_REQUEST), ordered_quantity=Decimal(quantity)
    )


def _return_line(quantity="10"):
    return OrderLineFactory(order=OrderFactory(kind=Order.KIND_RETURN_REQUEST), ordered_quantity=Decimal(quantity))


def _transfer(service, source, quantity, actor, **header):
    header = {"order_id": source.order_id, "origin_location": "WH-A", "destination_location": "WH-B", **header}
    return service.create_document(
        "stock_transfer", header, [{"source_line_id": source.id, "quantity_requested": quantity}], actor=actor
    )


@pytest.mark.django_db
def test_stock_transfer_scenario_ship_then_receive():
    user = UserFactory()
    source = _transfer_line("10")
    service = FulfillmentService()
    doc = _transfer(service, source, "10", user)
    line = doc.lines.get()
    assert line.quantity_requested == Decimal("10")
    assert line.quantity_shipped == Decimal("0")

    shipped = service.ship(doc.id, [{"line_id": line.id, "quantity_shipped": "6"}], actor=user)
    assert shipped.status == "in_transit"
    # In transit only the shipped quantity holds capacity
    assert service.remaining_committable(source.id) == Decimal("4")

    with pytest.raises(ValidationError) as exc:
        service.receive(doc.id, [{"line_id": line.id, "quantity_received": "8"}], actor=user)
    assert exc.value.data["shipped"] == "6.000"

    received = service.receive(doc.id, [{"line_id": line.id, "quantity_received": "6"}], actor=user)
    assert received.status == "received"
    assert received.received_by == user
    line.refresh_from_db()
    assert (line.quantity_requested, line.quantity_shipped, line.quantity_received) == (
        Decimal("10"),
        Decimal("6"),
        Decimal("6"),
    )


@pytest.mark.django_db
def test_transfer_ship_cannot_exceed_requested():
    user = UserFactory()
    source = _transfer_line("20")
    service = FulfillmentService()
    doc = _transfer(service, source, "10", user)

    with pytest.raises(ValidationError) as exc:
        service.ship(doc.id, [{"line_id": doc.lines.get().id, "quantity_shipped": "11"}], actor=user)
    assert "exceeds requested quantity" in exc.value.message


@pytest.mark.django_db
def test_transfer_partial_receipt_then_completion():
    user = UserFactory()
    a = _transfer_line("10")
    b = OrderLineFactory(order=a.order, ordered_quantity=Decimal("4"))
    service = FulfillmentService()
    doc = service.create_document(
        "stock_transfer",
        {"order_id": a.order_id, "origin_location": "WH-A", "destination_location": "WH-B"},
        [{"source_line_id": a.id, "quantity_requested": "5"}, {"source_line_id": b.id, "quantity_requested": "4"}],
        actor=user,
    )
    la = doc.lines.get(source_line=a)
    lb = doc.lines.get(source_line=b)
    service.ship(
        doc.id,
        [{"line_id": la.id, "quantity_shipped": "5"}, {"line_id": lb.id, "quantity_shipped": "4"}],
        actor=user,
    )

    partial = service.receive(doc.id, [{"line_id": la.id, "quantity_received": "5"}], actor=user)
    assert partial.status == "partially_received"

    with pytest.raises(ValidationError):
        service.receive(doc.id, [{"line_id": la.id, "quantity_received": "4"}], actor=user)

    done = service.receive(doc.id, [{"line_id": lb.id, "quantity_received": "4"}], actor=user)
    assert done.status == "received"
    with pytest.raises(ForbiddenError):
        service.receive(doc.id, [{"line_id": lb.id, "quantity_received": "4"}], actor=user)


@pytest.mark.django_db
def test_transfer_locations_must_differ():
    user = UserFactory()
    source = _transfer_line()
    service = FulfillmentService()

    with pytest.raises(ValidationError):
        _transfer(service, source, "1", user, destination_location="WH-A")
    with pytest.raises(ValidationError):
        _transfer(service, source, "1", user, destination_location="")
    doc = _transfer(service, source, "1", user)
    with pytest.raises(ValidationError):
        service.update_document(doc.id, {"destination_location": "WH-A"}, actor=user)


@pytest.mark.django_db
def test_supplier_return_lifecycle():
    user = UserFactory()
    source = _return_line("10")
    service = FulfillmentService()
    doc = service.create_document(
        "supplier_return",
        {"order_id": source.order_id, "origin_location": "WH-1", "notes": "damaged"},
        [{"source_line_id": source.id, "quantity": "4"}],
        actor=user,
    )
    line = doc.lines.get()
    assert doc.status == "requested"
    assert doc.number.startswith("SR-")
    assert line.quantity_requested == Decimal("4")

    with pytest.raises(ForbiddenError):
        service.ship(doc.id, [{"line_id": line.id, "quantity_shipped": "4"}], actor=user)
    service.transition(doc.id, "approved", actor=user)
    # Still editable once approved
    service.update_line(doc.id, line.id, {"quantity": "5"}, actor=user)
    service.ship(doc.id, [{"line_id": line.id, "quantity_shipped": "5"}], actor=user)

    partial = service.receive(doc.id, [{"line_id": line.id, "quantity_received": "2"}], actor=user)
    assert partial.status == "shipped"
    done = service.receive(doc.id, [{"line_id": line.id, "quantity_received": "5"}], actor=user)
    assert done.status == "received"


@pytest.mark.django_db
def test_rejected_supplier_return_releases_capacity():
    user = UserFactory()
    source = _return_line("4")
    service = FulfillmentService()
    doc = service.create_document(
        "supplier_return",
        {"order_id": source.order_id, "origin_location": "WH-1"},
        [{"source_line_id": source.id, "quantity": "4"}],
        actor=user,
    )
    assert service.remaining_committable(source.id) == Decimal("0")
    service.transition(doc.id, "rejected", actor=user)
    assert service.remaining_committable(source.id) == Decimal("4")
    with pytest.raises(ForbiddenError):
        service.add_line(doc.id, {"source_line_id": source.id, "quantity": "1"}, actor=user)


@pytest.mark.django_db
def test_counters_stay_ordered_after_every_operation():
    user = UserFactory()
    source = _transfer_line("10")
    service = FulfillmentService()
    doc = _transfer(service, source, "8", user)
    line = doc.lines.get()
    service.update_line(doc.id, line.id, {"quantity_requested": "9"}, actor=user)
    service.ship(doc.id, [{"line_id": line.id, "quantity_shipped": "7"}], actor=user)
    service.receive(doc.id, [{"line_id": line.id, "quantity_received": "3"}], actor=user)

    for row in DocumentLine.objects.all():
        assert Decimal("0") <= row.quantity_received <= row.quantity_shipped <= row.quantity_requested


# EOF
