from types import SimpleNamespace

import pytest
from fulfillment.exceptions import ForbiddenError
from fulfillment.kinds import DELIVERY, POLICIES, STOCK_TRANSFER, SUPPLIER_RETURN
from fulfillment.models import Document
from fulfillment.state_machine import StateMachine

machine = StateMachine()


def _doc(kind, status):
    return Document(kind=kind, status=status, number=f"{kind}-1")


def test_terminal_statuses_have_no_outgoing_transitions():
    assert DELIVERY.terminal == {"delivered", "failed_delivery", "cancelled"}
    assert STOCK_TRANSFER.terminal == {"received", "cancelled"}
    assert SUPPLIER_RETURN.terminal == {"received", "rejected", "cancelled"}


@pytest.mark.parametrize("policy", list(POLICIES.values()), ids=lambda p: p.kind)
def test_cancel_reachable_from_every_non_terminal_status(policy):
    for status in policy.statuses - policy.terminal:
        machine.ensure_transition(_doc(policy.kind, status), "cancelled")
    for status in policy.terminal:
        with pytest.raises(ForbiddenError):
            machine.ensure_transition(_doc(policy.kind, status), "cancelled")


def test_line_edits_gated_by_mutable_set():
    machine.ensure_lines_mutable(_doc("delivery", "pending"))
    machine.ensure_lines_mutable(_doc("delivery", "in_preparation"))
    machine.ensure_lines_mutable(_doc("supplier_return", "approved"))

    with pytest.raises(ForbiddenError) as exc:
        machine.ensure_lines_mutable(_doc("delivery", "shipped"))
    err = exc.value
    assert err.status == "shipped"
    assert err.allowed == ["in_preparation", "pending"]
    assert err.data == {"status": "shipped", "allowed": ["in_preparation", "pending"]}
    assert "'shipped'" in err.message


def test_header_edits_gated_by_mutable_set():
    machine.ensure_header_mutable(_doc("stock_transfer", "in_preparation"))
    with pytest.raises(ForbiddenError):
        machine.ensure_header_mutable(_doc("stock_transfer", "in_transit"))


def test_ship_and_receive_eligibility():
    machine.ensure_can_ship(_doc("delivery", "pending"))
    machine.ensure_can_ship(_doc("stock_transfer", "in_preparation"))
    machine.ensure_can_ship(_doc("supplier_return", "approved"))
    with pytest.raises(ForbiddenError):
        machine.ensure_can_ship(_doc("supplier_return", "requested"))
    with pytest.raises(ForbiddenError):
        machine.ensure_can_ship(_doc("delivery", "delivered"))

    machine.ensure_can_receive(_doc("stock_transfer", "in_transit"))
    machine.ensure_can_receive(_doc("stock_transfer", "partially_received"))
    with pytest.raises(ForbiddenError) as exc:
        machine.ensure_can_receive(_doc("delivery", "pending"))
    assert exc.value.allowed == ["shipped"]


def test_ready_to_ship_freezes_lines_but_still_ships():
    ready = _doc("delivery", "ready_to_ship")

    with pytest.raises(ForbiddenError) as exc:
        machine.ensure_lines_mutable(ready)
    assert exc.value.allowed == ["in_preparation", "pending"]
    with pytest.raises(ForbiddenError):
        machine.ensure_header_mutable(ready)

    machine.ensure_can_ship(ready)
    machine.ensure_transition(ready, "shipped")
    machine.ensure_transition(ready, "cancelled")
    assert machine.allowed_targets(ready) == ("shipped", "cancelled")
    machine.ensure_manual_transition(_doc("delivery", "in_preparation"), "ready_to_ship")
    with pytest.raises(ForbiddenError):
        machine.ensure_manual_transition(_doc("delivery", "pending"), "ready_to_ship")
    # Only deliveries have a ready-to-ship step
    assert "ready_to_ship" not in STOCK_TRANSFER.statuses
    assert "ready_to_ship" not in SUPPLIER_RETURN.statuses


def test_manual_transitions_refuse_moves_owned_by_dedicated_operations():
    machine.ensure_manual_transition(_doc("delivery", "pending"), "in_preparation")
    machine.ensure_manual_transition(_doc("delivery", "shipped"), "failed_delivery")
    machine.ensure_manual_transition(_doc("supplier_return", "requested"), "rejected")

    for kind, status, target in [
        ("delivery", "pending", "shipped"),
        ("delivery", "shipped", "delivered"),
        ("delivery", "pending", "cancelled"),
        ("stock_transfer", "in_transit", "received"),
        ("supplier_return", "approved", "shipped"),
    ]:
        with pytest.raises(ForbiddenError):
            machine.ensure_manual_transition(_doc(kind, status), target)


def test_delete_allowed_while_mutable_or_cancelled():
    machine.ensure_can_delete(_doc("delivery", "pending"))
    machine.ensure_can_delete(_doc("stock_transfer", "cancelled"))
    with pytest.raises(ForbiddenError):
        machine.ensure_can_delete(_doc("delivery", "shipped"))
    with pytest.raises(ForbiddenError):
        machine.ensure_can_delete(_doc("stock_transfer", "received"))


def _lines(*pairs):
    return [SimpleNamespace(quantity_shipped=s, quantity_received=r) for s, r in pairs]


def test_status_after_receipt():
    transfer = _doc("stock_transfer", "in_transit")
    assert machine.status_after_receipt(transfer, _lines((6, 6), (2, 2))) == "received"
    assert machine.status_after_receipt(transfer, _lines((6, 6), (2, 1))) == "partially_received"
    # Lines that shipped nothing have nothing left to receive
    assert machine.status_after_receipt(transfer, _lines((6, 6), (0, 0))) == "received"

    ret = _doc("supplier_return", "shipped")
    assert machine.status_after_receipt(ret, _lines((4, 2))) == "shipped"
    assert machine.status_after_receipt(ret, _lines((4, 4))) == "received"

    assert machine.status_after_receipt(_doc("delivery", "shipped"), []) == "delivered"


# EOF
