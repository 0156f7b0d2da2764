"""Fulfillment services: the operations exposed to the request-handling layer.

Each operation runs as one unit of work inside the transactional coordinator:
load (and lock) the document, apply the mutation through the aggregate, and
commit. Errors are the typed exceptions from ``fulfillment.exceptions``.
"""

from decimal import Decimal

from .aggregate import DocumentAggregate
from .coordinator import TransactionalCoordinator
from .exceptions import ValidationError
from .ledger import SourceLineLedger
from .models import Document, DocumentLine
from .reconciliation import ReconciliationEngine
from .state_machine import StateMachine


def _require_actor(actor) -> None:
    if actor is None or getattr(actor, "pk", None) is None:
        raise ValidationError("An authenticated actor is required.", data={"field": "actor"})


class FulfillmentService:
    def __init__(
        self,
        *,
        ledger: SourceLineLedger | None = None,
        coordinator: TransactionalCoordinator | None = None,
        engine: ReconciliationEngine | None = None,
        machine: StateMachine | None = None,
    ):
        self.ledger = ledger or SourceLineLedger()
        self.coordinator = coordinator or TransactionalCoordinator()
        self.engine = engine or ReconciliationEngine(self.ledger)
        self.machine = machine or StateMachine()

    def _load(self, document_id) -> DocumentAggregate:
        return DocumentAggregate.load(document_id, ledger=self.ledger, engine=self.engine, machine=self.machine)

    def _on_document(self, document_id, mutate, *, actor, timeout=None):
        _require_actor(actor)

        def unit_of_work(tx):
            aggregate = self._load(document_id)
            result = mutate(aggregate)
            tx.check_deadline()
            return result

        return self.coordinator.run_exclusive(unit_of_work, timeout=timeout)

    def create_document(self, kind, header: dict, lines, *, actor, timeout=None) -> Document:
        _require_actor(actor)

        def unit_of_work(tx):
            aggregate = DocumentAggregate.create(
                kind, header, lines, actor=actor, ledger=self.ledger, engine=self.engine, machine=self.machine
            )
            tx.check_deadline()
            return aggregate.document

        return self.coordinator.run_exclusive(unit_of_work, timeout=timeout)

    def add_line(self, document_id, line: dict, *, actor, timeout=None) -> DocumentLine:
        return self._on_document(document_id, lambda agg: agg.add_line(line, actor=actor), actor=actor, timeout=timeout)

    def update_line(self, document_id, line_id, patch: dict, *, actor, timeout=None) -> DocumentLine:
        return self._on_document(
            document_id, lambda agg: agg.update_line(line_id, patch, actor=actor), actor=actor, timeout=timeout
        )

    def remove_line(self, document_id, line_id, *, actor, timeout=None) -> None:
        self._on_document(document_id, lambda agg: agg.remove_line(line_id, actor=actor), actor=actor, timeout=timeout)

    def update_document(self, document_id, patch: dict, *, actor, timeout=None) -> Document:
        return self._on_document(
            document_id, lambda agg: agg.update_header(patch, actor=actor), actor=actor, timeout=timeout
        )

    def ship(self, document_id, shipments, *, actor, shipped_at=None, timeout=None) -> Document:
        return self._on_document(
            document_id,
            lambda agg: agg.ship(shipments, actor=actor, shipped_at=shipped_at),
            actor=actor,
            timeout=timeout,
        )

    def receive(self, document_id, receipts, *, actor, received_at=None, timeout=None) -> Document:
        return self._on_document(
            document_id,
            lambda agg: agg.receive(receipts, actor=actor, received_at=received_at),
            actor=actor,
            timeout=timeout,
        )

    def cancel(self, document_id, *, actor, timeout=None) -> Document:
        return self._on_document(document_id, lambda agg: agg.cancel(actor=actor), actor=actor, timeout=timeout)

    def transition(self, document_id, status, *, actor, timeout=None) -> Document:
        return self._on_document(
            document_id, lambda agg: agg.transition(status, actor=actor), actor=actor, timeout=timeout
        )

    def delete_document(self, document_id, *, actor, timeout=None) -> Document:
        return self._on_document(document_id, lambda agg: agg.soft_delete(actor=actor), actor=actor, timeout=timeout)

    def remaining_committable(self, source_line_id, excluding_line_id=None) -> Decimal:
        return self.coordinator.run_exclusive(
            lambda tx: self.ledger.remaining_committable(source_line_id, excluding_line_id)
        )


_default = None


def default_service() -> FulfillmentService:
    global _default
    if _default is None:
        _default = FulfillmentService()
    return _default


def create_document(kind, header: dict, lines, *, actor, timeout=None) -> Document:
    return default_service().create_document(kind, header, lines, actor=actor, timeout=timeout)


def add_line(document_id, line: dict, *, actor, timeout=None) -> DocumentLine:
    return default_service().add_line(document_id, line, actor=actor, timeout=timeout)


def update_line(document_id, line_id, patch: dict, *, actor, timeout=None) -> DocumentLine:
    return default_service().update_line(document_id, line_id, patch, actor=actor, timeout=timeout)


def remove_line(document_id, line_id, *, actor, timeout=None) -> None:
    default_service().remove_line(document_id, line_id, actor=actor, timeout=timeout)


def update_document(document_id, patch: dict, *, actor, timeout=None) -> Document:
    return default_service().update_document(document_id, patch, actor=actor, timeout=timeout)


def ship(document_id, shipments, *, actor, shipped_at=None, timeout=None) -> Document:
    return default_service().ship(document_id, shipments, actor=actor, shipped_at=shipped_at, timeout=timeout)


def receive(document_id, receipts, *, actor, received_at=None, timeout=None) -> Document:
    return default_service().receive(document_id, receipts, actor=actor, received_at=received_at, timeout=timeout)


def cancel(document_id, *, actor, timeout=None) -> Document:
    return default_service().cancel(document_id, actor=actor, timeout=timeout)


def transition(document_id, status, *, actor, timeout=None) -> Document:
    return default_service().transition(document_id, status, actor=actor, timeout=timeout)


def delete_document(document_id, *, actor, timeout=None) -> Document:
    return default_service().delete_document(document_id, actor=actor, timeout=timeout)


def remaining_committable(source_line_id, excluding_line_id=None) -> Decimal:
    return default_service().remaining_committable(source_line_id, excluding_line_id)


# EOF
