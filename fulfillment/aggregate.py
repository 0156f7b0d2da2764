"""Document aggregate: one document and its lines for the length of a unit of work.

Every mutation checks the lifecycle gate, reconciles quantities against the
source line ledger, writes, and finishes with ``validate()``. A failure raised
anywhere rolls the surrounding transaction back, so nothing partial is kept.
Must be used inside ``TransactionalCoordinator.run_exclusive``.
"""

import logging
from decimal import Decimal, InvalidOperation

from common.choices import DocumentStatus, QuantityStep
from common.numbering import next_number
from django.db import IntegrityError, transaction
from django.utils import timezone
from django.utils.dateparse import parse_date
from orders.models import Order

from .exceptions import NotFoundError, ValidationError, WriteConflict
from .kinds import QUANTITY_STEP, ZERO, KindPolicy, policy_for
from .ledger import SourceLineLedger
from .models import Document, DocumentLine, DocumentStatusEvent
from .reconciliation import LineCandidate, ReconciliationContext, ReconciliationEngine
from .state_machine import StateMachine

logger = logging.getLogger("fulfillment.documents")

QUANTITY_LIMIT = Decimal("1000000000000")


def _log(event: str, **fields) -> None:
    try:
        logger.info(event, extra={"event": event, **fields})
    except Exception:
        # Logging should never break mutations
        pass


def parse_quantity(value, field: str = "quantity") -> Decimal:
    """Parse a user-supplied quantity, rejecting anything not a finite decimal."""

    if value is None or value == "":
        raise ValidationError(f"'{field}' is required.", data={"field": field})
    if isinstance(value, bool):
        raise ValidationError(f"'{field}' must be a number.", data={"field": field, "value": str(value)})
    try:
        quantity = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"'{field}' must be a number.", data={"field": field, "value": str(value)})
    if not quantity.is_finite() or abs(quantity) >= QUANTITY_LIMIT:
        raise ValidationError(f"'{field}' is out of range.", data={"field": field, "value": str(value)})
    if quantity != quantity.quantize(QUANTITY_STEP):
        raise ValidationError(
            f"'{field}' allows at most 3 decimal places.", data={"field": field, "value": str(value)}
        )
    return quantity


def _identifier(value, field: str) -> int:
    if value is None or value == "" or isinstance(value, bool):
        raise ValidationError(f"'{field}' is required.", data={"field": field})
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"'{field}' must be an integer.", data={"field": field, "value": str(value)})


def _clean_header(policy: KindPolicy, patch: dict) -> dict:
    unknown = sorted(set(patch) - set(policy.header_fields))
    if unknown:
        raise ValidationError(
            f"Unknown or read-only header fields: {', '.join(unknown)}.",
            data={"fields": unknown, "allowed": list(policy.header_fields)},
        )
    cleaned = {}
    for name, value in patch.items():
        if name == "requested_date":
            if value in (None, ""):
                cleaned[name] = None
                continue
            parsed = value if hasattr(value, "isoformat") else parse_date(str(value))
            if parsed is None:
                raise ValidationError("'requested_date' must be a date (YYYY-MM-DD).", data={"field": name})
            cleaned[name] = parsed
        else:
            cleaned[name] = "" if value is None else str(value).strip()
    return cleaned


def _check_locations(policy: KindPolicy, document: Document) -> None:
    if not document.origin_location:
        raise ValidationError(
            f"A {policy.kind.replace('_', ' ')} requires an origin location.", data={"field": "origin_location"}
        )
    if policy.requires_destination and not document.destination_location:
        raise ValidationError(
            "A stock transfer requires a destination location.", data={"field": "destination_location"}
        )
    if policy.distinct_locations and document.origin_location == document.destination_location:
        raise ValidationError(
            "Origin and destination locations must differ.",
            data={"origin_location": document.origin_location, "destination_location": document.destination_location},
        )


class DocumentAggregate:
    def __init__(
        self,
        document: Document,
        lines,
        *,
        ledger: SourceLineLedger,
        engine: ReconciliationEngine,
        machine: StateMachine | None = None,
    ):
        self.document = document
        self.lines = list(lines)
        self.ledger = ledger
        self.engine = engine
        self.machine = machine or StateMachine()

    @property
    def policy(self) -> KindPolicy:
        return policy_for(self.document.kind)

    @classmethod
    def load(cls, document_id, *, ledger, engine, machine=None, lock: bool = True) -> "DocumentAggregate":
        qs = Document.objects.all()
        if lock:
            qs = qs.select_for_update()
        try:
            document = qs.get(id=document_id)
        except (Document.DoesNotExist, ValueError, TypeError):
            raise NotFoundError(f"Document {document_id} not found.", data={"document_id": document_id})
        lines = DocumentLine.objects.filter(document=document).order_by("id")
        return cls(document, lines, ledger=ledger, engine=engine, machine=machine)

    @classmethod
    def create(cls, kind, header: dict, lines, *, actor, ledger, engine, machine=None) -> "DocumentAggregate":
        policy = policy_for(kind)
        header = dict(header or {})
        order_id = _identifier(header.pop("order_id", None), "order_id")
        fields = _clean_header(policy, header)

        try:
            order = Order.objects.get(id=order_id)
        except Order.DoesNotExist:
            raise NotFoundError(f"Order {order_id} not found.", data={"order_id": order_id})
        if order.kind != policy.order_kind:
            raise ValidationError(
                f"Order {order.number} is a {order.kind}; a {policy.kind} requires a {policy.order_kind}.",
                data={"order_id": order.id, "order_kind": order.kind, "expected": policy.order_kind},
            )
        if order.status != Order.STATUS_CONFIRMED:
            raise ValidationError(
                f"Order {order.number} is not confirmed (status '{order.status}').",
                data={"order_id": order.id, "status": order.status},
            )

        lines = list(lines or [])
        if not lines:
            raise ValidationError("A document requires at least one line.", data={"lines": 0})
        for data in lines:
            if not isinstance(data, dict):
                raise ValidationError("Each line must be an object.", data={"value": str(data)})
        # One sorted lock for every source line, same order as any other unit of work
        ledger.lock([_identifier(data.get("source_line_id"), "source_line_id") for data in lines])

        document = Document(
            kind=policy.kind, status=policy.initial, order=order, created_by=actor, updated_by=actor, **fields
        )
        _check_locations(policy, document)
        document.number = next_number(Document.all_objects.all(), prefix=policy.prefix)
        try:
            with transaction.atomic():
                document.save()
        except IntegrityError as exc:
            raise WriteConflict(f"Document number {document.number} already taken") from exc

        DocumentStatusEvent.objects.create(document=document, status_from="", status_to=document.status, actor=actor)
        aggregate = cls(document, [], ledger=ledger, engine=engine, machine=machine)
        for line in lines:
            aggregate._insert_line(line)
        aggregate.validate()
        _log(
            "document_created",
            document_id=document.id,
            number=document.number,
            kind=document.kind,
            order_id=order.id,
            lines=len(aggregate.lines),
            user_id=getattr(actor, "id", None),
        )
        return aggregate

    # Lines

    def get_line(self, line_id) -> DocumentLine:
        line_id = _identifier(line_id, "line_id")
        for line in self.lines:
            if line.id == line_id:
                return line
        raise NotFoundError(
            f"Line {line_id} not found on {self.document.number}.",
            data={"line_id": line_id, "document_id": self.document.id},
        )

    def _input_quantity(self, data: dict) -> Decimal:
        name = self.policy.quantity_input
        value = data.get(name, data.get("quantity"))
        return parse_quantity(value, name)

    def _insert_line(self, data: dict) -> DocumentLine:
        document = self.document
        policy = self.policy
        source_line_id = _identifier(data.get("source_line_id"), "source_line_id")
        quantity = self._input_quantity(data)
        if any(line.source_line_id == source_line_id for line in self.lines):
            raise ValidationError(
                f"Source line {source_line_id} already has a line on {document.number}.",
                data={"source_line_id": source_line_id},
            )

        source = self.ledger.lock([source_line_id])[source_line_id]
        self.engine.validate(
            LineCandidate(source_line_id, quantity, QuantityStep.REQUESTED),
            ReconciliationContext(order_id=document.order_id),
        )
        line = DocumentLine(
            document=document,
            source_line=source,
            sku=source.sku,
            product_name=source.product_name,
            variant_sku=source.variant_sku,
        )
        setattr(line, policy.requested_column, quantity)
        line.save()
        self.lines.append(line)
        return line

    def add_line(self, data: dict, *, actor) -> DocumentLine:
        self.machine.ensure_lines_mutable(self.document)
        line = self._insert_line(data)
        self._touch(actor)
        self.validate()
        _log(
            "document_line_added",
            document_id=self.document.id,
            line_id=line.id,
            source_line_id=line.source_line_id,
            quantity=str(getattr(line, self.policy.requested_column)),
            user_id=getattr(actor, "id", None),
        )
        return line

    def update_line(self, line_id, patch: dict, *, actor) -> DocumentLine:
        self.machine.ensure_lines_mutable(self.document)
        line = self.get_line(line_id)
        column = self.policy.requested_column
        quantity = self._input_quantity(patch or {})
        previous = getattr(line, column)

        self.ledger.lock([line.source_line_id])
        self.engine.validate(
            LineCandidate(line.source_line_id, quantity, QuantityStep.REQUESTED),
            ReconciliationContext(order_id=self.document.order_id, excluding_line_id=line.id),
        )
        setattr(line, column, quantity)
        line.save(update_fields=[column, "updated_at"])
        self._touch(actor)
        self.validate()
        _log(
            "document_line_updated",
            document_id=self.document.id,
            line_id=line.id,
            source_line_id=line.source_line_id,
            quantity_from=str(previous),
            quantity_to=str(quantity),
            user_id=getattr(actor, "id", None),
        )
        return line

    def remove_line(self, line_id, *, actor) -> None:
        self.machine.ensure_lines_mutable(self.document)
        line = self.get_line(line_id)
        removed_id = line.id
        line.delete()
        self.lines = [lin for lin in self.lines if lin.id != removed_id]
        self._touch(actor)
        self.validate()
        _log(
            "document_line_removed",
            document_id=self.document.id,
            line_id=removed_id,
            source_line_id=line.source_line_id,
            user_id=getattr(actor, "id", None),
        )

    # Header

    def update_header(self, patch: dict, *, actor) -> Document:
        self.machine.ensure_header_mutable(self.document)
        fields = _clean_header(self.policy, dict(patch or {}))
        for name, value in fields.items():
            setattr(self.document, name, value)
        _check_locations(self.policy, self.document)
        self.document.updated_by = actor
        self.document.save(update_fields=[*fields, "updated_by", "updated_at"])
        return self.document

    def _touch(self, actor) -> None:
        self.document.updated_by = actor
        self.document.save(update_fields=["updated_by", "updated_at"])

    # Lifecycle

    def _set_status(self, target: str, *, actor, extra_fields=()) -> None:
        document = self.document
        previous = document.status
        document.status = str(target)
        document.updated_by = actor
        document.save(update_fields=["status", "updated_by", "updated_at", *extra_fields])
        DocumentStatusEvent.objects.create(
            document=document, status_from=previous, status_to=document.status, actor=actor
        )
        _log(
            "document_status_changed",
            document_id=document.id,
            number=document.number,
            kind=document.kind,
            status_from=previous,
            status_to=document.status,
            user_id=getattr(actor, "id", None),
        )

    def _collect(self, items, field: str, action: str) -> list:
        items = list(items or [])
        if not items:
            raise ValidationError(f"At least one line {action} is required.", data={"count": 0})
        collected = []
        seen = set()
        for item in items:
            if not isinstance(item, dict):
                raise ValidationError(f"Each {action} item must be an object.", data={"value": str(item)})
            line = self.get_line(item.get("line_id"))
            if line.id in seen:
                raise ValidationError(
                    f"Line {line.id} appears more than once in this {action}.", data={"line_id": line.id}
                )
            seen.add(line.id)
            value = item.get(field, item.get("quantity"))
            collected.append((line, parse_quantity(value, field)))
        return collected

    def ship(self, shipments, *, actor, shipped_at=None) -> Document:
        document = self.document
        policy = self.policy
        self.machine.ensure_can_ship(document)
        self.machine.ensure_transition(document, policy.transit)
        collected = self._collect(shipments, "quantity_shipped", "shipment")

        self.ledger.lock([line.source_line_id for line, _ in collected])
        for line, quantity in collected:
            self.engine.validate(
                LineCandidate(line.source_line_id, quantity, QuantityStep.SHIPPED),
                ReconciliationContext(
                    order_id=document.order_id, excluding_line_id=line.id, line=line, multi_step=policy.multi_step
                ),
            )
            line.quantity_shipped = quantity
            line.save(update_fields=["quantity_shipped", "updated_at"])

        document.shipped_at = shipped_at or timezone.now()
        document.shipped_by = actor
        self._set_status(policy.transit, actor=actor, extra_fields=("shipped_at", "shipped_by"))
        self.validate()
        return document

    def receive(self, receipts, *, actor, received_at=None) -> Document:
        document = self.document
        policy = self.policy
        self.machine.ensure_can_receive(document)

        if not policy.multi_step:
            if receipts:
                raise ValidationError(
                    f"A {policy.kind} tracks no received quantities; receive it without line receipts.",
                    data={"count": len(list(receipts))},
                )
        else:
            for line, quantity in self._collect(receipts, "quantity_received", "receipt"):
                self.engine.validate(
                    LineCandidate(line.source_line_id, quantity, QuantityStep.RECEIVED),
                    ReconciliationContext(
                        order_id=document.order_id, excluding_line_id=line.id, line=line, multi_step=True
                    ),
                )
                line.quantity_received = quantity
                line.save(update_fields=["quantity_received", "updated_at"])

        target = self.machine.status_after_receipt(document, self.lines)
        document.received_at = received_at or timezone.now()
        document.received_by = actor
        if target != document.status:
            self.machine.ensure_transition(document, target)
            self._set_status(target, actor=actor, extra_fields=("received_at", "received_by"))
        else:
            document.updated_by = actor
            document.save(update_fields=["received_at", "received_by", "updated_by", "updated_at"])
        self.validate()
        return document

    def cancel(self, *, actor) -> Document:
        self.machine.ensure_transition(self.document, DocumentStatus.CANCELLED)
        self._set_status(DocumentStatus.CANCELLED, actor=actor)
        self.validate()
        return self.document

    def transition(self, target, *, actor) -> Document:
        self.machine.ensure_manual_transition(self.document, target)
        self._set_status(target, actor=actor)
        self.validate()
        return self.document

    def soft_delete(self, *, actor) -> Document:
        document = self.document
        self.machine.ensure_can_delete(document)
        document.deleted_at = timezone.now()
        document.updated_by = actor
        document.save(update_fields=["deleted_at", "updated_by", "updated_at"])
        _log(
            "document_deleted",
            document_id=document.id,
            number=document.number,
            status=document.status,
            user_id=getattr(actor, "id", None),
        )
        return document

    # Invariants

    def validate(self) -> None:
        """Re-check every document invariant against the current rows.

        Runs after each write and before the unit of work commits; raising here
        rolls the whole unit of work back.
        """

        document = self.document
        policy = self.policy
        if document.status not in policy.statuses:
            raise ValidationError(
                f"Status '{document.status}' is not valid for a {policy.kind}.",
                data={"status": document.status, "allowed": sorted(policy.statuses)},
            )

        seen = set()
        for line in self.lines:
            if line.source_line_id in seen:
                raise ValidationError(
                    f"Source line {line.source_line_id} appears twice on {document.number}.",
                    data={"source_line_id": line.source_line_id},
                )
            seen.add(line.source_line_id)
            self._check_line(line)

        for source_line_id in sorted(seen):
            position = self.ledger.position(source_line_id, order_id=document.order_id)
            if position.committed > position.ordered:
                raise ValidationError(
                    f"Source line {source_line_id} (product: {position.line.label}) is overcommitted: "
                    f"committed {position.committed:.3f} of {position.ordered:.3f} ordered.",
                    data={
                        "source_line_id": source_line_id,
                        "ordered": str(position.ordered),
                        "committed": str(position.committed),
                    },
                )

    def _check_line(self, line: DocumentLine) -> None:
        policy = self.policy
        requested = getattr(line, policy.requested_column)
        if self.document.status in policy.mutable and (requested is None or requested <= ZERO):
            raise ValidationError(
                f"Line {line.id} quantity must be positive.", data={"line_id": line.id, "quantity": str(requested)}
            )
        shipped = Decimal(line.quantity_shipped or ZERO)
        received = Decimal(line.quantity_received or ZERO)
        if received < ZERO or shipped < ZERO:
            raise ValidationError(f"Line {line.id} has a negative counter.", data={"line_id": line.id})
        if policy.multi_step:
            if not received <= shipped <= Decimal(line.quantity_requested or ZERO):
                raise ValidationError(
                    f"Line {line.id} violates received <= shipped <= requested.",
                    data={
                        "line_id": line.id,
                        "requested": str(line.quantity_requested),
                        "shipped": str(shipped),
                        "received": str(received),
                    },
                )
        elif received != ZERO:
            raise ValidationError(f"Line {line.id} cannot carry a received quantity.", data={"line_id": line.id})


# EOF
