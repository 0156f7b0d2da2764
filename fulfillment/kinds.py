"""Per-kind policies for fulfillment documents.

Deliveries, stock transfers and supplier returns share one engine; what differs
between them (status labels, which statuses allow edits, how many quantity
steps a line tracks, the number prefix) lives in a ``KindPolicy``.
"""

from dataclasses import dataclass, field
from decimal import Decimal

from common.choices import DocumentKind, OrderKind, QuantityStep
from common.choices import DocumentStatus as S
from django.db.models import Case, DecimalField, F, Value, When

from .exceptions import ValidationError

ZERO = Decimal("0")
QUANTITY_STEP = Decimal("0.001")

QUANTITY_OUTPUT = DecimalField(max_digits=15, decimal_places=3)


@dataclass(frozen=True)
class KindPolicy:
    kind: str
    prefix: str
    order_kind: str
    initial: str
    mutable: frozenset
    shippable: frozenset
    transit: str
    completed: str
    transitions: dict
    # Moves available through the generic ``transition`` operation.
    manual: frozenset
    # Statuses in which the document no longer holds source-line capacity.
    released: frozenset
    multi_step: bool
    quantity_input: str
    partial: str | None = None
    requires_destination: bool = False
    distinct_locations: bool = False
    header_fields: tuple = field(
        default=(
            "origin_location",
            "destination_location",
            "requested_date",
            "carrier_name",
            "tracking_number",
            "notes",
        )
    )

    def __post_init__(self):
        # Rows carry plain strings; keep every label as one too.
        for name in ("kind", "order_kind", "initial", "transit", "completed", "partial"):
            value = getattr(self, name)
            if value is not None:
                object.__setattr__(self, name, str(value))
        for name in ("mutable", "shippable", "released"):
            object.__setattr__(self, name, frozenset(str(s) for s in getattr(self, name)))
        object.__setattr__(self, "manual", frozenset((str(a), str(b)) for a, b in self.manual))
        object.__setattr__(
            self, "transitions", {str(k): tuple(str(t) for t in v) for k, v in self.transitions.items()}
        )

    @property
    def statuses(self) -> frozenset:
        found = set(self.transitions)
        for targets in self.transitions.values():
            found.update(targets)
        return frozenset(found)

    @property
    def terminal(self) -> frozenset:
        return frozenset(s for s in self.statuses if not self.transitions.get(s))

    @property
    def receivable(self) -> frozenset:
        if self.partial:
            return frozenset({self.transit, self.partial})
        return frozenset({self.transit})

    @property
    def requested_column(self) -> str:
        """Model column holding the quantity a line asks for while editable."""
        return "quantity_requested" if self.multi_step else "quantity_shipped"

    def committed_step(self, status: str) -> str | None:
        """Which counter counts against the source line in ``status``."""
        if status in self.released:
            return None
        if not self.multi_step:
            return QuantityStep.SHIPPED
        if status in self.mutable:
            return QuantityStep.REQUESTED
        if status == self.completed:
            return QuantityStep.RECEIVED
        return QuantityStep.SHIPPED

    def committed_quantity(self, line, status: str) -> Decimal:
        step = self.committed_step(status)
        if step is None:
            return ZERO
        return Decimal(getattr(line, f"quantity_{step}") or ZERO)


DELIVERY = KindPolicy(
    kind=DocumentKind.DELIVERY,
    prefix="DL",
    order_kind=OrderKind.SALES_ORDER,
    initial=S.PENDING,
    mutable=frozenset({S.PENDING, S.IN_PREPARATION}),
    # Picked and packed: lines are frozen but the delivery has not left yet.
    shippable=frozenset({S.PENDING, S.IN_PREPARATION, S.READY_TO_SHIP}),
    transit=S.SHIPPED,
    completed=S.DELIVERED,
    transitions={
        S.PENDING: (S.IN_PREPARATION, S.SHIPPED, S.CANCELLED),
        S.IN_PREPARATION: (S.READY_TO_SHIP, S.SHIPPED, S.CANCELLED),
        S.READY_TO_SHIP: (S.SHIPPED, S.CANCELLED),
        S.SHIPPED: (S.DELIVERED, S.FAILED_DELIVERY, S.CANCELLED),
        S.DELIVERED: (),
        S.FAILED_DELIVERY: (),
        S.CANCELLED: (),
    },
    manual=frozenset(
        {
            (S.PENDING, S.IN_PREPARATION),
            (S.IN_PREPARATION, S.READY_TO_SHIP),
            (S.SHIPPED, S.FAILED_DELIVERY),
        }
    ),
    released=frozenset({S.CANCELLED, S.FAILED_DELIVERY}),
    multi_step=False,
    quantity_input="quantity_shipped",
)

STOCK_TRANSFER = KindPolicy(
    kind=DocumentKind.STOCK_TRANSFER,
    prefix="TRF",
    order_kind=OrderKind.TRANSFER_REQUEST,
    initial=S.PENDING,
    mutable=frozenset({S.PENDING, S.IN_PREPARATION}),
    shippable=frozenset({S.PENDING, S.IN_PREPARATION}),
    transit=S.IN_TRANSIT,
    partial=S.PARTIALLY_RECEIVED,
    completed=S.RECEIVED,
    transitions={
        S.PENDING: (S.IN_PREPARATION, S.IN_TRANSIT, S.CANCELLED),
        S.IN_PREPARATION: (S.IN_TRANSIT, S.CANCELLED),
        S.IN_TRANSIT: (S.PARTIALLY_RECEIVED, S.RECEIVED, S.CANCELLED),
        S.PARTIALLY_RECEIVED: (S.RECEIVED, S.CANCELLED),
        S.RECEIVED: (),
        S.CANCELLED: (),
    },
    manual=frozenset({(S.PENDING, S.IN_PREPARATION)}),
    released=frozenset({S.CANCELLED}),
    multi_step=True,
    quantity_input="quantity_requested",
    requires_destination=True,
    distinct_locations=True,
)

SUPPLIER_RETURN = KindPolicy(
    kind=DocumentKind.SUPPLIER_RETURN,
    prefix="SR",
    order_kind=OrderKind.RETURN_REQUEST,
    initial=S.REQUESTED,
    mutable=frozenset({S.REQUESTED, S.APPROVED}),
    shippable=frozenset({S.APPROVED}),
    transit=S.SHIPPED,
    completed=S.RECEIVED,
    transitions={
        S.REQUESTED: (S.APPROVED, S.REJECTED, S.CANCELLED),
        S.APPROVED: (S.SHIPPED, S.CANCELLED),
        S.SHIPPED: (S.RECEIVED, S.CANCELLED),
        S.RECEIVED: (),
        S.REJECTED: (),
        S.CANCELLED: (),
    },
    manual=frozenset({(S.REQUESTED, S.APPROVED), (S.REQUESTED, S.REJECTED)}),
    released=frozenset({S.CANCELLED, S.REJECTED}),
    multi_step=True,
    quantity_input="quantity",
)

POLICIES = {p.kind: p for p in (DELIVERY, STOCK_TRANSFER, SUPPLIER_RETURN)}


def policy_for(kind) -> KindPolicy:
    try:
        return POLICIES[str(kind)]
    except KeyError:
        raise ValidationError(f"Unknown document kind '{kind}'.", data={"allowed": sorted(POLICIES)})


def committed_quantity_expression(prefix: str = ""):
    """SQL expression for a document line's committed quantity.

    ``prefix`` is the lookup path from the queried model to ``DocumentLine``
    (empty when querying lines directly).
    """

    whens = []
    for policy in POLICIES.values():
        for status in sorted(policy.statuses):
            step = policy.committed_step(status)
            if step is None:
                continue
            whens.append(
                When(
                    **{f"{prefix}document__kind": policy.kind, f"{prefix}document__status": status},
                    then=F(f"{prefix}quantity_{step}"),
                )
            )
    return Case(*whens, default=Value(ZERO), output_field=QUANTITY_OUTPUT)

# EOF
