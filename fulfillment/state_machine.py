"""Document lifecycle rules.

Validates transitions and decides whether header or line edits are allowed in
the document's current status. Violations raise ``ForbiddenError`` naming the
current status and the statuses that would have been accepted.
"""

from common.choices import DocumentStatus

from .exceptions import ForbiddenError
from .kinds import KindPolicy, policy_for


class StateMachine:
    def policy(self, document) -> KindPolicy:
        return policy_for(document.kind)

    def _forbid(self, document, action: str, allowed) -> None:
        raise ForbiddenError(
            f"Cannot {action} {document.number or 'document'} in status '{document.status}'. "
            f"Allowed statuses: {', '.join(sorted(allowed)) or 'none'}.",
            status=document.status,
            allowed=allowed,
        )

    def ensure_lines_mutable(self, document) -> None:
        policy = self.policy(document)
        if document.status not in policy.mutable:
            self._forbid(document, "modify lines of", policy.mutable)

    def ensure_header_mutable(self, document) -> None:
        policy = self.policy(document)
        if document.status not in policy.mutable:
            self._forbid(document, "modify", policy.mutable)

    def ensure_can_ship(self, document) -> None:
        policy = self.policy(document)
        if document.status not in policy.shippable:
            self._forbid(document, "ship", policy.shippable)

    def ensure_can_receive(self, document) -> None:
        policy = self.policy(document)
        if document.status not in policy.receivable:
            self._forbid(document, "receive", policy.receivable)

    def ensure_can_delete(self, document) -> None:
        policy = self.policy(document)
        allowed = policy.mutable | {DocumentStatus.CANCELLED.value}
        if document.status not in allowed:
            self._forbid(document, "delete", allowed)

    def allowed_targets(self, document) -> tuple:
        return self.policy(document).transitions.get(document.status, ())

    def ensure_transition(self, document, target: str) -> None:
        target = str(target)
        allowed = self.allowed_targets(document)
        if target not in allowed:
            raise ForbiddenError(
                f"Invalid status transition from '{document.status}' to '{target}' for {document.number}.",
                status=document.status,
                allowed=allowed,
            )

    def ensure_manual_transition(self, document, target: str) -> None:
        """Check a move requested through the generic transition operation.

        Shipping, receiving and cancelling have dedicated operations and are
        refused here.
        """
        target = str(target)
        policy = self.policy(document)
        manual = sorted(b for a, b in policy.manual if a == document.status)
        if target not in manual:
            raise ForbiddenError(
                f"Status '{target}' cannot be set directly on {document.number} from '{document.status}'.",
                status=document.status,
                allowed=manual,
            )
        self.ensure_transition(document, target)

    def status_after_receipt(self, document, lines) -> str:
        policy = self.policy(document)
        if not policy.multi_step:
            return policy.completed
        if all(line.quantity_received >= line.quantity_shipped for line in lines):
            return policy.completed
        return policy.partial or document.status


# EOF
