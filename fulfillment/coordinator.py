"""Transactional coordinator: run a unit of work atomically, retrying conflicts.

Row locks taken by the ledger (``SELECT ... FOR UPDATE``) serialize units of
work touching the same source line. Deadlocks, serialization failures and
lock timeouts surface as ``OperationalError`` and are retried with backoff;
business errors propagate untouched. Nothing is committed unless the unit of
work returns before its deadline.
"""

import logging
import random
import time

from django.conf import settings
from django.db import DEFAULT_DB_ALIAS, DatabaseError, OperationalError, transaction

from .exceptions import ConflictError, FulfillmentError, OperationTimeoutError, ServerError, WriteConflict

logger = logging.getLogger("fulfillment.coordinator")


class UnitOfWork:
    """Handle passed to a unit of work for the duration of one attempt."""

    def __init__(self, *, using: str, attempt: int, deadline: float | None):
        self.using = using
        self.attempt = attempt
        self.deadline = deadline

    def check_deadline(self) -> None:
        if self.deadline is not None and time.monotonic() > self.deadline:
            raise OperationTimeoutError()

    def on_commit(self, func) -> None:
        transaction.on_commit(func, using=self.using)


class TransactionalCoordinator:
    def __init__(self, *, attempts=None, backoff=None, max_backoff=None, using=DEFAULT_DB_ALIAS, sleep=time.sleep):
        self.attempts = max(
            1, int(attempts if attempts is not None else getattr(settings, "FULFILLMENT_RETRY_ATTEMPTS", 3))
        )
        self.backoff = float(
            backoff if backoff is not None else getattr(settings, "FULFILLMENT_RETRY_BACKOFF_SECONDS", 0.05)
        )
        self.max_backoff = float(
            max_backoff if max_backoff is not None else getattr(settings, "FULFILLMENT_RETRY_MAX_BACKOFF_SECONDS", 1.0)
        )
        self.using = using
        self._sleep = sleep

    def delay(self, attempt: int) -> float:
        base = min(self.max_backoff, self.backoff * (2 ** (attempt - 1)))
        return base + random.uniform(0, base / 2) if base > 0 else 0.0

    def run_exclusive(self, unit_of_work, *, timeout: float | None = None):
        last_exc = None
        for attempt in range(1, self.attempts + 1):
            deadline = time.monotonic() + timeout if timeout else None
            try:
                with transaction.atomic(using=self.using):
                    self._apply_statement_timeout(timeout)
                    tx = UnitOfWork(using=self.using, attempt=attempt, deadline=deadline)
                    result = unit_of_work(tx)
                    tx.check_deadline()
                return result
            except FulfillmentError:
                raise
            except (OperationalError, WriteConflict) as exc:
                if deadline is not None and time.monotonic() > deadline:
                    # statement_timeout cancellations surface as OperationalError
                    raise OperationTimeoutError() from exc
                last_exc = exc
                logger.warning(
                    "unit_of_work_retry",
                    extra={
                        "event": "unit_of_work_retry",
                        "attempt": attempt,
                        "max_attempts": self.attempts,
                        "error": str(exc),
                    },
                )
                if attempt < self.attempts:
                    self._sleep(self.delay(attempt))
            except DatabaseError as exc:
                logger.exception("storage_error", extra={"event": "storage_error", "attempt": attempt})
                raise ServerError() from exc

        logger.error(
            "unit_of_work_conflict",
            extra={"event": "unit_of_work_conflict", "attempts": self.attempts, "error": str(last_exc)},
        )
        raise ConflictError(data={"attempts": self.attempts}) from last_exc

    def _apply_statement_timeout(self, timeout: float | None) -> None:
        if not timeout:
            return
        connection = transaction.get_connection(self.using)
        if connection.vendor != "postgresql":
            return
        with connection.cursor() as cursor:
            cursor.execute("SET LOCAL statement_timeout = %s", [int(timeout * 1000)])


# EOF
