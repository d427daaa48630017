"""
Atomic units over the Django ORM.

Every balance-affecting operation runs as a closure passed to
atomic_unit(). The closure executes inside transaction.atomic(); rows it
needs to read-then-write are locked with select_for_update() and counters
are moved with F() expressions, so either every change in the unit lands
or none does.

Transient database conflicts (lock timeouts, serialization failures,
"database is locked") surface as OperationalError. The unit is rolled
back and the closure re-run, up to LEDGER["ATOMIC_ATTEMPTS"] times in
total. Closures must therefore be free of external side effects and must
not draw random numbers: a retry has to replay the same writes.

Domain exceptions raised by the closure roll the unit back and propagate
unchanged; they are never retried.
"""

import logging
import time

from django.db import OperationalError, transaction

from ledger.conf import ledger_setting
from ledger.domain.exceptions import StoreConflictError

logger = logging.getLogger(__name__)

RETRY_BACKOFF_SECONDS = 0.05


def atomic_unit(work, *, attempts=None, label=None):
    """Run ``work()`` as one atomic unit and return its result."""
    attempts = attempts or ledger_setting("ATOMIC_ATTEMPTS")
    label = label or getattr(work, "__name__", "unit")

    for attempt in range(1, attempts + 1):
        try:
            with transaction.atomic():
                return work()
        except OperationalError as exc:
            if attempt == attempts:
                logger.error(
                    "Atomic unit exhausted retries: unit=%s attempts=%s error=%s",
                    label, attempts, exc,
                )
                raise StoreConflictError(attempts, exc) from exc
            logger.warning(
                "Atomic unit conflict, retrying: unit=%s attempt=%s error=%s",
                label, attempt, exc,
            )
            time.sleep(RETRY_BACKOFF_SECONDS * attempt)
