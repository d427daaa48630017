"""
Application Use Case — Monthly Aggregate Reset

Zeroes every Account's monthly aggregates (stamping last_monthly_reset)
and every owned Device's monthly earnings, busy minutes and utilization.

The number of row updates is one per account plus one per device, which
routinely exceeds what a single commit may carry. Updates are therefore
accumulated into chunks of RESET_CHUNK_SIZE operations, kept strictly
below BATCH_WRITE_LIMIT. Each full chunk is committed as soon as it fills
(on a thread pool when RESET_WORKERS > 1) and the final partial chunk
after traversal. Every chunk is its own atomic unit: a failed chunk is
recorded and the rest still commit. When any chunk fails the run ends
with PartialBatchFailure carrying the full report.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

from django.core.exceptions import ImproperlyConfigured
from django.db import DatabaseError, connections
from django.utils import timezone

from ledger.application.store import atomic_unit
from ledger.conf import ledger_settings
from ledger.domain.exceptions import LedgerError, PartialBatchFailure
from ledger.models import Account, Device

logger = logging.getLogger(__name__)


@dataclass
class Chunk:
    index: int
    account_ids: list = field(default_factory=list)
    device_ids: list = field(default_factory=list)

    def __len__(self):
        return len(self.account_ids) + len(self.device_ids)


@dataclass(frozen=True)
class ChunkFailure:
    index: int
    account_ids: list
    device_ids: list
    error: str


@dataclass
class ResetReport:
    accounts_reset: int = 0
    devices_reset: int = 0
    chunks_attempted: int = 0
    chunks_committed: int = 0
    failed_chunks: list = field(default_factory=list)

    @property
    def ok(self):
        return not self.failed_chunks


def plan_chunks(chunk_size):
    """
    Yields chunks of at most ``chunk_size`` update operations.

    Accounts are walked in id order; each account's operation is followed
    by its devices' operations. A chunk is yielded the moment it is full,
    so accounts and their devices may straddle a chunk boundary.
    """
    devices_by_account = {}
    for account_id, device_id in Device.objects.order_by("account_id", "id").values_list(
        "account_id", "id"
    ):
        devices_by_account.setdefault(account_id, []).append(device_id)

    account_ids = list(Account.objects.order_by("id").values_list("id", flat=True))

    chunk = Chunk(index=0)
    for account_id in account_ids:
        chunk.account_ids.append(account_id)
        if len(chunk) >= chunk_size:
            yield chunk
            chunk = Chunk(index=chunk.index + 1)

        for device_id in devices_by_account.get(account_id, ()):
            chunk.device_ids.append(device_id)
            if len(chunk) >= chunk_size:
                yield chunk
                chunk = Chunk(index=chunk.index + 1)

    if len(chunk):
        yield chunk


def commit_chunk(chunk, reset_at):
    """Applies one chunk of resets as a single atomic unit."""

    def zero():
        accounts = Account.objects.filter(id__in=chunk.account_ids).update(
            monthly_earnings=0,
            monthly_kwh_delivered=0,
            monthly_sessions=0,
            monthly_co2_offset=0,
            last_monthly_reset=reset_at,
        )
        devices = Device.objects.filter(id__in=chunk.device_ids).update(
            monthly_earnings=0,
            monthly_duration_minutes=0,
            utilization=0,
        )
        return accounts, devices

    return atomic_unit(zero, label=f"reset_chunk_{chunk.index}")


def _commit_in_worker(chunk, reset_at):
    try:
        return commit_chunk(chunk, reset_at)
    finally:
        # Worker threads own their connections; hand them back when done.
        connections.close_all()


def _resolve_chunk_size(chunk_size):
    conf = ledger_settings()
    chunk_size = chunk_size or conf["RESET_CHUNK_SIZE"]
    limit = conf["BATCH_WRITE_LIMIT"]
    if not 0 < chunk_size < limit:
        raise ImproperlyConfigured(
            f"Reset chunk size must be between 1 and {limit - 1}, got {chunk_size}"
        )
    return chunk_size


def _record(report, chunk, outcome):
    try:
        accounts, devices = outcome()
    except (LedgerError, DatabaseError) as exc:
        logger.error(
            "Reset chunk failed: chunk=%s accounts=%s devices=%s error=%s",
            chunk.index, len(chunk.account_ids), len(chunk.device_ids), exc,
        )
        report.failed_chunks.append(
            ChunkFailure(chunk.index, list(chunk.account_ids), list(chunk.device_ids), str(exc))
        )
        return
    report.chunks_committed += 1
    report.accounts_reset += accounts
    report.devices_reset += devices


def reset_period_aggregates(*, now=None, chunk_size=None, workers=None):
    """Resets monthly aggregates for every account and device."""
    reset_at = now or timezone.now()
    chunk_size = _resolve_chunk_size(chunk_size)
    workers = workers or ledger_settings()["RESET_WORKERS"]
    report = ResetReport()

    logger.info("Starting monthly stats reset: chunk_size=%s workers=%s", chunk_size, workers)

    if workers > 1:
        with ThreadPoolExecutor(max_workers=workers) as executor:
            pending = []
            for chunk in plan_chunks(chunk_size):
                report.chunks_attempted += 1
                pending.append((chunk, executor.submit(_commit_in_worker, chunk, reset_at)))
            for chunk, future in pending:
                _record(report, chunk, future.result)
    else:
        for chunk in plan_chunks(chunk_size):
            report.chunks_attempted += 1
            _record(report, chunk, lambda: commit_chunk(chunk, reset_at))

    if not report.ok:
        raise PartialBatchFailure(report)

    logger.info(
        "Monthly stats reset complete: accounts=%s devices=%s chunks=%s",
        report.accounts_reset, report.devices_reset, report.chunks_committed,
    )
    return report
