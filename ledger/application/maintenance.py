import logging

from django.db import DatabaseError
from django.utils import timezone

from ledger.application.store import atomic_unit
from ledger.domain.exceptions import LedgerError
from ledger.models import Activity, Device

logger = logging.getLogger(__name__)


def log_maintenance(*, now=None):
    """
    Records a zero-amount maintenance entry for every Active device.

    Entries carry no financial effect and are left unsettled; settling one
    later only marks its guard. Each entry is written on its own, so one
    failed write does not stop the rest. Returns the number logged.
    """
    now = now or timezone.now()
    devices = list(
        Device.objects.filter(status=Device.Status.ACTIVE)
        .only("id", "account", "location_name", "port_identifier")
        .order_by("id")
    )
    logger.info("Starting maintenance run: devices=%s", len(devices))

    logged = 0
    for device in devices:
        def record(device=device):
            return Activity.objects.create(
                account_id=device.account_id,
                device_id=device.id,
                type=Activity.Type.MAINTENANCE,
                amount=0,
                description=f"Routine maintenance checkup on {device.display_name()}",
                timestamp=now,
            )

        try:
            atomic_unit(record, label="log_maintenance")
        except (LedgerError, DatabaseError) as exc:
            logger.error("Maintenance entry failed: device=%s error=%s", device.id, exc)
            continue
        logged += 1

    logger.info("Maintenance run complete. Logged %s events.", logged)
    return logged
