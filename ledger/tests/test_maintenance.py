from decimal import Decimal
from io import StringIO

from django.core.management import call_command
from django.test import TestCase

from ledger.application.maintenance import log_maintenance
from ledger.models import Activity, Device
from ledger.tests.helpers import make_account, make_device


class LogMaintenanceTest(TestCase):
    def setUp(self):
        self.account = make_account(balance="15.00")

    def test_one_zero_amount_entry_per_active_device(self):
        active = make_device(self.account)
        make_device(self.account, status=Device.Status.INACTIVE)
        unnamed = make_device(self.account, location_name="", port_identifier="")

        logged = log_maintenance()

        self.assertEqual(logged, 2)
        entries = Activity.objects.filter(type=Activity.Type.MAINTENANCE)
        self.assertEqual(entries.count(), 2)
        self.assertTrue(all(entry.amount == 0 for entry in entries))
        self.assertFalse(any(entry.balance_updated for entry in entries))
        self.assertEqual(
            entries.get(device=active).description,
            "Routine maintenance checkup on Harbor Lot (HL-01)",
        )
        self.assertEqual(
            entries.get(device=unnamed).description,
            f"Routine maintenance checkup on Unknown Location (Port #{str(unnamed.id)[:4]})",
        )

        self.account.refresh_from_db()
        self.assertEqual(self.account.available_balance, Decimal("15.00"))

    def test_command_output(self):
        make_device(self.account)
        out = StringIO()

        call_command("run_maintenance", stdout=out)

        self.assertIn("Logged 1 events.", out.getvalue())

    def test_command_without_active_devices(self):
        out = StringIO()

        call_command("run_maintenance", stdout=out)

        self.assertIn("No active ports found to maintain.", out.getvalue())
