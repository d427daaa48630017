import random

from django.core.management.base import BaseCommand

from ledger.application.accrual import simulate_earnings


class Command(BaseCommand):
    help = "Run one earnings accrual cycle over every Active port. Schedule hourly."

    def add_arguments(self, parser):
        parser.add_argument(
            "--seed",
            type=int,
            default=None,
            help="Seed the random generator for a reproducible run.",
        )

    def handle(self, *args, **options):
        rng = random.Random(options["seed"]) if options["seed"] is not None else None
        report = simulate_earnings(rng=rng)

        self.stdout.write(
            f"Simulation complete. Processed {report.processed} transactions "
            f"(idle {report.idle}, unconfigured {report.unconfigured}, "
            f"deactivated {report.deactivated}, failed {report.failed}); "
            f"total {report.total_amount}."
        )
        if report.failed:
            self.stderr.write(
                "Failed devices: " + ", ".join(str(device_id) for device_id in report.failed_devices)
            )
