from django.core.management.base import BaseCommand, CommandError

from ledger.application.reset import reset_period_aggregates
from ledger.domain.exceptions import PartialBatchFailure


class Command(BaseCommand):
    help = "Zero monthly aggregates and utilization for every account and port. Schedule monthly."

    def add_arguments(self, parser):
        parser.add_argument("--chunk-size", type=int, default=None)
        parser.add_argument("--workers", type=int, default=None)

    def handle(self, *args, **options):
        try:
            report = reset_period_aggregates(
                chunk_size=options["chunk_size"],
                workers=options["workers"],
            )
        except PartialBatchFailure as exc:
            for failure in exc.report.failed_chunks:
                self.stderr.write(
                    f"Chunk {failure.index} failed "
                    f"({len(failure.account_ids)} accounts, {len(failure.device_ids)} ports): "
                    f"{failure.error}"
                )
            raise CommandError(str(exc)) from exc

        if not report.chunks_attempted:
            self.stdout.write("No accounts found to reset.")
            return

        self.stdout.write(
            f"Successfully reset monthly stats and utilization for {report.accounts_reset} "
            f"accounts and {report.devices_reset} ports in {report.chunks_committed} commits."
        )
