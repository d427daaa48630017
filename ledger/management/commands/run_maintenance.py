from django.core.management.base import BaseCommand

from ledger.application.maintenance import log_maintenance


class Command(BaseCommand):
    help = "Log a routine maintenance entry for every Active port. Schedule weekly."

    def handle(self, *args, **options):
        logged = log_maintenance()
        if not logged:
            self.stdout.write("No active ports found to maintain.")
            return
        self.stdout.write(f"Maintenance run complete. Logged {logged} events.")
