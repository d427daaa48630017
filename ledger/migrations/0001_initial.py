import uuid
from decimal import Decimal

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Account",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("available_balance", models.DecimalField(decimal_places=2, default=Decimal("0"), max_digits=14)),
                ("monthly_earnings", models.DecimalField(decimal_places=2, default=Decimal("0"), max_digits=14)),
                ("monthly_kwh_delivered", models.DecimalField(decimal_places=3, default=Decimal("0"), max_digits=14)),
                ("monthly_sessions", models.PositiveIntegerField(default=0)),
                ("monthly_co2_offset", models.DecimalField(decimal_places=3, default=Decimal("0"), max_digits=14)),
                ("lifetime_earnings", models.DecimalField(decimal_places=2, default=Decimal("0"), max_digits=16)),
                ("lifetime_kwh_delivered", models.DecimalField(decimal_places=3, default=Decimal("0"), max_digits=16)),
                ("lifetime_sessions", models.PositiveIntegerField(default=0)),
                ("lifetime_co2_offset", models.DecimalField(decimal_places=3, default=Decimal("0"), max_digits=16)),
                ("withdrawal_code", models.CharField(blank=True, default="", max_length=64)),
                ("last_monthly_reset", models.DateTimeField(blank=True, null=True)),
                (
                    "user",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="ledger_account",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
        ),
        migrations.CreateModel(
            name="Device",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                (
                    "status",
                    models.CharField(
                        choices=[("Active", "Active"), ("Inactive", "Inactive")],
                        default="Active",
                        max_length=16,
                    ),
                ),
                ("package", models.CharField(max_length=64)),
                ("region", models.CharField(blank=True, default="", max_length=64)),
                ("location_name", models.CharField(blank=True, default="", max_length=128)),
                ("port_identifier", models.CharField(blank=True, default="", max_length=64)),
                ("lifetime_earnings", models.DecimalField(decimal_places=2, default=Decimal("0"), max_digits=16)),
                ("monthly_earnings", models.DecimalField(decimal_places=2, default=Decimal("0"), max_digits=14)),
                ("monthly_duration_minutes", models.DecimalField(decimal_places=2, default=Decimal("0"), max_digits=12)),
                ("utilization", models.DecimalField(decimal_places=2, default=Decimal("0"), max_digits=5)),
                (
                    "account",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="devices",
                        to="ledger.account",
                    ),
                ),
            ],
        ),
        migrations.CreateModel(
            name="Activity",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                (
                    "type",
                    models.CharField(
                        choices=[
                            ("earning", "Earning"),
                            ("withdrawal", "Withdrawal"),
                            ("deposit", "Deposit"),
                            ("maintenance", "Maintenance"),
                        ],
                        max_length=16,
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        blank=True,
                        choices=[("Pending", "Pending"), ("Rejected", "Rejected"), ("Approved", "Approved")],
                        default="",
                        max_length=16,
                    ),
                ),
                ("amount", models.DecimalField(decimal_places=2, max_digits=14)),
                ("description", models.CharField(blank=True, default="", max_length=255)),
                ("timestamp", models.DateTimeField(db_index=True)),
                ("balance_updated", models.BooleanField(default=False)),
                ("session_details", models.JSONField(blank=True, null=True)),
                ("details", models.JSONField(blank=True, null=True)),
                (
                    "account",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="activities",
                        to="ledger.account",
                    ),
                ),
                (
                    "device",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="activities",
                        to="ledger.device",
                    ),
                ),
            ],
            options={
                "verbose_name_plural": "activities",
                "ordering": ("-timestamp",),
            },
        ),
    ]
