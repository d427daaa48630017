"""
Persistence Models — Port Ledger (Django ORM)

Accounts hold a materialized balance and period/lifetime aggregates,
Devices ("ports") accrue earnings for their owning Account, and Activities
form the append-only ledger the balance is derived from.

Key architectural decisions:

- available_balance is a materialized view of the ledger. It only changes
  through the engines in ledger.application, always with F() expressions
  inside an atomic unit.
- Activity.balance_updated is a one-way idempotency guard: it flips
  False -> True exactly once, the moment the amount is folded into the
  owning Account's balance.
- Activity and Device ids are UUIDs, so an Activity can be located by id
  alone without knowing its owning Account.
- Activities are never deleted; only status and balance_updated move.
"""

import uuid
from decimal import Decimal

from django.conf import settings
from django.db import models
from django.db.models import Q, Sum

ZERO = Decimal("0")


class Account(models.Model):
    """
    One per end user. Monthly fields are zeroed by the bulk reset engine;
    lifetime fields only ever grow.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="ledger_account",
    )

    available_balance = models.DecimalField(max_digits=14, decimal_places=2, default=ZERO)

    monthly_earnings = models.DecimalField(max_digits=14, decimal_places=2, default=ZERO)
    monthly_kwh_delivered = models.DecimalField(max_digits=14, decimal_places=3, default=ZERO)
    monthly_sessions = models.PositiveIntegerField(default=0)
    monthly_co2_offset = models.DecimalField(max_digits=14, decimal_places=3, default=ZERO)

    lifetime_earnings = models.DecimalField(max_digits=16, decimal_places=2, default=ZERO)
    lifetime_kwh_delivered = models.DecimalField(max_digits=16, decimal_places=3, default=ZERO)
    lifetime_sessions = models.PositiveIntegerField(default=0)
    lifetime_co2_offset = models.DecimalField(max_digits=16, decimal_places=3, default=ZERO)

    # Shared secret required to authorize a withdrawal. Blank never matches.
    withdrawal_code = models.CharField(max_length=64, blank=True, default="")

    last_monthly_reset = models.DateTimeField(null=True, blank=True)

    def __str__(self):
        return f"Account {self.id} - Balance: {self.available_balance}"


class Device(models.Model):
    """A metered charging port owned by exactly one Account."""

    class Status(models.TextChoices):
        ACTIVE = "Active", "Active"
        INACTIVE = "Inactive", "Inactive"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    account = models.ForeignKey(
        Account,
        on_delete=models.CASCADE,
        related_name="devices",
    )

    status = models.CharField(max_length=16, choices=Status.choices, default=Status.ACTIVE)
    package = models.CharField(max_length=64)
    region = models.CharField(max_length=64, blank=True, default="")
    location_name = models.CharField(max_length=128, blank=True, default="")
    port_identifier = models.CharField(max_length=64, blank=True, default="")

    lifetime_earnings = models.DecimalField(max_digits=16, decimal_places=2, default=ZERO)
    monthly_earnings = models.DecimalField(max_digits=14, decimal_places=2, default=ZERO)
    monthly_duration_minutes = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)
    # Percentage of this period's wall-clock minutes the port was busy, capped at 100.
    utilization = models.DecimalField(max_digits=5, decimal_places=2, default=ZERO)

    def display_name(self):
        location = self.location_name or "Unknown Location"
        identifier = self.port_identifier or f"Port #{str(self.id)[:4]}"
        return f"{location} ({identifier})"

    def __str__(self):
        return f"Device {self.id} - {self.package} [{self.status}]"


class ActivityQuerySet(models.QuerySet):
    def settled_total(self, account):
        """
        Sum of amounts already folded into the account's balance.

        Rejected withdrawals keep balance_updated=True; their reversal is the
        correction that cancels the reservation, so they are left out.
        """
        total = (
            self.filter(account=account, balance_updated=True)
            .exclude(Q(type=Activity.Type.WITHDRAWAL) & Q(status=Activity.Status.REJECTED))
            .aggregate(total=Sum("amount"))["total"]
        )
        return total or ZERO


class Activity(models.Model):
    """
    One ledger entry. Withdrawals are recorded with a negative amount.

    - balance_updated guards against applying the amount twice.
    - session_details carries the synthetic telemetry of an earning.
    - details carries the destination of a withdrawal.
    """

    class Type(models.TextChoices):
        EARNING = "earning", "Earning"
        WITHDRAWAL = "withdrawal", "Withdrawal"
        DEPOSIT = "deposit", "Deposit"
        MAINTENANCE = "maintenance", "Maintenance"

    class Status(models.TextChoices):
        PENDING = "Pending", "Pending"
        REJECTED = "Rejected", "Rejected"
        APPROVED = "Approved", "Approved"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    account = models.ForeignKey(
        Account,
        on_delete=models.CASCADE,
        related_name="activities",
    )
    device = models.ForeignKey(
        Device,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="activities",
    )

    type = models.CharField(max_length=16, choices=Type.choices)
    status = models.CharField(max_length=16, choices=Status.choices, blank=True, default="")
    amount = models.DecimalField(max_digits=14, decimal_places=2)
    description = models.CharField(max_length=255, blank=True, default="")
    timestamp = models.DateTimeField(db_index=True)

    balance_updated = models.BooleanField(default=False)

    session_details = models.JSONField(null=True, blank=True)
    details = models.JSONField(null=True, blank=True)

    objects = ActivityQuerySet.as_manager()

    class Meta:
        ordering = ("-timestamp",)
        verbose_name_plural = "activities"

    def __str__(self):
        return f"Activity {self.id} - {self.type} {self.amount}"
