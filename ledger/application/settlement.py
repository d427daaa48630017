"""
Application Use Cases — Settlement and Balance Reconciliation

settle_activity() is the only path that folds an existing activity's
amount into available_balance. The balance_updated guard is claimed with
a compare-and-swap inside the same atomic unit as the balance change, so
replays and concurrent calls apply the amount at most once.

Only deposits move the balance here. Withdrawals were reserved when they
were submitted and earnings when they were accrued; settling one of those
(or a maintenance entry) just marks the guard.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from django.db.models import F

from ledger.application.inputs import parse_amount, parse_uuid
from ledger.application.store import atomic_unit
from ledger.domain.exceptions import NotFoundError
from ledger.models import Account, Activity

logger = logging.getLogger(__name__)

BALANCE_AFFECTING_TYPES = frozenset({Activity.Type.DEPOSIT})


class SettlementOutcome(str, Enum):
    APPLIED = "applied"
    ALREADY_SETTLED = "already_settled"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class BalanceCheck:
    account_id: object
    stored: Decimal
    derived: Decimal

    @property
    def consistent(self):
        return self.stored == self.derived


def settle_activity(account_id, activity_id):
    """Applies an unsettled activity's amount to its account exactly once."""
    activity_id = parse_uuid(activity_id, "activity_id")

    def settle():
        try:
            activity = Activity.objects.select_for_update().get(
                id=activity_id, account_id=account_id
            )
        except Activity.DoesNotExist:
            raise NotFoundError("Activity", activity_id) from None

        if activity.balance_updated:
            return SettlementOutcome.ALREADY_SETTLED, activity

        claimed = Activity.objects.filter(id=activity.id, balance_updated=False).update(
            balance_updated=True
        )
        if not claimed:
            return SettlementOutcome.ALREADY_SETTLED, activity

        if activity.type not in BALANCE_AFFECTING_TYPES:
            return SettlementOutcome.SKIPPED, activity

        Account.objects.filter(id=activity.account_id).update(
            available_balance=F("available_balance") + activity.amount
        )
        return SettlementOutcome.APPLIED, activity

    outcome, activity = atomic_unit(settle, label="settle_activity")

    if outcome is SettlementOutcome.ALREADY_SETTLED:
        logger.info("Balance for activity %s has already been updated.", activity_id)
    elif outcome is SettlementOutcome.SKIPPED:
        logger.info("Skipping balance update for type %s: activity=%s", activity.type, activity_id)
    else:
        logger.info(
            "Balance updated: account=%s activity=%s amount=%s",
            activity.account_id, activity_id, activity.amount,
        )
    return outcome


def credit_lifetime_earnings(account_id, amount):
    """Increments lifetime_earnings only. Used by trusted internal callers."""
    account_id = parse_uuid(account_id, "account_id")
    amount = parse_amount(amount)

    def credit():
        updated = Account.objects.filter(id=account_id).update(
            lifetime_earnings=F("lifetime_earnings") + amount
        )
        if not updated:
            raise NotFoundError("Account", account_id)

    atomic_unit(credit, label="credit_lifetime_earnings")
    logger.info("Lifetime earnings credited: account=%s amount=%s", account_id, amount)


def reconcile_balance(account_id):
    """Compares the stored balance with the balance derived from the ledger."""
    try:
        account = Account.objects.get(id=account_id)
    except Account.DoesNotExist:
        raise NotFoundError("Account", account_id) from None

    check = BalanceCheck(
        account_id=account.id,
        stored=account.available_balance,
        derived=Activity.objects.settled_total(account),
    )
    if not check.consistent:
        logger.warning(
            "Balance drift: account=%s stored=%s derived=%s",
            account.id, check.stored, check.derived,
        )
    return check
