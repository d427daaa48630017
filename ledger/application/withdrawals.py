"""
Application Use Cases — Withdrawal Submission and Rejection

Core guarantees provided:

- Reservation at submission: the (negative) withdrawal amount is folded
  into available_balance in the same atomic unit that creates the Pending
  activity, so funds already requested cannot be spent twice. The activity
  is therefore created with balance_updated=True.
- Row-level locking: select_for_update() on the Account serializes
  concurrent submissions, so the balance check never sees a stale value.
- Single-shot rejection: a Pending withdrawal is re-checked under a row
  lock before its reservation is returned, so two concurrent rejections
  cannot both refund it. The idempotency guard is left untouched.
- Race-condition safety: balance updates use F() expressions.
"""

import logging

from django.db.models import F
from django.utils import timezone

from ledger.application.inputs import parse_amount, parse_uuid
from ledger.application.store import atomic_unit
from ledger.domain.exceptions import (
    AuthorizationError,
    InsufficientFundsError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from ledger.models import Account, Activity

logger = logging.getLogger(__name__)


def submit_withdrawal(account_id, amount, details, code):
    """
    Reserves ``amount`` from the account and records a Pending withdrawal.

    Returns the id of the new activity.
    """
    amount = parse_amount(amount)
    if not details or not isinstance(details, dict):
        raise ValidationError("details", "destination details are required")
    if not code:
        raise ValidationError("code", "withdrawal code is required")

    method = details.get("method") or "unspecified destination"
    requested_at = timezone.now()

    def reserve():
        try:
            account = Account.objects.select_for_update().get(id=account_id)
        except Account.DoesNotExist:
            raise NotFoundError("Account", account_id) from None

        if not account.withdrawal_code or code != account.withdrawal_code:
            logger.warning("Invalid withdrawal code: account=%s", account_id)
            raise AuthorizationError("Invalid withdrawal code.")

        if amount > account.available_balance:
            logger.warning(
                "Insufficient funds: account=%s requested=%s available=%s",
                account_id, amount, account.available_balance,
            )
            raise InsufficientFundsError(account_id, amount, account.available_balance)

        activity = Activity.objects.create(
            account=account,
            type=Activity.Type.WITHDRAWAL,
            status=Activity.Status.PENDING,
            amount=-amount,
            description=f"Withdrawal to {method}",
            details=details,
            timestamp=requested_at,
            balance_updated=True,
        )
        Account.objects.filter(id=account.id).update(
            available_balance=F("available_balance") - amount
        )
        return activity.id

    activity_id = atomic_unit(reserve, label="submit_withdrawal")
    logger.info(
        "Withdrawal submitted: account=%s activity=%s amount=%s",
        account_id, activity_id, amount,
    )
    return activity_id


def reject_withdrawal(activity_id, *, is_admin):
    """
    Returns the reserved funds of a Pending withdrawal and marks it Rejected.

    ``is_admin`` is the elevated-privilege claim already verified by the
    identity layer; it is trusted as given. The owning account is resolved
    from the activity itself.
    """
    if not is_admin:
        raise AuthorizationError("Permission denied. User is not an admin.", elevated=True)
    activity_id = parse_uuid(activity_id, "activity_id")

    def refund():
        try:
            activity = Activity.objects.select_for_update().get(id=activity_id)
        except Activity.DoesNotExist:
            raise NotFoundError("Activity", activity_id) from None

        if activity.type != Activity.Type.WITHDRAWAL or activity.status != Activity.Status.PENDING:
            raise InvalidStateError(activity_id, "not a pending withdrawal")

        # Withdrawal amounts are negative: subtracting returns the reservation.
        Account.objects.filter(id=activity.account_id).update(
            available_balance=F("available_balance") - activity.amount
        )
        Activity.objects.filter(id=activity.id).update(status=Activity.Status.REJECTED)
        return activity

    activity = atomic_unit(refund, label="reject_withdrawal")
    logger.info(
        "Withdrawal rejected: account=%s activity=%s refunded=%s",
        activity.account_id, activity.id, -activity.amount,
    )
