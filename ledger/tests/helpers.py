from decimal import Decimal

from django.contrib.auth import get_user_model
from django.utils import timezone

from ledger.models import Account, Activity, Device


def make_account(username="alice", balance="0.00", code="s3cret", **fields):
    user = get_user_model().objects.create(username=username)
    return Account.objects.create(
        user=user,
        available_balance=Decimal(balance),
        withdrawal_code=code,
        **fields,
    )


def make_staff(username="admin"):
    return get_user_model().objects.create(username=username, is_staff=True)


def make_device(account, **fields):
    defaults = {
        "package": "Standard Port",
        "region": "US-West",
        "location_name": "Harbor Lot",
        "port_identifier": "HL-01",
    }
    defaults.update(fields)
    return Device.objects.create(account=account, **defaults)


def make_activity(account, type, amount, **fields):
    fields.setdefault("timestamp", timezone.now())
    return Activity.objects.create(account=account, type=type, amount=Decimal(amount), **fields)
