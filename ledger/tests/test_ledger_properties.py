"""
Ledger consistency properties.

For any sequence of submit / reject / deposit / settle operations the
stored balance equals the balance derived from settled activities, and a
withdrawal submission never drives it below zero.
"""

from decimal import Decimal

from hypothesis import given, settings
from hypothesis import strategies as st
from hypothesis.extra.django import TestCase

from ledger.application.settlement import reconcile_balance, settle_activity
from ledger.application.withdrawals import reject_withdrawal, submit_withdrawal
from ledger.domain.exceptions import InsufficientFundsError
from ledger.models import Account, Activity
from ledger.tests.helpers import make_account, make_activity

operations = st.lists(
    st.tuples(
        st.sampled_from(["withdraw", "reject", "deposit", "settle", "replay"]),
        st.integers(min_value=1, max_value=8000),
    ),
    max_size=15,
)


class LedgerConsistencyProperties(TestCase):
    @given(operations)
    @settings(max_examples=30, deadline=None)
    def test_balance_matches_settled_ledger_after_any_sequence(self, ops):
        account = make_account(username="prop", balance="0.00")
        opening = make_activity(account, Activity.Type.DEPOSIT, "50.00")
        settle_activity(account.id, opening.id)

        for op, cents in ops:
            amount = Decimal(cents) / 100
            if op == "withdraw":
                try:
                    submit_withdrawal(account.id, amount, {"method": "bank"}, "s3cret")
                except InsufficientFundsError:
                    pass
            elif op == "reject":
                pending = Activity.objects.filter(
                    account=account,
                    type=Activity.Type.WITHDRAWAL,
                    status=Activity.Status.PENDING,
                ).first()
                if pending is not None:
                    reject_withdrawal(pending.id, is_admin=True)
            elif op == "deposit":
                make_activity(account, Activity.Type.DEPOSIT, amount)
            elif op == "settle":
                unsettled = Activity.objects.filter(account=account, balance_updated=False).first()
                if unsettled is not None:
                    settle_activity(account.id, unsettled.id)
            else:
                settled = Activity.objects.filter(account=account, balance_updated=True).first()
                settle_activity(account.id, settled.id)

            balance = Account.objects.get(id=account.id).available_balance
            self.assertGreaterEqual(balance, 0)

        check = reconcile_balance(account.id)
        self.assertTrue(check.consistent, f"stored={check.stored} derived={check.derived}")
