from decimal import Decimal
from uuid import uuid4

from django.test import TestCase
from rest_framework.test import APIClient

from ledger.application.withdrawals import reject_withdrawal, submit_withdrawal
from ledger.domain.exceptions import (
    AuthorizationError,
    InsufficientFundsError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from ledger.models import Activity
from ledger.tests.helpers import make_account, make_activity, make_staff

SUBMIT_URL = "/api/ledger/withdrawals/"
REJECT_URL = "/api/ledger/withdrawals/reject/"


class SubmitWithdrawalEndpointTest(TestCase):
    """
    Tests for POST /api/ledger/withdrawals/

    Each test runs inside a transaction that is rolled back automatically.
    """

    def setUp(self):
        self.client = APIClient()
        self.account = make_account(balance="50.00", code="s3cret")
        self.client.force_authenticate(user=self.account.user)

    def submit(self, **overrides):
        payload = {"amount": 20, "details": {"method": "bank"}, "code": "s3cret"}
        payload.update(overrides)
        return self.client.post(SUBMIT_URL, payload)

    def test_successful_withdrawal_reserves_funds(self):
        response = self.submit()

        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.data["success"])

        self.account.refresh_from_db()
        self.assertEqual(self.account.available_balance, Decimal("30.00"))

        activity = Activity.objects.get(id=response.data["activity_id"])
        self.assertEqual(activity.type, Activity.Type.WITHDRAWAL)
        self.assertEqual(activity.status, Activity.Status.PENDING)
        self.assertEqual(activity.amount, Decimal("-20.00"))
        self.assertTrue(activity.balance_updated)
        self.assertEqual(activity.description, "Withdrawal to bank")
        self.assertEqual(activity.details, {"method": "bank"})

    def test_entire_balance_can_be_withdrawn(self):
        response = self.submit(amount="50.00")

        self.assertEqual(response.status_code, 200)
        self.account.refresh_from_db()
        self.assertEqual(self.account.available_balance, Decimal("0.00"))

    def test_wrong_code_returns_401_without_side_effects(self):
        response = self.submit(code="wrong")

        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.data["error"], "The withdrawal code is incorrect.")
        self.account.refresh_from_db()
        self.assertEqual(self.account.available_balance, Decimal("50.00"))
        self.assertEqual(Activity.objects.count(), 0)

    def test_code_comparison_is_case_sensitive(self):
        response = self.submit(code="S3CRET")

        self.assertEqual(response.status_code, 401)

    def test_insufficient_funds_returns_400_and_rolls_back(self):
        """Requesting more than the balance must fail without side effects."""
        response = self.submit(amount="50.01")

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["error"], "Withdrawal amount exceeds available balance.")
        self.account.refresh_from_db()
        self.assertEqual(self.account.available_balance, Decimal("50.00"))
        self.assertEqual(Activity.objects.count(), 0)

    def test_missing_fields_returns_400(self):
        response = self.client.post(SUBMIT_URL, {"amount": 10})

        self.assertEqual(response.status_code, 400)

    def test_negative_amount_returns_400(self):
        response = self.submit(amount=-5)

        self.assertEqual(response.status_code, 400)

    def test_non_numeric_amount_returns_400(self):
        response = self.submit(amount="ten")

        self.assertEqual(response.status_code, 400)

    def test_sub_cent_amount_returns_400(self):
        response = self.submit(amount="1.005")

        self.assertEqual(response.status_code, 400)

    def test_amount_beyond_store_precision_returns_400(self):
        for amount in ("1e30", "1000000000000", "1e26"):
            response = self.submit(amount=amount)

            self.assertEqual(response.status_code, 400, amount)
        self.account.refresh_from_db()
        self.assertEqual(self.account.available_balance, Decimal("50.00"))

    def test_caller_without_account_returns_404(self):
        self.client.force_authenticate(user=make_staff("no-account"))

        response = self.submit()

        self.assertEqual(response.status_code, 404)

    def test_unauthenticated_caller_is_refused(self):
        self.client.force_authenticate(user=None)

        response = self.submit()

        self.assertIn(response.status_code, (401, 403))
        self.assertEqual(Activity.objects.count(), 0)

    def test_sequential_withdrawals_accumulate(self):
        self.submit(amount=15)
        self.submit(amount=25)
        third = self.submit(amount=15)

        self.assertEqual(third.status_code, 400)
        self.account.refresh_from_db()
        self.assertEqual(self.account.available_balance, Decimal("10.00"))
        self.assertEqual(Activity.objects.filter(type=Activity.Type.WITHDRAWAL).count(), 2)


class RejectWithdrawalEndpointTest(TestCase):
    """Tests for POST /api/ledger/withdrawals/reject/"""

    def setUp(self):
        self.client = APIClient()
        self.account = make_account(balance="50.00", code="s3cret")
        self.activity_id = submit_withdrawal(self.account.id, "20.00", {"method": "bank"}, "s3cret")
        self.client.force_authenticate(user=make_staff())

    def test_admin_rejection_returns_funds(self):
        response = self.client.post(REJECT_URL, {"activity_id": str(self.activity_id)})

        self.assertEqual(response.status_code, 200)
        self.account.refresh_from_db()
        self.assertEqual(self.account.available_balance, Decimal("50.00"))

        activity = Activity.objects.get(id=self.activity_id)
        self.assertEqual(activity.status, Activity.Status.REJECTED)
        self.assertTrue(activity.balance_updated)

    def test_non_admin_gets_403(self):
        self.client.force_authenticate(user=self.account.user)

        response = self.client.post(REJECT_URL, {"activity_id": str(self.activity_id)})

        self.assertEqual(response.status_code, 403)
        self.account.refresh_from_db()
        self.assertEqual(self.account.available_balance, Decimal("30.00"))

    def test_second_rejection_is_refused(self):
        """A withdrawal's reservation can only be returned once."""
        self.client.post(REJECT_URL, {"activity_id": str(self.activity_id)})
        response = self.client.post(REJECT_URL, {"activity_id": str(self.activity_id)})

        self.assertEqual(response.status_code, 400)
        self.account.refresh_from_db()
        self.assertEqual(self.account.available_balance, Decimal("50.00"))

    def test_rejecting_an_earning_is_refused(self):
        earning = make_activity(self.account, Activity.Type.EARNING, "12.00", balance_updated=True)

        response = self.client.post(REJECT_URL, {"activity_id": str(earning.id)})

        self.assertEqual(response.status_code, 400)
        self.account.refresh_from_db()
        self.assertEqual(self.account.available_balance, Decimal("30.00"))

    def test_unknown_activity_returns_404(self):
        response = self.client.post(REJECT_URL, {"activity_id": str(uuid4())})

        self.assertEqual(response.status_code, 404)

    def test_malformed_activity_id_returns_400(self):
        response = self.client.post(REJECT_URL, {"activity_id": "not-a-uuid"})

        self.assertEqual(response.status_code, 400)


class WithdrawalUseCaseTest(TestCase):
    def setUp(self):
        self.account = make_account(balance="50.00", code="s3cret")

    def test_insufficient_funds_raises(self):
        with self.assertRaises(InsufficientFundsError) as ctx:
            submit_withdrawal(self.account.id, "80.00", {"method": "bank"}, "s3cret")

        self.assertEqual(ctx.exception.requested, Decimal("80.00"))
        self.assertEqual(ctx.exception.available, Decimal("50.00"))

    def test_blank_stored_code_never_matches(self):
        account = make_account(username="bob", balance="50.00", code="")

        with self.assertRaises(AuthorizationError):
            submit_withdrawal(account.id, "10.00", {"method": "bank"}, "anything")

    def test_missing_account_raises_not_found(self):
        with self.assertRaises(NotFoundError):
            submit_withdrawal(uuid4(), "10.00", {"method": "bank"}, "s3cret")

    def test_details_must_be_a_mapping(self):
        with self.assertRaises(ValidationError):
            submit_withdrawal(self.account.id, "10.00", "bank", "s3cret")

    def test_reject_requires_elevated_claim(self):
        activity_id = submit_withdrawal(self.account.id, "10.00", {"method": "bank"}, "s3cret")

        with self.assertRaises(AuthorizationError) as ctx:
            reject_withdrawal(activity_id, is_admin=False)

        self.assertTrue(ctx.exception.elevated)

    def test_reject_approved_withdrawal_raises_invalid_state(self):
        activity = make_activity(
            self.account,
            Activity.Type.WITHDRAWAL,
            "-10.00",
            status=Activity.Status.APPROVED,
            balance_updated=True,
        )

        with self.assertRaises(InvalidStateError):
            reject_withdrawal(activity.id, is_admin=True)

        self.account.refresh_from_db()
        self.assertEqual(self.account.available_balance, Decimal("50.00"))

    def test_submit_then_reject_restores_balance(self):
        """Balance 50.00, withdraw 20.00 -> 30.00; admin rejects -> 50.00."""
        activity_id = submit_withdrawal(self.account.id, "20.00", {"method": "bank"}, "s3cret")
        self.account.refresh_from_db()
        self.assertEqual(self.account.available_balance, Decimal("30.00"))

        reject_withdrawal(activity_id, is_admin=True)

        self.account.refresh_from_db()
        self.assertEqual(self.account.available_balance, Decimal("50.00"))
        self.assertEqual(Activity.objects.get(id=activity_id).status, Activity.Status.REJECTED)
