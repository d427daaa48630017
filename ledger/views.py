"""
API Layer — Ledger Endpoints (Django REST Framework)

Thin controllers: each view pulls its fields from the JSON body, resolves
the caller's account from the authenticated user, delegates to a use case
in ledger.application and translates domain exceptions into HTTP
responses. Successful calls answer {"success": true, "message": ...};
failures answer {"error": ...}.

Identity comes from DRF authentication; the elevated-privilege claim is
the user's is_staff flag, passed to the use case as given.
"""

import logging

from django.utils.crypto import constant_time_compare
from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from ledger.application.settlement import credit_lifetime_earnings, settle_activity
from ledger.application.withdrawals import reject_withdrawal, submit_withdrawal
from ledger.conf import ledger_setting
from ledger.domain.exceptions import (
    AuthorizationError,
    InsufficientFundsError,
    InvalidStateError,
    NotFoundError,
    StoreConflictError,
    ValidationError,
)
from ledger.models import Account

logger = logging.getLogger(__name__)


def error_response(exc):
    """Maps a domain exception onto the status code and body callers expect."""
    if isinstance(exc, ValidationError):
        return Response({"error": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
    if isinstance(exc, InsufficientFundsError):
        return Response(
            {"error": "Withdrawal amount exceeds available balance."},
            status=status.HTTP_400_BAD_REQUEST,
        )
    if isinstance(exc, AuthorizationError):
        if exc.elevated:
            return Response({"error": exc.reason}, status=status.HTTP_403_FORBIDDEN)
        return Response(
            {"error": "The withdrawal code is incorrect."},
            status=status.HTTP_401_UNAUTHORIZED,
        )
    if isinstance(exc, NotFoundError):
        return Response({"error": f"{exc.kind} not found."}, status=status.HTTP_404_NOT_FOUND)
    if isinstance(exc, InvalidStateError):
        return Response(
            {"error": "Transaction is not a pending withdrawal."},
            status=status.HTTP_400_BAD_REQUEST,
        )
    if isinstance(exc, StoreConflictError):
        return Response(
            {"error": "The ledger is busy, please retry."},
            status=status.HTTP_503_SERVICE_UNAVAILABLE,
        )
    raise exc


def account_id_for(user):
    return Account.objects.filter(user_id=user.pk).values_list("id", flat=True).first()


class SubmitWithdrawalView(APIView):
    """
    POST /api/ledger/withdrawals/

    Reserves funds from the caller's balance and records a Pending withdrawal.
    """

    def post(self, request):
        amount = request.data.get("amount")
        details = request.data.get("details")
        code = request.data.get("code")

        if not all([amount, details, code]):
            return Response(
                {"error": "amount, details, and code are required."},
                status=status.HTTP_400_BAD_REQUEST,
            )

        account_id = account_id_for(request.user)
        if account_id is None:
            return Response({"error": "Account not found."}, status=status.HTTP_404_NOT_FOUND)

        try:
            activity_id = submit_withdrawal(account_id, amount, details, code)
        except (
            ValidationError,
            AuthorizationError,
            InsufficientFundsError,
            NotFoundError,
            StoreConflictError,
        ) as exc:
            return error_response(exc)

        return Response(
            {
                "success": True,
                "message": "Withdrawal request submitted.",
                "activity_id": str(activity_id),
            },
            status=status.HTTP_200_OK,
        )


class RejectWithdrawalView(APIView):
    """
    POST /api/ledger/withdrawals/reject/

    Staff only: returns a Pending withdrawal's reserved funds and marks it Rejected.
    """

    def post(self, request):
        activity_id = request.data.get("activity_id")
        if not activity_id:
            return Response({"error": "activity_id is required."}, status=status.HTTP_400_BAD_REQUEST)

        try:
            reject_withdrawal(activity_id, is_admin=bool(request.user.is_staff))
        except (
            ValidationError,
            AuthorizationError,
            NotFoundError,
            InvalidStateError,
            StoreConflictError,
        ) as exc:
            return error_response(exc)

        return Response(
            {"success": True, "message": "Withdrawal rejected and funds returned."},
            status=status.HTTP_200_OK,
        )


class SettleActivityView(APIView):
    """
    POST /api/ledger/activities/settle/

    Folds one of the caller's unsettled activities into their balance. Replays are no-ops.
    """

    def post(self, request):
        activity_id = request.data.get("activity_id")
        if not activity_id:
            return Response({"error": "activity_id is required."}, status=status.HTTP_400_BAD_REQUEST)

        account_id = account_id_for(request.user)
        if account_id is None:
            return Response({"error": "Account not found."}, status=status.HTTP_404_NOT_FOUND)

        try:
            outcome = settle_activity(account_id, activity_id)
        except (ValidationError, NotFoundError, StoreConflictError) as exc:
            return error_response(exc)

        messages = {
            "applied": "Balance updated successfully.",
            "already_settled": "Balance already updated.",
            "skipped": "Activity type does not affect the balance.",
        }
        return Response(
            {"success": True, "message": messages[outcome.value], "outcome": outcome.value},
            status=status.HTTP_200_OK,
        )


class LifetimeEarningsView(APIView):
    """
    POST /api/ledger/internal/lifetime-earnings/

    Trusted internal callers only, identified by the X-Internal-Secret header.
    """

    authentication_classes = []
    permission_classes = [AllowAny]

    def post(self, request):
        secret = ledger_setting("INTERNAL_API_SECRET")
        provided = request.headers.get("X-Internal-Secret", "")
        if not secret or not constant_time_compare(provided, secret):
            logger.warning("Rejected internal call with a bad or missing secret")
            return Response({"error": "Unauthorized"}, status=status.HTTP_401_UNAUTHORIZED)

        account_id = request.data.get("account_id")
        amount = request.data.get("amount")
        if not account_id or amount is None:
            return Response(
                {"error": "Invalid account_id or amount provided."},
                status=status.HTTP_400_BAD_REQUEST,
            )

        try:
            credit_lifetime_earnings(account_id, amount)
        except (ValidationError, NotFoundError, StoreConflictError) as exc:
            return error_response(exc)

        return Response(
            {"success": True, "message": f"Earnings updated for account {account_id}."},
            status=status.HTTP_200_OK,
        )
