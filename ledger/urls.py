from django.urls import path
from .views import (
    LifetimeEarningsView,
    RejectWithdrawalView,
    SettleActivityView,
    SubmitWithdrawalView,
)

urlpatterns = [
    path("withdrawals/", SubmitWithdrawalView.as_view(), name="submit-withdrawal"),
    path("withdrawals/reject/", RejectWithdrawalView.as_view(), name="reject-withdrawal"),
    path("activities/settle/", SettleActivityView.as_view(), name="settle-activity"),
    path(
        "internal/lifetime-earnings/",
        LifetimeEarningsView.as_view(),
        name="lifetime-earnings",
    ),
]
