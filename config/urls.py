from django.urls import include, path

urlpatterns = [
    path("api/ledger/", include("ledger.urls")),
]
