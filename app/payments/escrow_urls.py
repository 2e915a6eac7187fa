"""
URL configuration for escrow endpoints.

Routes:
    - GET / - List escrow holds
    - POST <hold_id>/complete-work/ - Confirm work completion
    - POST <hold_id>/release/ - Release hold and transfer
    - POST <hold_id>/transfer/ - Retry transfer (operators)

Prefixed with /api/v1/escrow/ in the main URLconf.
"""

from django.urls import path

from payments.views import CompleteWorkView, EscrowHoldListView, ReleaseHoldView, RetryTransferView

app_name = "escrow"

urlpatterns = [
    path("", EscrowHoldListView.as_view(), name="hold_list"),
    path("<uuid:hold_id>/complete-work/", CompleteWorkView.as_view(), name="complete_work"),
    path("<uuid:hold_id>/release/", ReleaseHoldView.as_view(), name="release"),
    path("<uuid:hold_id>/transfer/", RetryTransferView.as_view(), name="retry_transfer"),
]
