"""
Fixtures for StripeAdapter tests.

The Stripe SDK classes are patched at module level (``stripe.PaymentIntent``,
``stripe.Transfer``, ``stripe.RequestsClient``) so no request leaves the
process. Response objects mimic the SDK's StripeObject closely enough for the
adapter: attribute access plus ``to_dict()``.
"""

from typing import Any

import pytest
import stripe

INTENT_ID = "pi_test123456"
VENDOR_ACCOUNT = "acct_dest123"


class FakeStripeObject(dict):
    """Dict with attribute access, like stripe.StripeObject."""

    def __getattr__(self, name: str) -> Any:
        if name.startswith("__"):
            raise AttributeError(name)
        return self.get(name)

    def to_dict(self) -> dict[str, Any]:
        return dict(self)


@pytest.fixture
def mock_payment_intent():
    """Build a PaymentIntent response; keyword overrides replace defaults."""

    def _build(**overrides) -> FakeStripeObject:
        fields = {
            "id": INTENT_ID,
            "object": "payment_intent",
            "status": "requires_payment_method",
            "amount": 10000,
            "currency": "usd",
            "client_secret": f"{INTENT_ID}_secret_abc123",
            "last_payment_error": None,
            "metadata": {},
        }
        fields.update(overrides)
        return FakeStripeObject(fields)

    return _build


@pytest.fixture
def mock_transfer():
    def _build(**overrides) -> FakeStripeObject:
        fields = {
            "id": "tr_test123456",
            "object": "transfer",
            "amount": 9000,
            "currency": "usd",
            "destination": VENDOR_ACCOUNT,
            "metadata": {},
        }
        fields.update(overrides)
        return FakeStripeObject(fields)

    return _build


# Stripe SDK errors, as raised by the API resources


@pytest.fixture
def card_error():
    def _build(
        message: str = "Your card was declined.",
        code: str = "card_declined",
        decline_code: str | None = "generic_decline",
    ) -> stripe.CardError:
        error = stripe.CardError(message=message, param=None, code=code)
        error.decline_code = decline_code
        return error

    return _build


@pytest.fixture
def invalid_request_error():
    def _build(
        message: str = "No such payment_intent",
        param: str | None = "payment_intent",
        code: str = "resource_missing",
    ) -> stripe.InvalidRequestError:
        return stripe.InvalidRequestError(message=message, param=param, code=code)

    return _build


@pytest.fixture
def rate_limit_error():
    return stripe.RateLimitError(message="Too many requests hit the API too quickly.")


@pytest.fixture
def api_connection_error():
    # The SDK reports read timeouts as connection errors
    return stripe.APIConnectionError(message="Request timed out")


@pytest.fixture
def api_error():
    return stripe.APIError(message="Something went wrong on Stripe's end.")


@pytest.fixture
def authentication_error():
    return stripe.AuthenticationError(message="Invalid API Key provided.")


# Patched SDK resources


@pytest.fixture
def mock_stripe_payment_intent(mocker, mock_payment_intent):
    resource = mocker.patch("stripe.PaymentIntent")
    resource.create.return_value = mock_payment_intent()
    resource.retrieve.return_value = mock_payment_intent()
    return resource


@pytest.fixture
def mock_stripe_transfer(mocker, mock_transfer):
    resource = mocker.patch("stripe.Transfer")
    resource.create.return_value = mock_transfer()
    return resource


@pytest.fixture
def mock_stripe_http_client(mocker):
    return mocker.patch("stripe.RequestsClient")
