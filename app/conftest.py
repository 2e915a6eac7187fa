"""
Project-wide pytest configuration.

Test settings overrides, automatic unit/integration/e2e markers and the
user / API client fixtures shared by every app. App-specific fixtures are
defined in each app's tests/conftest.py.
"""

import pytest


def pytest_configure():
    from django.conf import settings

    # Disable throttling during tests to prevent rate limit failures
    settings.REST_FRAMEWORK["DEFAULT_THROTTLE_CLASSES"] = []
    settings.REST_FRAMEWORK["DEFAULT_THROTTLE_RATES"] = {}

    # Use fast password hasher for tests (PBKDF2 is too slow with 870K iterations)
    settings.PASSWORD_HASHERS = [
        "django.contrib.auth.hashers.MD5PasswordHasher",
    ]


def pytest_collection_modifyitems(items):
    """
    Auto-mark tests based on filename patterns.

    Mapping:
    - test_integration.py → e2e (full request-to-database workflows)
    - test_views.py, test_*_service.py, test_tasks.py, etc. → integration
    - test_models.py, test_serializers.py, test_locks.py, etc. → unit
    - Unmatched files → integration (safe default for Django)

    Explicit markers on test functions/classes take precedence.
    """
    e2e_patterns = ["test_integration.py"]

    integration_patterns = [
        "test_views.py",
        "test_tasks.py",
        "test_handlers.py",
        "test_processing.py",
        "test_settlement.py",
        "test_escrow_service.py",
        "test_transfer_service.py",
        "test_refund_service.py",
        "test_intent_service.py",
        "test_payment_status.py",
        "test_auto_release.py",
    ]

    unit_patterns = [
        "test_models.py",
        "test_serializers.py",
        "test_services.py",
        "test_exceptions.py",
        "test_state_transitions.py",
        "test_locks.py",
        "test_stripe_adapter.py",
    ]

    for item in items:
        # Skip if test already has unit/integration/e2e marker
        existing_markers = {m.name for m in item.iter_markers()}
        if existing_markers & {"unit", "integration", "e2e"}:
            continue

        filename = item.path.name

        if any(pattern == filename for pattern in e2e_patterns):
            item.add_marker(pytest.mark.e2e)
        elif any(pattern == filename for pattern in integration_patterns):
            item.add_marker(pytest.mark.integration)
        elif any(pattern == filename for pattern in unit_patterns):
            item.add_marker(pytest.mark.unit)
        else:
            # Default: integration (safe for Django where most tests hit DB)
            item.add_marker(pytest.mark.integration)


# =============================================================================
# Users & API Clients
# =============================================================================


@pytest.fixture
def user(db):
    from marketplace.tests.factories import UserFactory

    return UserFactory()


@pytest.fixture
def operator(db):
    """Platform operator (is_staff)."""
    from marketplace.tests.factories import OperatorFactory

    return OperatorFactory()


@pytest.fixture
def api_client():
    from rest_framework.test import APIClient

    return APIClient()


@pytest.fixture
def authenticated_client():
    """
    Factory returning an APIClient carrying a JWT for the given user.

    Usage:
        client = authenticated_client(invoice.customer)
        client.post(url, data, format="json")
    """
    from rest_framework.test import APIClient
    from rest_framework_simplejwt.tokens import RefreshToken

    def _client(user):
        client = APIClient()
        token = RefreshToken.for_user(user)
        client.credentials(HTTP_AUTHORIZATION=f"Bearer {token.access_token}")
        return client

    return _client
