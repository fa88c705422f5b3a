"""
Shared pytest setup. App fixtures live in each app's tests/conftest.py.
"""

import django
import pytest

UNIT_MODULES = {
    "test_fees.py",
    "test_feature_gate.py",
    "test_exceptions.py",
    "test_adapters.py",
    "test_managers.py",
}


def pytest_configure():
    django.setup()

    from django.conf import settings

    settings.REST_FRAMEWORK["DEFAULT_THROTTLE_CLASSES"] = []
    settings.REST_FRAMEWORK["DEFAULT_THROTTLE_RATES"] = {}
    settings.PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

    # Billing settings cache runs in-process; sessions fall back to the DB
    settings.CACHES = {
        "default": {"BACKEND": "django.core.cache.backends.locmem.LocMemCache"}
    }
    settings.SESSION_ENGINE = "django.contrib.sessions.backends.db"

    # Every processor call is patched; the adapter only checks these are set
    settings.STRIPE_SECRET_KEY = "sk_test_dummy"
    settings.STRIPE_WEBHOOK_SECRET = "whsec_test_dummy"
    settings.STRIPE_PRO_PRICE_ID = "price_pro_monthly"
    settings.STRIPE_PRO_YEARLY_PRICE_ID = "price_pro_yearly"


def pytest_collection_modifyitems(items):
    """Mark modules as unit or integration unless a test is marked already."""
    for item in items:
        if {m.name for m in item.iter_markers()} & {"unit", "integration", "e2e"}:
            continue
        if item.path.name in UNIT_MODULES:
            item.add_marker(pytest.mark.unit)
        else:
            item.add_marker(pytest.mark.integration)


@pytest.fixture(autouse=True)
def _clear_cache():
    from django.core.cache import cache

    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def api_client():
    from rest_framework.test import APIClient

    return APIClient()
