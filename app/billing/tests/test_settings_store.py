"""Tests for the cached billing settings store."""

from unittest.mock import patch

import pytest
from django.core.cache import cache

from core.exceptions import ValidationError

from billing.models import BillingSetting
from billing.settings_store import (
    DEFAULT_FREE_FEATURES,
    BillingSettings,
    BillingSettingsStore,
    billing_settings,
)

pytestmark = pytest.mark.django_db


class TestGet:
    def test_defaults_when_nothing_stored(self):
        current = billing_settings.get()
        assert current == BillingSettings.defaults()
        assert current.escrow_fee_standard == 29900
        assert current.escrow_expiry_days == 30
        assert current.free_features == DEFAULT_FREE_FEATURES

    def test_stored_rows_override_defaults(self):
        BillingSetting.objects.create(key="billing.escrow_expiry_days", value=14)
        assert billing_settings.get().escrow_expiry_days == 14

    def test_unknown_stored_keys_are_ignored(self):
        BillingSetting.objects.create(key="billing.legacy_thing", value=1)
        assert billing_settings.get() == BillingSettings.defaults()

    def test_reads_are_cached(self):
        billing_settings.get()
        with patch.object(BillingSetting.objects, "filter") as mock_filter:
            billing_settings.get()
        mock_filter.assert_not_called()


class TestUpdate:
    def test_persists_and_returns_new_values(self, staff_user):
        updated = billing_settings.update(
            {"escrow_fee_luxury": 99900, "pro_yearly_enabled": True}, actor=staff_user
        )

        assert updated.escrow_fee_luxury == 99900
        assert updated.pro_yearly_enabled is True
        row = BillingSetting.objects.get(key="billing.escrow_fee_luxury")
        assert row.value == 99900
        assert row.updated_by == staff_user

    def test_cache_is_invalidated_before_returning(self):
        billing_settings.get()
        generation = cache.get(billing_settings.generation_key)
        assert cache.get(billing_settings.values_key(generation)) is not None

        with patch.object(billing_settings, "invalidate", wraps=billing_settings.invalidate) as spy:
            billing_settings.update({"escrow_expiry_days": 7})
        spy.assert_called()

        assert billing_settings.get().escrow_expiry_days == 7

    def test_read_racing_an_update_does_not_pin_old_values(self):
        real_load = BillingSettingsStore._load
        raced = []

        def load_then_update(store):
            values = real_load(store)
            if not raced:
                raced.append(True)
                store.update({"escrow_fee_premium": 55000})
            return values

        with patch.object(BillingSettingsStore, "_load", load_then_update):
            stale = billing_settings.get()

        assert stale.escrow_fee_premium == 49900
        assert billing_settings.get().escrow_fee_premium == 55000

    def test_works_without_generation_counter(self):
        billing_settings.get()
        cache.delete(billing_settings.generation_key)

        billing_settings.update({"escrow_expiry_days": 9})

        assert billing_settings.get().escrow_expiry_days == 9

    def test_feature_table_is_merged(self):
        billing_settings.update({"free_features": {"wanted_ad_limit": 5}})
        features = billing_settings.get().free_features
        assert features["wanted_ad_limit"] == 5
        assert features["saved_search_limit"] == DEFAULT_FREE_FEATURES["saved_search_limit"]

    @pytest.mark.parametrize(
        "changes,field",
        [
            ({"nonsense": 1}, "nonsense"),
            ({"escrow_fee_standard": "lots"}, "escrow_fee_standard"),
            ({"escrow_fee_standard": True}, "escrow_fee_standard"),
            ({"escrow_expiry_days": 0}, "escrow_expiry_days"),
            ({"escrow_expiry_days": 91}, "escrow_expiry_days"),
            ({"pro_yearly_enabled": "yes"}, "pro_yearly_enabled"),
            ({"luxury_threshold": 1_000_000}, "luxury_threshold"),
            ({"escrow_fee_standard": 60000}, "escrow_fee_premium"),
            ({"pro_features": {"wanted_ad_limit": -2}}, "pro_features"),
            ({"pro_features": {"early_access": 1}}, "pro_features"),
            ({"pro_features": {"hovercraft": True}}, "pro_features"),
        ],
    )
    def test_rejects_invalid_values(self, changes, field):
        with pytest.raises(ValidationError) as exc_info:
            billing_settings.update(changes)

        assert exc_info.value.error_code == "INVALID_SETTINGS"
        assert field in exc_info.value.details
        assert not BillingSetting.objects.exists()

    def test_cross_field_rule_uses_merged_values(self):
        billing_settings.update({"luxury_threshold": 5_000_000})
        updated = billing_settings.update({"premium_threshold": 3_000_000})
        assert updated.premium_threshold == 3_000_000
