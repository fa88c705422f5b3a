"""Tests for the subscription feature gate."""

import pytest

from core.exceptions import ValidationError

from billing.feature_gate import (
    Bounded,
    Unlimited,
    effective_tier,
    features_for,
    has_feature,
    limit_for,
    to_limit,
)
from billing.settings_store import billing_settings
from billing.state_machines import SubscriptionStatus, SubscriptionTier
from billing.tests.factories import SubscriptionFactory


class TestLimitTypes:
    def test_sentinel_converts_to_unlimited(self):
        assert to_limit(-1) == Unlimited()
        assert to_limit(0) == Bounded(0)
        assert to_limit(3) == Bounded(3)

    def test_bounded_cannot_be_negative(self):
        with pytest.raises(ValueError):
            Bounded(-2)

    def test_bounded_remaining_and_allows(self):
        limit = Bounded(3)
        assert limit.allows(used=2)
        assert not limit.allows(used=3)
        assert limit.remaining(5) == Bounded(0)

    def test_unlimited_allows_everything(self):
        assert Unlimited().allows(used=10_000)
        assert Unlimited().remaining(10) == Unlimited()

    def test_json_rendering(self):
        assert Unlimited().to_json() == {"unlimited": True, "limit": None}
        assert Bounded(5).to_json() == {"unlimited": False, "limit": 5}

    def test_match_on_type(self):
        match to_limit(4).remaining(1):
            case Bounded(n):
                assert n == 3
            case Unlimited():
                pytest.fail("expected a bounded limit")


@pytest.mark.django_db
class TestEffectiveTier:
    def test_no_subscription_is_free(self, user):
        assert effective_tier(user) == SubscriptionTier.FREE

    def test_active_pro(self, user):
        SubscriptionFactory(user=user, pro=True)
        assert effective_tier(user) == SubscriptionTier.PRO

    @pytest.mark.parametrize(
        "status",
        [
            SubscriptionStatus.PAST_DUE,
            SubscriptionStatus.CANCELED,
            SubscriptionStatus.INCOMPLETE,
        ],
    )
    def test_inactive_pro_falls_back_to_free(self, user, status):
        SubscriptionFactory(user=user, pro=True, status=status)
        assert effective_tier(user) == SubscriptionTier.FREE


@pytest.mark.django_db
class TestLimitFor:
    def test_free_user_is_bounded(self, user):
        assert limit_for(user, "wanted_ad_limit") == Bounded(3)

    def test_pro_user_is_unlimited(self, user):
        SubscriptionFactory(user=user, pro=True)
        assert limit_for(user, "wanted_ad_limit") == Unlimited()

    def test_reflects_admin_update(self, user):
        billing_settings.update({"free_features": {"wanted_ad_limit": 10}})
        assert limit_for(user, "wanted_ad_limit") == Bounded(10)

    def test_unknown_feature(self, user):
        with pytest.raises(ValidationError) as exc_info:
            limit_for(user, "teleport_limit")
        assert exc_info.value.error_code == "UNKNOWN_FEATURE"

    def test_flag_key_is_not_a_limit(self, user):
        with pytest.raises(ValidationError):
            limit_for(user, "early_access")


@pytest.mark.django_db
class TestHasFeature:
    def test_free_user_flags(self, user):
        assert has_feature(user, "match_notifications") is True
        assert has_feature(user, "early_access") is False

    def test_pro_user_flags(self, user):
        SubscriptionFactory(user=user, pro=True)
        assert has_feature(user, "early_access") is True

    def test_unknown_flag(self, user):
        with pytest.raises(ValidationError):
            has_feature(user, "wanted_ad_limit")


@pytest.mark.django_db
def test_features_for_renders_limits(user):
    SubscriptionFactory(user=user, pro=True)
    result = features_for(user)
    assert result["tier"] == SubscriptionTier.PRO
    assert result["limits"]["saved_search_limit"] == {"unlimited": True, "limit": None}
    assert result["limits"]["postcard_free_monthly"] == {"unlimited": False, "limit": 1}
    assert result["flags"]["priority_notifications"] is True
