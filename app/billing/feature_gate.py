"""
Feature gate: what a user may do right now, given their subscription.

Numeric limits come back as a ``Limit``, which is either ``Unlimited()``
or ``Bounded(n)``. Callers match on the type instead of comparing against
a -1 sentinel; the sentinel exists only in stored settings and is
converted at the boundary in ``to_limit``.

Usage:
    from billing.feature_gate import Bounded, Unlimited, limit_for

    limit = limit_for(user, "wanted_ad_limit")
    if not limit.allows(used=active_ads):
        raise PermissionDeniedError("Wanted ad limit reached")

    match limit.remaining(active_ads):
        case Unlimited():
            ...
        case Bounded(n):
            ...
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Union

from core.exceptions import ValidationError

from billing.models import Subscription
from billing.settings_store import (
    FEATURE_FLAG_KEYS,
    FEATURE_LIMIT_KEYS,
    billing_settings,
)
from billing.state_machines import SubscriptionTier

if TYPE_CHECKING:
    from authentication.models import User


@dataclass(frozen=True)
class Unlimited:
    """No cap on this feature."""

    def remaining(self, used: int) -> Unlimited:
        return self

    def allows(self, used: int) -> bool:
        return True

    def to_json(self) -> dict:
        return {"unlimited": True, "limit": None}


@dataclass(frozen=True)
class Bounded:
    """At most ``n`` uses."""

    n: int

    def __post_init__(self):
        if self.n < 0:
            raise ValueError("Bounded limit cannot be negative")

    def remaining(self, used: int) -> Bounded:
        return Bounded(max(0, self.n - used))

    def allows(self, used: int) -> bool:
        return used < self.n

    def to_json(self) -> dict:
        return {"unlimited": False, "limit": self.n}


Limit = Union[Unlimited, Bounded]


def to_limit(stored: int) -> Limit:
    """Convert a stored limit (-1 = unlimited) to a Limit."""
    if stored == -1:
        return Unlimited()
    return Bounded(stored)


def effective_tier(user: User) -> str:
    """
    The tier whose limits apply to this user.

    No subscription record, or a PRO subscription that is not ACTIVE,
    resolves to FREE.
    """
    subscription = Subscription.objects.filter(user=user).only("tier", "status").first()
    if subscription is None:
        return SubscriptionTier.FREE
    if subscription.tier == SubscriptionTier.PRO and not subscription.is_active_pro:
        return SubscriptionTier.FREE
    return subscription.tier


def limit_for(user: User, feature_key: str) -> Limit:
    """
    Numeric limit for a feature under the user's effective tier.

    Raises:
        ValidationError: If feature_key is not a numeric feature
    """
    if feature_key not in FEATURE_LIMIT_KEYS:
        raise ValidationError(
            f"Unknown limited feature: {feature_key}",
            error_code="UNKNOWN_FEATURE",
            details={"feature": feature_key},
        )
    table = billing_settings.get().features_for_tier(effective_tier(user))
    return to_limit(table[feature_key])


def has_feature(user: User, feature_key: str) -> bool:
    """
    Whether a boolean feature is enabled under the user's effective tier.

    Raises:
        ValidationError: If feature_key is not a boolean feature
    """
    if feature_key not in FEATURE_FLAG_KEYS:
        raise ValidationError(
            f"Unknown feature flag: {feature_key}",
            error_code="UNKNOWN_FEATURE",
            details={"feature": feature_key},
        )
    table = billing_settings.get().features_for_tier(effective_tier(user))
    return bool(table[feature_key])


def features_for(user: User) -> dict:
    """Resolved limits and flags for display, limits rendered via to_json()."""
    tier = effective_tier(user)
    table = billing_settings.get().features_for_tier(tier)
    return {
        "tier": tier,
        "limits": {key: to_limit(table[key]).to_json() for key in FEATURE_LIMIT_KEYS},
        "flags": {key: bool(table[key]) for key in FEATURE_FLAG_KEYS},
    }
