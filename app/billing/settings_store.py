"""
Billing settings: admin-editable prices, fee tiers and feature limits.

Values live as flat BillingSetting rows (``billing.<name>``) and are read
through the shared Django cache. The store is the single writer and the
contract is invalidate-before-acknowledge: update() returns only after the
cache generation has moved on, so no read that starts after an admin update
can see the previous values.

Usage:
    from billing.settings_store import billing_settings

    current = billing_settings.get()
    current.escrow_fee_premium          # 49900
    current.features_for_tier("free")   # {"wanted_ad_limit": 3, ...}

    billing_settings.update({"escrow_expiry_days": 14}, actor=request.user)
"""

from __future__ import annotations

import logging
import time
from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, Any

from django.conf import settings
from django.core.cache import cache
from django.db import transaction

from core.exceptions import ValidationError

from billing.models import SETTING_KEY_PREFIX, BillingSetting
from billing.state_machines import SubscriptionTier

if TYPE_CHECKING:
    from authentication.models import User

logger = logging.getLogger(__name__)


# =============================================================================
# Defaults
# =============================================================================

# Numeric feature limits; -1 means unlimited in storage.
FEATURE_LIMIT_KEYS = (
    "wanted_ad_limit",
    "specific_address_limit",
    "saved_search_limit",
    "postcard_free_monthly",
)

FEATURE_FLAG_KEYS = (
    "priority_notifications",
    "early_access",
    "match_notifications",
    "direct_messaging",
    "postcard_enabled",
)

DEFAULT_FREE_FEATURES: dict[str, int | bool] = {
    "wanted_ad_limit": 3,
    "specific_address_limit": 1,
    "saved_search_limit": 5,
    "postcard_free_monthly": 0,
    "priority_notifications": False,
    "early_access": False,
    "match_notifications": True,
    "direct_messaging": True,
    "postcard_enabled": False,
}

DEFAULT_PRO_FEATURES: dict[str, int | bool] = {
    "wanted_ad_limit": -1,
    "specific_address_limit": -1,
    "saved_search_limit": -1,
    "postcard_free_monthly": 1,
    "priority_notifications": True,
    "early_access": True,
    "match_notifications": True,
    "direct_messaging": True,
    "postcard_enabled": True,
}


@dataclass(frozen=True)
class IntSetting:
    default: int
    minimum: int = 0
    maximum: int | None = None


@dataclass(frozen=True)
class BoolSetting:
    default: bool


@dataclass(frozen=True)
class FeatureTableSetting:
    default: dict[str, int | bool]


SETTING_SPECS: dict[str, IntSetting | BoolSetting | FeatureTableSetting] = {
    # Subscription prices (cents)
    "pro_monthly_price": IntSetting(1900),
    "pro_yearly_price": IntSetting(19000),
    "pro_yearly_enabled": BoolSetting(False),
    # Finder's fee amounts (cents)
    "escrow_fee_standard": IntSetting(29900),
    "escrow_fee_premium": IntSetting(49900),
    "escrow_fee_luxury": IntSetting(79900),
    # Fee tier thresholds (whole currency units)
    "premium_threshold": IntSetting(1_000_000),
    "luxury_threshold": IntSetting(2_000_000),
    "escrow_expiry_days": IntSetting(30, minimum=1, maximum=90),
    # Postcards
    "postcard_cost": IntSetting(1500),
    "postcard_rate_limit_days": IntSetting(90, minimum=1, maximum=365),
    # Per-tier feature tables
    "free_features": FeatureTableSetting(DEFAULT_FREE_FEATURES),
    "pro_features": FeatureTableSetting(DEFAULT_PRO_FEATURES),
}


# =============================================================================
# Settings snapshot
# =============================================================================


@dataclass(frozen=True)
class BillingSettings:
    """Immutable snapshot of every billing setting."""

    pro_monthly_price: int
    pro_yearly_price: int
    pro_yearly_enabled: bool
    escrow_fee_standard: int
    escrow_fee_premium: int
    escrow_fee_luxury: int
    premium_threshold: int
    luxury_threshold: int
    escrow_expiry_days: int
    postcard_cost: int
    postcard_rate_limit_days: int
    free_features: dict[str, int | bool] = field(default_factory=dict)
    pro_features: dict[str, int | bool] = field(default_factory=dict)

    @classmethod
    def defaults(cls) -> BillingSettings:
        return cls.from_values({})

    @classmethod
    def from_values(cls, values: dict[str, Any]) -> BillingSettings:
        """Build a snapshot from stored values, filling gaps with defaults."""
        resolved: dict[str, Any] = {}
        for name, spec in SETTING_SPECS.items():
            if isinstance(spec, FeatureTableSetting):
                resolved[name] = {**spec.default, **(values.get(name) or {})}
            else:
                resolved[name] = values.get(name, spec.default)
        return cls(**resolved)

    def features_for_tier(self, tier: str) -> dict[str, int | bool]:
        if tier == SubscriptionTier.PRO:
            return dict(self.pro_features)
        return dict(self.free_features)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# =============================================================================
# Validation
# =============================================================================


def _validate_int(name: str, value: Any, spec: IntSetting) -> list[str]:
    if isinstance(value, bool) or not isinstance(value, int):
        return [f"{name} must be an integer"]
    if value < spec.minimum:
        return [f"{name} must be at least {spec.minimum}"]
    if spec.maximum is not None and value > spec.maximum:
        return [f"{name} must be at most {spec.maximum}"]
    return []


def _validate_feature_table(value: Any) -> list[str]:
    if not isinstance(value, dict):
        return ["must be an object"]
    errors = []
    for key, item in value.items():
        if key in FEATURE_LIMIT_KEYS:
            if isinstance(item, bool) or not isinstance(item, int) or item < -1:
                errors.append(f"{key} must be an integer >= -1 (-1 = unlimited)")
        elif key in FEATURE_FLAG_KEYS:
            if not isinstance(item, bool):
                errors.append(f"{key} must be a boolean")
        else:
            errors.append(f"unknown feature {key}")
    return errors


def validate_changes(
    changes: dict[str, Any], current: BillingSettings
) -> dict[str, Any]:
    """
    Validate a partial settings update against the current snapshot.

    Feature tables are merged key by key into the current table. Cross-field
    rules (threshold and fee ordering) are checked on the merged result.

    Returns:
        Cleaned values keyed by setting name

    Raises:
        ValidationError: With per-field messages in ``details``
    """
    errors: dict[str, list[str]] = {}
    cleaned: dict[str, Any] = {}

    for name, value in changes.items():
        spec = SETTING_SPECS.get(name)
        if spec is None:
            errors[name] = ["unknown setting"]
        elif isinstance(spec, IntSetting):
            problems = _validate_int(name, value, spec)
            if problems:
                errors[name] = problems
            else:
                cleaned[name] = value
        elif isinstance(spec, BoolSetting):
            if not isinstance(value, bool):
                errors[name] = [f"{name} must be a boolean"]
            else:
                cleaned[name] = value
        else:
            problems = _validate_feature_table(value)
            if problems:
                errors[name] = problems
            else:
                cleaned[name] = {**getattr(current, name), **value}

    if not errors:
        merged = {**current.to_dict(), **cleaned}
        if merged["luxury_threshold"] <= merged["premium_threshold"]:
            errors["luxury_threshold"] = [
                "luxury_threshold must be greater than premium_threshold"
            ]
        if not (
            merged["escrow_fee_standard"]
            <= merged["escrow_fee_premium"]
            <= merged["escrow_fee_luxury"]
        ):
            errors["escrow_fee_premium"] = [
                "fees must satisfy standard <= premium <= luxury"
            ]

    if errors:
        raise ValidationError(
            "Invalid billing settings",
            error_code="INVALID_SETTINGS",
            details=errors,
        )
    return cleaned


# =============================================================================
# Store
# =============================================================================


class BillingSettingsStore:
    """
    Process-wide read-through cache over BillingSetting rows.

    Cached values are keyed by a generation number. Readers fetch the
    generation before loading rows; writers bump it after the rows are
    written. A reader that loaded rows before a write can only repopulate
    the previous generation, which no later read looks at.
    """

    cache_key = "billing:settings:v2"
    generation_key = "billing:settings:generation"

    @property
    def timeout(self) -> int:
        return getattr(settings, "BILLING_SETTINGS_CACHE_SECONDS", 60)

    def _generation(self) -> int | None:
        generation = cache.get(self.generation_key)
        if generation is None:
            # Seeded from the clock so an evicted counter never reuses
            # a generation that still has values cached under it.
            cache.add(self.generation_key, time.time_ns(), timeout=None)
            generation = cache.get(self.generation_key)
        return generation

    def values_key(self, generation: int) -> str:
        return f"{self.cache_key}:{generation}"

    def get(self) -> BillingSettings:
        generation = self._generation()
        if generation is None:
            # Cache unavailable
            return BillingSettings.from_values(self._load())

        key = self.values_key(generation)
        values = cache.get(key)
        if values is None:
            values = self._load()
            cache.set(key, values, self.timeout)
        return BillingSettings.from_values(values)

    def update(
        self, changes: dict[str, Any], actor: User | None = None
    ) -> BillingSettings:
        """
        Validate and persist a partial update, then invalidate the cache.

        Raises:
            ValidationError: If any value is rejected; nothing is written
        """
        current = BillingSettings.from_values(self._load())
        cleaned = validate_changes(changes, current)

        with transaction.atomic():
            for name, value in cleaned.items():
                BillingSetting.objects.update_or_create(
                    key=f"{SETTING_KEY_PREFIX}{name}",
                    defaults={"value": value, "updated_by": actor},
                )
            # Covers callers already inside an outer transaction.
            transaction.on_commit(self.invalidate)
        self.invalidate()

        logger.info(
            "Billing settings updated",
            extra={
                "keys": sorted(cleaned),
                "actor_id": getattr(actor, "pk", None),
            },
        )
        return self.get()

    def invalidate(self) -> None:
        """Move readers to a fresh generation."""
        try:
            cache.incr(self.generation_key)
        except ValueError:
            cache.set(self.generation_key, time.time_ns(), timeout=None)

    def _load(self) -> dict[str, Any]:
        rows = BillingSetting.objects.filter(key__startswith=SETTING_KEY_PREFIX)
        values = {}
        for row in rows:
            name = row.key[len(SETTING_KEY_PREFIX):]
            if name in SETTING_SPECS:
                values[name] = row.value
        return values


billing_settings = BillingSettingsStore()
