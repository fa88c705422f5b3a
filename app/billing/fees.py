"""
Finder's-fee calculation.

The fee is a three-step function of the property value with two
breakpoints, both read from billing settings on every call:

    value <  premium_threshold                      -> escrow_fee_standard
    premium_threshold <= value < luxury_threshold   -> escrow_fee_premium
    value >= luxury_threshold                       -> escrow_fee_luxury

Usage:
    from billing.fees import calculate_fee, tier_name

    calculate_fee(1_200_000)   # 49900
    tier_name(1_200_000)       # "premium"
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import ValidationError

from billing.settings_store import BillingSettings, billing_settings

if TYPE_CHECKING:
    from marketplace.models import Property

STANDARD = "standard"
PREMIUM = "premium"
LUXURY = "luxury"


def _require_value(property_value: int | None) -> int:
    if property_value is None:
        raise ValidationError(
            "A property valuation is required to price the finder's fee",
            error_code="PROPERTY_VALUE_UNKNOWN",
        )
    if property_value < 0:
        raise ValidationError(
            "Property value cannot be negative",
            details={"property_value": property_value},
        )
    return property_value


def tier_name(
    property_value: int | None, current: BillingSettings | None = None
) -> str:
    """Fee tier for a property value: ``standard``, ``premium`` or ``luxury``."""
    value = _require_value(property_value)
    current = current or billing_settings.get()
    if value >= current.luxury_threshold:
        return LUXURY
    if value >= current.premium_threshold:
        return PREMIUM
    return STANDARD


def calculate_fee(
    property_value: int | None, current: BillingSettings | None = None
) -> int:
    """
    Finder's fee in cents for a property value.

    Raises:
        ValidationError: If property_value is None or negative
    """
    current = current or billing_settings.get()
    tier = tier_name(property_value, current)
    return {
        STANDARD: current.escrow_fee_standard,
        PREMIUM: current.escrow_fee_premium,
        LUXURY: current.escrow_fee_luxury,
    }[tier]


def tier_label(tier: str) -> str:
    return tier.capitalize()


def format_amount(amount_cents: int) -> str:
    """``49900`` -> ``"$499.00"``"""
    return f"${amount_cents / 100:,.2f}"


def resolve_property_value(prop: Property) -> int | None:
    """Estimated value, falling back to the rateable value."""
    if prop.estimated_value is not None:
        return prop.estimated_value
    return prop.rateable_value
