from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import ClassVar

from ..errors import ValidationError
from ..validation import coerce_bool, coerce_money, coerce_str, money_str


SETTINGS_RECORD_ID = "settings"


def _default_tier_discounts() -> dict[str, Decimal]:
    return {"bronze": Decimal("0"), "silver": Decimal("2"), "gold": Decimal("5")}


def _default_tier_multipliers() -> dict[str, Decimal]:
    return {"bronze": Decimal("1"), "silver": Decimal("1.2"), "gold": Decimal("1.5")}


def _tier_table(raw, field_name: str) -> dict[str, Decimal]:
    if not isinstance(raw, dict):
        raise ValidationError(f"{field_name} must be an object keyed by tier")
    return {
        str(tier).lower(): coerce_money(value, f"{field_name}.{tier}")
        for tier, value in raw.items()
    }


@dataclass
class AppSettings:
    """
    Tenant configuration.

    Read-only input to pricing and points computation; the ledgers never
    write it. Tier tables are keyed by lower-case tier name.
    """
    ENTITY_TYPE: ClassVar[str] = "settings"

    store_name: str = "Warung Sejahtera"
    store_address: str = ""
    store_phone: str = ""
    footer_message: str = "Terima kasih, selamat belanja kembali!"
    enable_tax: bool = False
    tax_rate: Decimal = Decimal("11")
    tier_discounts: dict[str, Decimal] = field(default_factory=_default_tier_discounts)
    enable_points: bool = True
    point_value: Decimal = Decimal("1000")
    tier_multipliers: dict[str, Decimal] = field(default_factory=_default_tier_multipliers)
    version: int = 0

    def discount_rate_for(self, tier_key: str) -> Decimal:
        return self.tier_discounts.get(tier_key, Decimal("0"))

    def multiplier_for(self, tier_key: str) -> Decimal:
        return self.tier_multipliers.get(tier_key, Decimal("1"))

    def to_dict(self) -> dict:
        return {
            "store_name": self.store_name,
            "store_address": self.store_address,
            "store_phone": self.store_phone,
            "footer_message": self.footer_message,
            "enable_tax": self.enable_tax,
            "tax_rate": money_str(self.tax_rate),
            "tier_discounts": {k: money_str(v) for k, v in self.tier_discounts.items()},
            "enable_points": self.enable_points,
            "point_value": money_str(self.point_value),
            "tier_multipliers": {k: money_str(v) for k, v in self.tier_multipliers.items()},
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AppSettings":
        """Build settings from a (possibly partial) payload; missing keys keep defaults."""
        settings = cls()
        if "store_name" in data:
            settings.store_name = coerce_str(data["store_name"], "store_name")
        if "store_address" in data:
            settings.store_address = coerce_str(data["store_address"], "store_address", required=False) or ""
        if "store_phone" in data:
            settings.store_phone = coerce_str(data["store_phone"], "store_phone", required=False) or ""
        if "footer_message" in data:
            settings.footer_message = coerce_str(data["footer_message"], "footer_message", required=False) or ""
        if "enable_tax" in data:
            settings.enable_tax = coerce_bool(data["enable_tax"], "enable_tax")
        if "tax_rate" in data:
            settings.tax_rate = coerce_money(data["tax_rate"], "tax_rate")
        if "tier_discounts" in data:
            settings.tier_discounts = {**settings.tier_discounts, **_tier_table(data["tier_discounts"], "tier_discounts")}
        if "enable_points" in data:
            settings.enable_points = coerce_bool(data["enable_points"], "enable_points")
        if "point_value" in data:
            settings.point_value = coerce_money(data["point_value"], "point_value")
            if settings.point_value <= 0:
                raise ValidationError("point_value must be positive")
        if "tier_multipliers" in data:
            settings.tier_multipliers = {**settings.tier_multipliers, **_tier_table(data["tier_multipliers"], "tier_multipliers")}
        settings.version = int(data.get("version", 0))
        return settings
