# Overview: Tenant settings (AppSettings) read/write.

"""
Settings Service

The settings record lives in the store under entity type "settings" with the
fixed id "settings". A tenant that never saved settings gets the defaults.
Saving merges the payload over the current values, so partial updates
(e.g. only tier_discounts) keep everything else.
"""

from __future__ import annotations

from ..models import AppSettings, SETTINGS_RECORD_ID
from ..storage import Store


def get_settings(store: Store) -> AppSettings:
    record = store.get(AppSettings.ENTITY_TYPE, SETTINGS_RECORD_ID)
    if record is None:
        return AppSettings()
    return AppSettings.from_dict(record)


def save_settings(store: Store, changes: dict) -> AppSettings:
    """Validate and merge changes over the current settings (last writer wins)."""
    current = get_settings(store)
    merged = {**current.to_dict(), **changes}
    if "tier_discounts" in changes and isinstance(changes["tier_discounts"], dict):
        merged["tier_discounts"] = {**current.to_dict()["tier_discounts"], **changes["tier_discounts"]}
    if "tier_multipliers" in changes and isinstance(changes["tier_multipliers"], dict):
        merged["tier_multipliers"] = {**current.to_dict()["tier_multipliers"], **changes["tier_multipliers"]}

    settings = AppSettings.from_dict(merged)
    record = {"id": SETTINGS_RECORD_ID, **settings.to_dict()}
    settings.version = store.upsert(AppSettings.ENTITY_TYPE, SETTINGS_RECORD_ID, record)
    return settings
