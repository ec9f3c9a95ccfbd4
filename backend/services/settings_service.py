"""System settings reader with a short-lived in-memory cache.

Settings live in the system_settings collection, one document per key:
    {key, value, description, category, is_active, created_at, updated_at}

Reads never raise: a missing, inactive, invalid or unreadable value yields
None and callers fall back to DEFAULT_SETTINGS.
"""
import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from database import database
from models import PaymentSettings, GeneralSettings

logger = logging.getLogger(__name__)

CACHE_TTL_SECONDS = 5 * 60

PAYMENT_KEYS = (
    "payment_required",
    "free_trials_allowed",
    "trial_limit",
    "payment_amount",
    "payment_currency",
)

DEFAULT_SETTINGS: Dict[str, Any] = {
    "payment_required": True,
    "free_trials_allowed": False,
    "trial_limit": 1,
    "payment_amount": 399,
    "payment_currency": "EUR",
    "site_name": "Clicklone",
    "site_description": "Smart marketing copy generator",
}

SETTING_CATEGORIES = {
    "payment_required": "payment",
    "free_trials_allowed": "payment",
    "trial_limit": "payment",
    "payment_amount": "payment",
    "payment_currency": "payment",
    "site_name": "general",
    "site_description": "general",
}

SETTING_DESCRIPTIONS = {
    "payment_required": "Require payment before showing generated phrases",
    "free_trials_allowed": "Allow free generations before payment",
    "trial_limit": "Number of free generations per browser",
    "payment_amount": "Price in minor units (cents)",
    "payment_currency": "ISO 4217 currency code",
    "site_name": "Public site name",
    "site_description": "Public site description",
}


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


VALIDATORS: Dict[str, Callable[[Any], bool]] = {
    "payment_required": lambda v: isinstance(v, bool),
    "free_trials_allowed": lambda v: isinstance(v, bool),
    "trial_limit": lambda v: _is_int(v) and v >= 0,
    "payment_amount": lambda v: (_is_int(v) or isinstance(v, float)) and v > 0,
    "payment_currency": lambda v: isinstance(v, str) and len(v) == 3 and v.isalpha(),
    "site_name": lambda v: isinstance(v, str) and len(v.strip()) > 0,
    "site_description": lambda v: isinstance(v, str),
}


def validate_setting_value(key: str, value: Any) -> bool:
    validator = VALIDATORS.get(key)
    if validator is None:
        return False
    return validator(value)


class SettingsCache:
    """Per-key cache of setting values with a fixed TTL."""

    def __init__(self, ttl_seconds: int = CACHE_TTL_SECONDS, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, tuple] = {}

    def get(self, key: str) -> tuple[bool, Any]:
        """Return (hit, value)."""
        entry = self._entries.get(key)
        if entry is None:
            return False, None
        value, stored_at = entry
        if self._clock() - stored_at > self.ttl_seconds:
            del self._entries[key]
            return False, None
        return True, value

    def set(self, key: str, value: Any):
        self._entries[key] = (value, self._clock())

    def invalidate(self, key: Optional[str] = None):
        if key is None:
            self._entries.clear()
        else:
            self._entries.pop(key, None)


settings_cache = SettingsCache()


async def get_system_setting(key: str) -> Any:
    """Return the active, valid value for key or None."""
    hit, value = settings_cache.get(key)
    if hit:
        return value

    try:
        db = database.get_db()
        doc = await db.system_settings.find_one(
            {"key": key, "is_active": True},
            {"_id": 0, "value": 1}
        )
    except Exception as e:
        logger.error(f"Failed to read setting {key}: {e}")
        return None

    if not doc:
        return None

    value = doc.get("value")
    if key in VALIDATORS and not validate_setting_value(key, value):
        logger.warning(f"Invalid stored value for setting {key}: {value!r}")
        return None

    settings_cache.set(key, value)
    return value


async def _read_with_defaults(keys) -> Dict[str, Any]:
    results = await asyncio.gather(
        *(get_system_setting(key) for key in keys),
        return_exceptions=True,
    )
    values = {}
    for key, result in zip(keys, results):
        if isinstance(result, Exception) or result is None:
            values[key] = DEFAULT_SETTINGS[key]
        else:
            values[key] = result
    return values


async def get_payment_settings() -> PaymentSettings:
    values = await _read_with_defaults(PAYMENT_KEYS)
    values["payment_amount"] = int(round(values["payment_amount"]))
    values["payment_currency"] = values["payment_currency"].upper()
    return PaymentSettings(**values)


async def get_general_settings() -> GeneralSettings:
    values = await _read_with_defaults(("site_name", "site_description"))
    return GeneralSettings(**values)


async def update_system_setting(key: str, value: Any, description: Optional[str] = None) -> bool:
    """Validate and upsert a setting. Returns False when the value is rejected or the write fails."""
    if not validate_setting_value(key, value):
        logger.warning(f"Rejected value for setting {key}: {value!r}")
        return False

    now = datetime.now(timezone.utc).isoformat()
    update = {
        "value": value,
        "category": SETTING_CATEGORIES.get(key, "general"),
        "is_active": True,
        "updated_at": now,
    }
    if description is not None:
        update["description"] = description

    try:
        db = database.get_db()
        await db.system_settings.update_one(
            {"key": key},
            {"$set": update, "$setOnInsert": {"key": key, "created_at": now}},
            upsert=True,
        )
    except Exception as e:
        logger.error(f"Failed to update setting {key}: {e}")
        return False

    settings_cache.invalidate(key)
    logger.info(f"Setting updated: {key}")
    return True


async def get_all_system_settings() -> List[Dict[str, Any]]:
    db = database.get_db()
    cursor = db.system_settings.find({}, {"_id": 0}).sort([("category", 1), ("key", 1)])
    return await cursor.to_list(length=500)


def clear_settings_cache():
    settings_cache.invalidate()
    logger.info("Settings cache cleared")


async def seed_default_settings() -> int:
    """Insert defaults for missing keys. Existing values are left untouched."""
    db = database.get_db()
    now = datetime.now(timezone.utc).isoformat()
    inserted = 0
    for key, value in DEFAULT_SETTINGS.items():
        result = await db.system_settings.update_one(
            {"key": key},
            {"$setOnInsert": {
                "key": key,
                "value": value,
                "description": SETTING_DESCRIPTIONS.get(key),
                "category": SETTING_CATEGORIES.get(key, "general"),
                "is_active": True,
                "created_at": now,
                "updated_at": now,
            }},
            upsert=True,
        )
        if getattr(result, "upserted_id", None) is not None:
            inserted += 1
    if inserted:
        logger.info(f"Seeded {inserted} default settings")
    return inserted
