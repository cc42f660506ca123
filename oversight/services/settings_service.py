"""
Donor Oversight Platform
Settings Service — key/value application settings.

Reads go through the cache service (5 min TTL); every write invalidates
the cached map.  Secret keys are stored Fernet-encrypted when
ENCRYPTION_KEY is configured and are always masked in API output.
"""

import logging

from oversight.core.exceptions import NotFoundError, ValidationError
from oversight.models import db
from oversight.models.audit import write_audit
from oversight.models.setting import Setting
from oversight.services import cache_service
from oversight.utils.crypto import decrypt_secret, encrypt_secret, encryption_available

logger = logging.getLogger(__name__)

CACHE_KEY = "settings:all"
CACHE_TTL = 300
MASK = "********"

DEFAULT_SETTINGS = {
    "approvalThresholdUsd": 10000,
    "approvalThresholdPercent": 20,
    "emailNotificationsEnabled": True,
    "smtpHost": None,
    "smtpPort": 587,
    "smtpUser": None,
    "smtpPassword": None,
    "emailFromAddress": None,
    "sessionTimeoutMinutes": 30,
    "maxLoginAttempts": 5,
}

SECRET_KEYS = frozenset({"smtpPassword"})

# key → (type check, message)
_NUMERIC_RULES = {
    "approvalThresholdUsd": (lambda v: v >= 0, "must be a non-negative number"),
    "approvalThresholdPercent": (lambda v: 0 <= v <= 100, "must be between 0 and 100"),
    "smtpPort": (lambda v: 0 < v < 65536, "must be a valid port"),
    "sessionTimeoutMinutes": (lambda v: v > 0, "must be positive"),
    "maxLoginAttempts": (lambda v: v > 0, "must be positive"),
}


def _load_all() -> dict:
    return {s.key: s.value for s in Setting.query.all()}


def _all_raw() -> dict:
    return cache_service.get_cached(CACHE_KEY, ttl=CACHE_TTL, loader=_load_all) or {}


def clear_cache():
    cache_service.delete_cached(CACHE_KEY)


def get_setting(key: str, default=None):
    """Return the stored value for *key* (decrypted), or *default* when unset."""
    raw = _all_raw()
    if key not in raw or raw[key] is None:
        return default
    value = raw[key]
    if key in SECRET_KEYS and isinstance(value, str):
        return decrypt_secret(value)
    return value


def _mask(key, value):
    if key in SECRET_KEYS and value:
        return MASK
    return value


def get_all_settings() -> dict:
    """All settings, defaults first, with secrets masked."""
    merged = dict(DEFAULT_SETTINGS)
    merged.update(_all_raw())
    return {key: _mask(key, value) for key, value in merged.items()}


def get_public_setting(key: str) -> dict:
    raw = _all_raw()
    if key in raw:
        value = raw[key]
    elif key in DEFAULT_SETTINGS:
        value = DEFAULT_SETTINGS[key]
    else:
        raise NotFoundError(resource="Setting", resource_id=key)
    return {"key": key, "value": _mask(key, value)}


def _validate(key, value):
    if not key or not isinstance(key, str) or len(key) > 100:
        raise ValidationError("Setting key must be a non-empty string (max 100 chars)",
                              details={"key": "invalid"})
    rule = _NUMERIC_RULES.get(key)
    if rule and value is not None:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValidationError(f"{key} must be a number", details={key: "must be a number"})
        check, message = rule
        if not check(value):
            raise ValidationError(f"{key} {message}", details={key: message})
    if key == "emailNotificationsEnabled" and not isinstance(value, bool):
        raise ValidationError(f"{key} must be true or false", details={key: "must be a boolean"})


def _store(key, value, user_id):
    _validate(key, value)
    stored = value
    if key in SECRET_KEYS and isinstance(value, str) and value:
        if encryption_available():
            stored = encrypt_secret(value)
        else:
            logger.warning("ENCRYPTION_KEY not set — storing %s in plaintext", key)

    setting = Setting.query.filter_by(key=key).first()
    if setting is None:
        setting = Setting(key=key, value=stored, updated_by_id=user_id)
        db.session.add(setting)
        db.session.flush()
        write_audit(action="Create", object_type="Setting", object_id=setting.id,
                    new_values={"key": key, "value": _mask(key, value)})
    else:
        previous = setting.value
        setting.value = stored
        setting.updated_by_id = user_id
        write_audit(action="Update", object_type="Setting", object_id=setting.id,
                    previous_values={"key": key, "value": _mask(key, previous)},
                    new_values={"key": key, "value": _mask(key, value)})
    return setting


def set_setting(key: str, value, user_id: int | None = None) -> dict:
    """Upsert one setting and audit the change."""
    _store(key, value, user_id)
    db.session.commit()
    clear_cache()
    logger.info("Setting updated: %s", key, extra={"user_id": user_id})
    return {"key": key, "value": _mask(key, value)}


def set_many(values: dict, user_id: int | None = None) -> dict:
    """Upsert several settings in one transaction."""
    if not isinstance(values, dict) or not values:
        raise ValidationError("Expected a non-empty object of settings")
    for key, value in values.items():
        _store(key, value, user_id)
    db.session.commit()
    clear_cache()
    return get_all_settings()


def delete_setting(key: str) -> None:
    setting = Setting.query.filter_by(key=key).first()
    if setting is None:
        raise NotFoundError(resource="Setting", resource_id=key)
    write_audit(action="Delete", object_type="Setting", object_id=setting.id,
                previous_values={"key": key, "value": _mask(key, setting.value)})
    db.session.delete(setting)
    db.session.commit()
    clear_cache()


def seed_defaults() -> int:
    """Insert any missing default settings.  Returns the number created."""
    existing = {s.key for s in Setting.query.all()}
    created = 0
    for key, value in DEFAULT_SETTINGS.items():
        if key in existing:
            continue
        db.session.add(Setting(key=key, value=value))
        created += 1
    db.session.commit()
    clear_cache()
    if created:
        logger.info("Seeded %d default settings", created)
    return created


def approval_thresholds() -> tuple[float, float]:
    """(usd, percent) thresholds for automatic approval."""
    usd = get_setting("approvalThresholdUsd", 5000)
    pct = get_setting("approvalThresholdPercent", 10)
    return float(usd), float(pct)
