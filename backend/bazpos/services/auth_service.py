# Overview: Service-layer operations for the shared admin password check.

"""
Admin Password Service

WHY: Sensitive screens (salaries, stock corrections, reports) sit behind one
shared admin password. There are no per-user accounts to authenticate.

SECURITY NOTES:
- The password is stored as a bcrypt hash in app_config/main.adminPasswordHash
- Stores migrated from the old plaintext field (adminPassword) still verify;
  the first successful check replaces the plaintext with a hash
- The hash is never returned by the data-loading API
"""

import hmac

import bcrypt

from ..validation import ValidationError
from . import ledger_store


HASH_FIELD = "adminPasswordHash"
LEGACY_FIELD = "adminPassword"

MIN_PASSWORD_LENGTH = 4


def hash_password(password: str) -> str:
    """Hash password using bcrypt with cost factor 12."""
    salt = bcrypt.gensalt(rounds=12)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def set_admin_password(password: str) -> None:
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Admin password must be at least {MIN_PASSWORD_LENGTH} characters long")

    _store_hash(hash_password(password))


def _store_hash(password_hash: str) -> None:
    def _op():
        config = ledger_store.get_config()
        config.pop(LEGACY_FIELD, None)
        config[HASH_FIELD] = password_hash
        ledger_store.set_document(ledger_store.APP_CONFIG, ledger_store.CONFIG_DOC_ID, config)

    ledger_store.transaction(_op)


def validate_admin_password(password: str) -> bool:
    if not isinstance(password, str) or not password:
        return False

    config = ledger_store.get_config()
    stored_hash = config.get(HASH_FIELD)
    if stored_hash:
        return verify_password(password, stored_hash)

    legacy = config.get(LEGACY_FIELD)
    if isinstance(legacy, str) and hmac.compare_digest(legacy.encode("utf-8"), password.encode("utf-8")):
        _store_hash(hash_password(password))
        return True
    return False
