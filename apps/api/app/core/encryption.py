"""Encryption helpers for store secrets kept at rest.

Carrier passwords and payment-gateway keys are stored on the Store row
encrypted with Fernet. The key is derived from ``settings.encryption_key``,
so rotating that setting invalidates every stored secret.
"""

import base64
import hashlib
import logging
from functools import lru_cache

from cryptography.fernet import Fernet, InvalidToken

from app.core.config import settings

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def _get_fernet() -> Fernet:
    key_bytes = hashlib.sha256(settings.encryption_key.encode()).digest()
    return Fernet(base64.urlsafe_b64encode(key_bytes))


def encrypt_secret(value: str) -> str:
    """Encrypt a secret for storage."""
    return _get_fernet().encrypt(value.encode()).decode()


def decrypt_secret(encrypted: str) -> str:
    """Decrypt a stored secret. Raises ``InvalidToken`` on a bad value."""
    return _get_fernet().decrypt(encrypted.encode()).decode()


def reveal_secret(encrypted: str | None) -> str | None:
    """Decrypt a stored secret, returning None when missing or unreadable."""
    if not encrypted:
        return None
    try:
        return decrypt_secret(encrypted)
    except InvalidToken:
        logger.warning("Stored secret could not be decrypted; was the encryption key rotated?")
        return None
