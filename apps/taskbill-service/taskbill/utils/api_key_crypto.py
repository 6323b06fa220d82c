"""
Key generation and hashing utilities for external API keys.

Responsibilities:
- Generate key strings of the form: tmp_<32 alphanumeric chars>
- Hash keys with SHA-256 (hex) so a presented key can be found by an indexed
  equality lookup on `api_keys.key_hash`
- Provide the display prefix shown in listings
"""
from __future__ import annotations

import hashlib
import hmac
import secrets
import string
from typing import Optional, Tuple

KEY_PREFIX = "tmp_"
KEY_BODY_LENGTH = 32
DISPLAY_PREFIX_LENGTH = 8

_ALPHABET = string.ascii_letters + string.digits


def generate_key_body(length: int = KEY_BODY_LENGTH) -> str:
    """Return `length` random alphanumeric characters from a CSPRNG."""
    return "".join(secrets.choice(_ALPHABET) for _ in range(length))


def hash_key(raw_key: str) -> str:
    """Return the lowercase SHA-256 hex digest of the raw key."""
    return hashlib.sha256(raw_key.encode("utf-8")).hexdigest()


def verify_key(raw_key: str, key_hash: str) -> bool:
    if not raw_key or not key_hash:
        return False
    return hmac.compare_digest(hash_key(raw_key), key_hash)


def display_prefix(raw_key: str) -> str:
    """First characters of the key, safe to show in listings."""
    return raw_key[:DISPLAY_PREFIX_LENGTH]


def generate_key() -> Tuple[str, str, str]:
    """Generate a new key and return (raw_key, key_hash, display_prefix)."""
    raw = f"{KEY_PREFIX}{generate_key_body()}"
    return raw, hash_key(raw), display_prefix(raw)


def extract_presented_key(x_api_key: Optional[str], authorization: Optional[str]) -> Optional[str]:
    """Return the key from X-API-Key, else from `Authorization: Bearer <key>`."""
    if x_api_key and x_api_key.strip():
        return x_api_key.strip()
    if authorization and authorization.lower().startswith("bearer "):
        token = authorization[7:].strip()
        return token or None
    return None
