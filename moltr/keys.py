"""
API key module for Moltr API.

Issues API keys and verifies them against stored Argon2id hashes.

Issued keys look like ``mk_<key_id>_<secret>``:
- key_id: 8 random hex chars, public; stored beside the hash as a routing hint
- secret: 32 random bytes, URL-safe base64

The hash covers the whole key string, so the key_id cannot be moved onto
another Tag's secret. Plaintext keys are never stored or logged.
"""

import re
import secrets
from typing import Optional, Tuple

from nacl.exceptions import CryptoError
from nacl.pwhash import argon2id

from .config import ARGON2_MEMLIMIT, ARGON2_OPSLIMIT

KEY_PREFIX = "mk"
KEY_ID_PATTERN = re.compile(r'^mk_([0-9a-f]{8})_[A-Za-z0-9_-]+$')


def generate_api_key() -> Tuple[str, str]:
    """
    Generate a fresh high-entropy API key.

    Returns:
        Tuple of (key_id, api_key)
    """
    key_id = secrets.token_hex(4)
    secret = secrets.token_urlsafe(32)
    return key_id, f"{KEY_PREFIX}_{key_id}_{secret}"


def key_id_from_api_key(api_key: str) -> Optional[str]:
    """Extract the public key id from an issued key, or None."""
    if not isinstance(api_key, str):
        return None
    m = KEY_ID_PATTERN.match(api_key)
    return m.group(1) if m else None


def hash_api_key(
    api_key: str,
    opslimit: int = ARGON2_OPSLIMIT,
    memlimit: int = ARGON2_MEMLIMIT
) -> str:
    """
    Hash an API key with Argon2id.

    A fresh salt is drawn on every call and embedded, together with the cost
    parameters, in the encoded output.

    Args:
        api_key: The plaintext key
        opslimit: Argon2 time cost
        memlimit: Argon2 memory cost in bytes

    Returns:
        Encoded hash string ("$argon2id$v=19$m=...")
    """
    hashed = argon2id.str(api_key.encode("utf-8"), opslimit=opslimit, memlimit=memlimit)
    return hashed.decode("ascii")


def verify_api_key(api_key: str, api_key_hash: str) -> bool:
    """
    Verify an API key against a stored Argon2id hash.

    Comparison is done by libsodium in constant time.

    Args:
        api_key: The presented key
        api_key_hash: Encoded hash from the credential store

    Returns:
        True if the key produced the hash, False otherwise (including
        malformed hashes)
    """
    if not isinstance(api_key, str) or not isinstance(api_key_hash, str):
        return False
    try:
        return argon2id.verify(api_key_hash.encode("utf-8"), api_key.encode("utf-8"))
    except (CryptoError, ValueError, TypeError):
        return False
