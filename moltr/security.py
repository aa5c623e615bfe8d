"""
Security module for Moltr API.

Provides input validation, client identification and log sanitization.
"""

import re
from typing import Any, Dict, List, Mapping, Optional

from .errors import ValidationFailed


# ============================================================
# Input Validation
# ============================================================

USERNAME_PATTERN = re.compile(r'^[a-z0-9_]{3,20}$')
RECEIPT_ID_PATTERN = re.compile(r'^[a-f0-9]{32}$')
OBJECT_KEY_PATTERN = re.compile(
    r'^tokens/[A-Za-z0-9][A-Za-z0-9_-]{0,127}/(logo\.png|metadata\.json)$'
)


def normalize_username(value: Any) -> str:
    """
    Case-normalize and validate a username for lookup.

    Raises:
        ValidationFailed: If the value is not a valid username
    """
    if not isinstance(value, str):
        raise ValidationFailed("Invalid username")

    username = value.lower()
    if not USERNAME_PATTERN.match(username):
        raise ValidationFailed("Invalid username")

    return username


def validate_object_key(raw_key: str) -> str:
    """
    Validate an object key against the allowed upload paths.

    Allowed: tokens/<id>/logo.png or tokens/<id>/metadata.json.
    The id segment cannot start with a dot, so "." and ".." never match.

    Returns:
        The key with leading slashes stripped

    Raises:
        ValidationFailed: If the key is not allowed
    """
    key = (raw_key or "").lstrip("/")
    if not OBJECT_KEY_PATTERN.match(key):
        raise ValidationFailed(
            "Invalid key. Allowed: tokens/<mint>/logo.png or tokens/<mint>/metadata.json"
        )
    return key


def is_receipt_id(value: str) -> bool:
    """Check the shape of a receipt id without touching the store."""
    return isinstance(value, str) and bool(RECEIPT_ID_PATTERN.match(value))


# ============================================================
# Rate Limiting Helpers
# ============================================================

def extract_client_id(
    headers: Mapping[str, str],
    peer: Optional[str] = None,
    trust_proxy: bool = False
) -> str:
    """
    Extract a client identifier from request headers for rate limiting.
    The API key is deliberately not used here.

    X-Forwarded-For is client-controlled, so it is read only when
    trust_proxy is set.
    """
    forwarded = headers.get("x-forwarded-for", "") if trust_proxy else ""
    if forwarded:
        return f"ip:{forwarded.split(',')[0].strip()}"

    if peer:
        return f"ip:{peer}"

    return "anonymous"


# ============================================================
# Audit Logging Helpers
# ============================================================

SENSITIVE_FIELDS = [
    "api_key", "apiKey", "x-api-key", "api_key_hash", "apiKeyHash",
    "secret", "password", "token", "signature", "memo",
]


def sanitize_for_logging(data: Dict[str, Any], sensitive_fields: List[str] = None) -> Dict[str, Any]:
    """
    Sanitize data for logging by redacting sensitive fields.

    Args:
        data: The data to sanitize
        sensitive_fields: List of field names to redact

    Returns:
        Sanitized copy of the data
    """
    if sensitive_fields is None:
        sensitive_fields = SENSITIVE_FIELDS

    result = {}
    for key, value in data.items():
        if key in sensitive_fields:
            result[key] = "[REDACTED]"
        elif isinstance(value, dict):
            result[key] = sanitize_for_logging(value, sensitive_fields)
        elif isinstance(value, list):
            result[key] = [
                sanitize_for_logging(item, sensitive_fields) if isinstance(item, dict) else item
                for item in value
            ]
        else:
            result[key] = value

    return result
