"""
Authentication and dual-party authorization for Moltr API.

API keys are stored only as salted Argon2id hashes, so a presented key
cannot be looked up directly: the resolver verifies it against candidate
credentials one by one. Issued keys carry a public key id that narrows the
candidates to (almost always) a single row; keys without one are checked
against every stored credential. Hash verification is always what decides.
"""

from typing import Optional

from fastapi import Depends, Request
from fastapi.security import APIKeyHeader

from .config import API_KEY_HEADER, KEY_ROUTING, MIN_API_KEY_LENGTH, TRUST_PROXY
from .db import list_credentials, list_credentials_for_key_id
from .errors import Forbidden, Unauthorized
from .keys import key_id_from_api_key, verify_api_key
from .logging_config import audit_log
from .models import Identity
from .security import extract_client_id

api_key_scheme = APIKeyHeader(
    name=API_KEY_HEADER,
    auto_error=False,
    description="API key from tag registration. Required for receipt endpoints.",
)


def resolve_identity(api_key: Optional[str], use_key_hint: Optional[bool] = None) -> Optional[Identity]:
    """
    Resolve a presented API key to the Tag it was issued to.

    Args:
        api_key: The presented key
        use_key_hint: Narrow candidates by the key id embedded in the key
            (defaults to MOLTR_KEY_ROUTING)

    Returns:
        The matching Identity, or None
    """
    if not api_key or not isinstance(api_key, str) or len(api_key) < MIN_API_KEY_LENGTH:
        return None

    if use_key_hint is None:
        use_key_hint = KEY_ROUTING

    key_id = key_id_from_api_key(api_key) if use_key_hint else None
    if key_id:
        candidates = list_credentials_for_key_id(key_id)
    else:
        candidates = list_credentials()

    for row in candidates:
        if verify_api_key(api_key, row["api_key_hash"]):
            return Identity(id=row["id"], username=row["username"])

    return None


def require_identity(
    request: Request,
    api_key: Optional[str] = Depends(api_key_scheme),
) -> Identity:
    """
    FastAPI dependency for protected routes.

    Declared as a plain function so FastAPI runs the (CPU-bound) scan on its
    worker thread pool. The returned Identity is handed to the route as an
    argument and lives only as long as the request.

    Raises:
        Unauthorized: If the key is missing or does not resolve
    """
    identity = resolve_identity(api_key)
    if identity is None:
        peer = request.client.host if request.client else None
        audit_log.authentication_failed(
            extract_client_id(request.headers, peer, TRUST_PROXY),
            "missing" if not api_key else "invalid",
        )
        raise Unauthorized("Invalid or missing API key")
    return identity


def is_party(identity: Identity, party_a_id: str, party_b_id: str) -> bool:
    """True if the identity is one of the two named Tags."""
    return identity.id == party_a_id or identity.id == party_b_id


def require_party(
    identity: Identity,
    party_a_id: str,
    party_b_id: str,
    message: str = "Not a party to this record"
) -> None:
    """
    Require the identity to be one of the two named Tags.

    Raises:
        Forbidden: If it is neither
    """
    if not is_party(identity, party_a_id, party_b_id):
        raise Forbidden(message)
