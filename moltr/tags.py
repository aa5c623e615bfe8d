"""
Tag registry: username -> wallet address.

There is deliberately no search or listing, to prevent enumeration.
"""

from typing import Dict

from .db import get_tag_by_id, get_tag_by_username, insert_tag, update_wallet_address
from .errors import Conflict, NotFound
from .keys import generate_api_key, hash_api_key
from .logging_config import audit_log
from .models import Identity
from .security import normalize_username
from .util import generate_id, now_micros


def register_tag(username: str, wallet_address: str) -> Dict[str, str]:
    """
    Create a Tag and issue its API key.

    The plaintext key is returned here once and is never retrievable again.

    Raises:
        Conflict: If the username is already registered
    """
    key_id, api_key = generate_api_key()
    api_key_hash = hash_api_key(api_key)
    tag_id = generate_id(16)

    if not insert_tag(tag_id, username, wallet_address, api_key_hash, key_id, now_micros()):
        raise Conflict("Username already registered")

    audit_log.tag_registered(tag_id, username)
    return {"username": username, "walletAddress": wallet_address, "apiKey": api_key}


def lookup_tag(raw_username: str) -> Dict[str, str]:
    """Exact, case-normalized lookup."""
    username = normalize_username(raw_username)
    tag = get_tag_by_username(username)
    if not tag:
        raise NotFound("Tag not found")
    return {"username": tag["username"], "walletAddress": tag["wallet_address"]}


def update_own_wallet(identity: Identity, wallet_address: str) -> Dict[str, str]:
    """Update the caller's own wallet address."""
    if not update_wallet_address(identity.id, wallet_address):
        raise NotFound("Tag not found")

    audit_log.wallet_updated(identity.id)
    tag = get_tag_by_id(identity.id)
    return {"username": tag["username"], "walletAddress": tag["wallet_address"]}
