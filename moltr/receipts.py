"""
Receipt access policy for Moltr API.

Receipts are private, immutable proof records of a transfer between two
Tags. Only those two Tags may create or read one:

1. Create requires the caller to be fromTag or toTag
2. List returns only receipts the caller is a party to
3. Get answers NotFound for non-parties, exactly as for a missing id,
   so a receipt's existence is never revealed to anyone else
"""

from typing import Any, Dict, Optional

from .auth import is_party, require_party
from .config import RECEIPT_BASE_URL
from .db import (
    get_receipt_position,
    get_receipt_row,
    get_tag_by_username,
    insert_receipt,
    list_receipt_rows,
)
from .errors import Forbidden, NotFound, PartiesUnknown
from .logging_config import audit_log
from .models import Identity
from .security import is_receipt_id
from .util import generate_id, now_micros, utc_iso8601

DEFAULT_LIMIT = 20
MAX_LIMIT = 100


def receipt_url(receipt_id: str) -> str:
    return f"{RECEIPT_BASE_URL.rstrip('/')}/{receipt_id}"


def clamp_limit(raw: Optional[Any]) -> int:
    """
    Page size from a query value.
    Missing or non-numeric values fall back to the default; the result is
    clamped to [1, MAX_LIMIT].
    """
    if raw is None or raw == "":
        return DEFAULT_LIMIT
    try:
        limit = int(raw)
    except (TypeError, ValueError):
        return DEFAULT_LIMIT
    return max(1, min(MAX_LIMIT, limit))


def to_receipt_item(row: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": row["id"],
        "signature": row["signature"],
        "memo": row["memo"],
        "fromTag": row["from_username"],
        "toTag": row["to_username"],
        "amount": int(row["amount"]),
        "createdAt": utc_iso8601(row["created_at"]),
        "url": receipt_url(row["id"]),
    }


def create_receipt(
    identity: Identity,
    signature: str,
    memo: str,
    from_username: str,
    to_username: str,
    amount: int
) -> Dict[str, str]:
    """
    Create a receipt between two existing Tags.

    Returns:
        {"id": ..., "url": ...}

    Raises:
        PartiesUnknown: If either username is not registered
        Forbidden: If the caller is neither party
    """
    from_tag = get_tag_by_username(from_username.lower())
    to_tag = get_tag_by_username(to_username.lower())
    if not from_tag or not to_tag:
        raise PartiesUnknown("fromTag or toTag not found")

    try:
        require_party(
            identity,
            from_tag["id"],
            to_tag["id"],
            message="Only fromTag or toTag API key can create this receipt",
        )
    except Forbidden:
        audit_log.receipt_access_denied(identity.id, "create")
        raise

    receipt_id = generate_id(16)
    insert_receipt(
        receipt_id,
        signature,
        memo,
        from_tag["id"],
        to_tag["id"],
        amount,
        now_micros(),
    )

    audit_log.receipt_created(receipt_id, identity.id, from_tag["id"], to_tag["id"])
    return {"id": receipt_id, "url": receipt_url(receipt_id)}


def list_receipts(
    identity: Identity,
    limit: Optional[Any] = None,
    cursor: Optional[str] = None
) -> Dict[str, Any]:
    """
    List the caller's receipts, newest first, with cursor pagination.

    A cursor is the id of the last receipt of the previous page. Results
    start strictly after it. A cursor the caller cannot see yields an empty
    page.

    Returns:
        {"items": [...], "nextCursor": ...}; nextCursor only when more remain
    """
    page_size = clamp_limit(limit)
    cursor = (cursor or "").strip() or None

    after = None
    if cursor is not None:
        after = get_receipt_position(cursor, identity.id)
        if after is None:
            return {"items": []}

    rows = list_receipt_rows(identity.id, page_size + 1, after)
    has_more = len(rows) > page_size
    items = [to_receipt_item(r) for r in rows[:page_size]]

    page: Dict[str, Any] = {"items": items}
    if has_more and items:
        page["nextCursor"] = items[-1]["id"]
    return page


def get_receipt(identity: Identity, receipt_id: str) -> Dict[str, Any]:
    """
    Fetch a single receipt the caller is a party to.

    Raises:
        NotFound: If the receipt does not exist or the caller is not a party
    """
    row = get_receipt_row(receipt_id) if is_receipt_id(receipt_id) else None
    if row is None:
        raise NotFound("Receipt not found")

    if not is_party(identity, row["from_tag_id"], row["to_tag_id"]):
        audit_log.receipt_access_denied(identity.id, "read")
        raise NotFound("Receipt not found")

    return to_receipt_item(row)
