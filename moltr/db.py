"""
Database module for Moltr API.

Provides SQLite-based storage for Tags (with their API key hashes) and
Receipts. Username uniqueness is enforced by a UNIQUE index, never by a
check-then-insert in application code. Every write is a single statement.
"""

import sqlite3
import threading
from typing import Any, Dict, List, Optional, Tuple
from contextlib import contextmanager

from .config import DB_PATH

# Thread-local storage for connection pooling
_local = threading.local()

_RECEIPT_COLUMNS = (
    "r.id, r.signature, r.memo, r.from_tag_id, r.to_tag_id, r.amount, r.created_at, "
    "f.username AS from_username, t.username AS to_username"
)
_RECEIPT_JOIN = (
    "FROM receipts r "
    "JOIN tags f ON f.id = r.from_tag_id "
    "JOIN tags t ON t.id = r.to_tag_id"
)


def _get_connection() -> sqlite3.Connection:
    """
    Get a thread-local database connection.
    Connections are reused within the same thread.
    """
    if not hasattr(_local, 'conn') or _local.conn is None:
        DB_PATH.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(DB_PATH), check_same_thread=False, timeout=10.0)
        conn.execute("PRAGMA journal_mode=WAL;")
        conn.execute("PRAGMA synchronous=NORMAL;")
        conn.execute("PRAGMA foreign_keys=ON;")
        conn.execute("PRAGMA temp_store=MEMORY;")
        conn.row_factory = sqlite3.Row
        _local.conn = conn
    return _local.conn


@contextmanager
def _transaction():
    """
    Context manager for database transactions.
    Automatically commits on success, rolls back on failure.
    """
    conn = _get_connection()
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise


def init_db() -> None:
    """
    Initialize database schema with indexes.
    Safe to call multiple times (uses IF NOT EXISTS).
    """
    with _transaction() as conn:
        conn.execute("""
        CREATE TABLE IF NOT EXISTS tags (
            id TEXT PRIMARY KEY,
            username TEXT NOT NULL,
            wallet_address TEXT NOT NULL,
            api_key_hash TEXT NOT NULL,
            key_id TEXT,
            created_at INTEGER NOT NULL
        );""")
        conn.execute("""
        CREATE UNIQUE INDEX IF NOT EXISTS idx_tags_username
        ON tags(username);""")
        conn.execute("""
        CREATE INDEX IF NOT EXISTS idx_tags_key_id
        ON tags(key_id);""")

        # amount is a decimal string: sub-unit amounts may exceed 64 bits
        conn.execute("""
        CREATE TABLE IF NOT EXISTS receipts (
            id TEXT PRIMARY KEY,
            signature TEXT NOT NULL,
            memo TEXT NOT NULL,
            from_tag_id TEXT NOT NULL REFERENCES tags(id) ON DELETE RESTRICT,
            to_tag_id TEXT NOT NULL REFERENCES tags(id) ON DELETE RESTRICT,
            amount TEXT NOT NULL,
            created_at INTEGER NOT NULL
        );""")
        conn.execute("""
        CREATE INDEX IF NOT EXISTS idx_receipts_from_tag
        ON receipts(from_tag_id, created_at, id);""")
        conn.execute("""
        CREATE INDEX IF NOT EXISTS idx_receipts_to_tag
        ON receipts(to_tag_id, created_at, id);""")


def ping() -> None:
    """Round-trip a trivial query. Raises sqlite3.Error if the store is unusable."""
    conn = _get_connection()
    conn.execute("SELECT 1").fetchone()


# ============================================================
# Tags
# ============================================================

def insert_tag(
    tag_id: str,
    username: str,
    wallet_address: str,
    api_key_hash: str,
    key_id: Optional[str],
    created_at: int
) -> bool:
    """
    Insert a Tag.
    Returns True if successful, False if the username is already taken.
    """
    conn = _get_connection()
    try:
        conn.execute(
            "INSERT INTO tags(id, username, wallet_address, api_key_hash, key_id, created_at) "
            "VALUES(?,?,?,?,?,?)",
            (tag_id, username, wallet_address, api_key_hash, key_id, created_at)
        )
        conn.commit()
        return True
    except sqlite3.IntegrityError:
        conn.rollback()
        return False


def get_tag_by_username(username: str) -> Optional[Dict[str, Any]]:
    """Public Tag fields by exact username. Never includes the key hash."""
    conn = _get_connection()
    cur = conn.execute(
        "SELECT id, username, wallet_address FROM tags WHERE username=?",
        (username,)
    )
    row = cur.fetchone()
    return dict(row) if row else None


def get_tag_by_id(tag_id: str) -> Optional[Dict[str, Any]]:
    conn = _get_connection()
    cur = conn.execute(
        "SELECT id, username, wallet_address FROM tags WHERE id=?",
        (tag_id,)
    )
    row = cur.fetchone()
    return dict(row) if row else None


def list_credentials() -> List[Dict[str, Any]]:
    """Every stored credential, for the exhaustive verification scan."""
    conn = _get_connection()
    cur = conn.execute("SELECT id, username, api_key_hash FROM tags ORDER BY created_at ASC")
    return [dict(row) for row in cur.fetchall()]


def list_credentials_for_key_id(key_id: str) -> List[Dict[str, Any]]:
    """Credentials that could hold a key carrying this key id (including hint-less ones)."""
    conn = _get_connection()
    cur = conn.execute(
        "SELECT id, username, api_key_hash FROM tags "
        "WHERE key_id=? OR key_id IS NULL ORDER BY created_at ASC",
        (key_id,)
    )
    return [dict(row) for row in cur.fetchall()]


def update_wallet_address(tag_id: str, wallet_address: str) -> bool:
    """Update one Tag's wallet. Returns True if a row was updated."""
    with _transaction() as conn:
        cur = conn.execute(
            "UPDATE tags SET wallet_address=? WHERE id=?",
            (wallet_address, tag_id)
        )
        return cur.rowcount == 1


# ============================================================
# Receipts
# ============================================================

def insert_receipt(
    receipt_id: str,
    signature: str,
    memo: str,
    from_tag_id: str,
    to_tag_id: str,
    amount: int,
    created_at: int
) -> None:
    """Insert an immutable Receipt in a single atomic write."""
    with _transaction() as conn:
        conn.execute(
            "INSERT INTO receipts(id, signature, memo, from_tag_id, to_tag_id, amount, created_at) "
            "VALUES(?,?,?,?,?,?,?)",
            (receipt_id, signature, memo, from_tag_id, to_tag_id, str(amount), created_at)
        )


def get_receipt_row(receipt_id: str) -> Optional[Dict[str, Any]]:
    """Retrieve a Receipt with its party usernames by ID."""
    conn = _get_connection()
    cur = conn.execute(
        f"SELECT {_RECEIPT_COLUMNS} {_RECEIPT_JOIN} WHERE r.id=?",
        (receipt_id,)
    )
    row = cur.fetchone()
    return dict(row) if row else None


def get_receipt_position(receipt_id: str, tag_id: str) -> Optional[Tuple[int, str]]:
    """
    Sort position (created_at, id) of a Receipt visible to tag_id.
    Returns None if the Receipt does not exist or tag_id is not a party.
    """
    conn = _get_connection()
    cur = conn.execute(
        "SELECT created_at, id FROM receipts WHERE id=? AND (from_tag_id=? OR to_tag_id=?)",
        (receipt_id, tag_id, tag_id)
    )
    row = cur.fetchone()
    return (row["created_at"], row["id"]) if row else None


def list_receipt_rows(
    tag_id: str,
    limit: int,
    after: Optional[Tuple[int, str]] = None
) -> List[Dict[str, Any]]:
    """
    Receipts where tag_id is a party, newest first.

    Ordered by (created_at DESC, id DESC). When `after` is given, only rows
    strictly after that position in the ordering are returned.
    """
    conn = _get_connection()
    sql = f"SELECT {_RECEIPT_COLUMNS} {_RECEIPT_JOIN} WHERE (r.from_tag_id=? OR r.to_tag_id=?)"
    params: List[Any] = [tag_id, tag_id]

    if after is not None:
        created_at, receipt_id = after
        sql += " AND (r.created_at < ? OR (r.created_at = ? AND r.id < ?))"
        params.extend([created_at, created_at, receipt_id])

    sql += " ORDER BY r.created_at DESC, r.id DESC LIMIT ?"
    params.append(limit)

    cur = conn.execute(sql, params)
    return [dict(row) for row in cur.fetchall()]


# ============================================================
# Test Support: Database Reset
# ============================================================

def reset_db() -> None:
    """
    Reset the database for test isolation.
    Clears all tables but preserves schema.
    """
    with _transaction() as conn:
        conn.execute("DELETE FROM receipts")
        conn.execute("DELETE FROM tags")


def close_connection() -> None:
    """Close the thread-local connection (for cleanup)."""
    if hasattr(_local, 'conn') and _local.conn is not None:
        _local.conn.close()
        _local.conn = None
