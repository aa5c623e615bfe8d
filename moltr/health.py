"""
Health checks: DB and optional S3.
Used by GET /health for load balancers and orchestration.
"""

import logging
import sqlite3
from typing import Dict, Tuple

from .db import ping
from .storage import ObjectStore

logger = logging.getLogger(__name__)


def check_db() -> bool:
    try:
        ping()
        return True
    except (sqlite3.Error, OSError) as e:
        logger.error("Database health check failed: %s", type(e).__name__)
        return False


def check_object_store(store: ObjectStore) -> str:
    """Returns ok, error, or skipped when no S3 backend is configured."""
    if store.backend != "s3":
        return "skipped"
    return "ok" if store.check() else "error"


def health_status(store: ObjectStore) -> Tuple[int, Dict[str, object]]:
    """
    Returns:
        Tuple of (http_status, body)
    """
    db_ok = check_db()
    s3_status = check_object_store(store)
    ok = db_ok and s3_status != "error"
    body = {"ok": ok, "db": "ok" if db_ok else "error", "s3": s3_status}
    return (200 if ok else 503), body
