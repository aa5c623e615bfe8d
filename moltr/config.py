"""
Configuration module for Moltr API.

Centralizes all configuration with environment variable support
and validation.
"""

import os
from pathlib import Path
from typing import Dict

from nacl.pwhash import argon2id

# ============================================================
# Environment Configuration
# ============================================================

ENV = os.getenv("MOLTR_ENV", "dev")  # dev|stage|prod

PORT = int(os.getenv("PORT", "3000"))
HOST = os.getenv("HOST", "0.0.0.0")
BASE_URL = os.getenv("BASE_URL", f"http://{HOST}:{PORT}")
CORS_ORIGIN = os.getenv("CORS_ORIGIN", "http://localhost:3000")

# Rate limit (requests per minute, per client)
RATE_LIMIT_RPM = int(os.getenv("RATE_LIMIT_RPM", "100"))

# Honor X-Forwarded-For only behind a proxy that overwrites it
TRUST_PROXY = os.getenv("TRUST_PROXY", "false").lower() in ("1", "true", "yes")

# Storage
DB_PATH = Path(os.getenv("MOLTR_DB_PATH", "data/moltr.db"))

# ============================================================
# API Keys
# ============================================================

# Argon2id cost; defaults are libsodium's "interactive" profile
ARGON2_OPSLIMIT = int(os.getenv("MOLTR_ARGON2_OPSLIMIT", str(argon2id.OPSLIMIT_INTERACTIVE)))
ARGON2_MEMLIMIT = int(os.getenv("MOLTR_ARGON2_MEMLIMIT", str(argon2id.MEMLIMIT_INTERACTIVE)))

# Narrow the credential scan using the public key id embedded in issued keys
KEY_ROUTING = os.getenv("MOLTR_KEY_ROUTING", "true").lower() in ("1", "true", "yes")

API_KEY_HEADER = "x-api-key"
MIN_API_KEY_LENGTH = 16

# ============================================================
# Public URLs
# ============================================================

RECEIPT_BASE_URL = os.getenv("RECEIPT_BASE_URL", "https://api.moltr.app/r")
PUBLIC_OBJECT_BASE = (
    os.getenv("CDN_BASE_URL")
    or os.getenv("S3_PUBLIC_BASE")
    or "https://cdn.moltr.app"
)

# ============================================================
# Object Storage (AWS S3 or Cloudflare R2)
# ============================================================

S3_BUCKET = os.getenv("S3_BUCKET", "")
S3_REGION = os.getenv("S3_REGION", "auto")
S3_ENDPOINT = os.getenv("S3_ENDPOINT", "")
S3_FORCE_PATH_STYLE = os.getenv("S3_FORCE_PATH_STYLE", "").lower() == "true"
S3_ACCESS_KEY_ID = os.getenv("S3_ACCESS_KEY_ID", "")
S3_SECRET_ACCESS_KEY = os.getenv("S3_SECRET_ACCESS_KEY", "")

OBJECT_STORE_BACKEND = os.getenv("OBJECT_STORE_BACKEND", "s3" if S3_BUCKET else "local")
LOCAL_OBJECT_DIR = Path(os.getenv("LOCAL_OBJECT_DIR", "data/objects"))

MAX_OBJECT_BYTES = 2 * 1024 * 1024

# ============================================================
# Logging
# ============================================================

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_JSON = os.getenv("LOG_JSON", "true").lower() in ("1", "true", "yes")
LOG_FILE = os.getenv("LOG_FILE") or None


# ============================================================
# Validation
# ============================================================

def validate_config() -> Dict[str, bool]:
    """
    Report which required settings are present.
    Returns dict of setting name -> satisfied.
    """
    checks = {
        "db_path": not DB_PATH.is_dir(),
        "object_store_backend": OBJECT_STORE_BACKEND in ("s3", "local"),
    }

    if OBJECT_STORE_BACKEND == "s3":
        checks["s3_bucket"] = bool(S3_BUCKET)
        # Credentials may also come from the default boto3 chain
        checks["s3_credentials_pair"] = bool(S3_ACCESS_KEY_ID) == bool(S3_SECRET_ACCESS_KEY)

    return checks


# ============================================================
# Feature Flags
# ============================================================

def is_production() -> bool:
    """Check if running in production mode."""
    return ENV == "prod"


def is_debug() -> bool:
    """Check if debug mode is enabled."""
    return os.getenv("MOLTR_DEBUG", "").lower() in ("1", "true", "yes")
