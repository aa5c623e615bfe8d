"""
S3-compatible object storage (AWS S3 or Cloudflare R2).

Used for token metadata and images only. Keys are validated before they
reach a backend (see security.validate_object_key).
"""

import logging
from pathlib import Path
from typing import Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from .config import (
    LOCAL_OBJECT_DIR,
    OBJECT_STORE_BACKEND,
    PUBLIC_OBJECT_BASE,
    S3_ACCESS_KEY_ID,
    S3_BUCKET,
    S3_ENDPOINT,
    S3_FORCE_PATH_STYLE,
    S3_REGION,
    S3_SECRET_ACCESS_KEY,
)

logger = logging.getLogger(__name__)


class ObjectStoreError(Exception):
    """Raised when the blob store rejects or cannot complete a request."""


def get_public_url(key: str) -> str:
    return f"{PUBLIC_OBJECT_BASE.rstrip('/')}/{key}"


class ObjectStore:
    backend = "none"

    def put_object(self, key: str, body: bytes, content_type: str) -> None:
        raise NotImplementedError

    def check(self) -> bool:
        """Reachability check for /health."""
        raise NotImplementedError


class S3ObjectStore(ObjectStore):
    """Writes each object to an S3 bucket (or an S3-compatible endpoint such as R2)."""

    backend = "s3"

    def __init__(
        self,
        bucket: str,
        region: str = "auto",
        endpoint: Optional[str] = None,
        force_path_style: bool = False,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None
    ):
        self.bucket = bucket
        self.region = region
        self.endpoint = endpoint or None
        self.force_path_style = force_path_style
        self._access_key_id = access_key_id or None
        self._secret_access_key = secret_access_key or None
        self._client = None

    def _get_client(self):
        """Lazy-load boto3 client."""
        if self._client is None:
            config = Config(s3={"addressing_style": "path"}) if self.force_path_style else None
            self._client = boto3.client(
                "s3",
                region_name=self.region,
                endpoint_url=self.endpoint,
                aws_access_key_id=self._access_key_id,
                aws_secret_access_key=self._secret_access_key,
                config=config,
            )
        return self._client

    def put_object(self, key: str, body: bytes, content_type: str) -> None:
        try:
            self._get_client().put_object(
                Bucket=self.bucket,
                Key=key,
                Body=body,
                ContentType=content_type,
            )
        except (BotoCoreError, ClientError) as e:
            raise ObjectStoreError(f"put_object failed for {key}") from e

    def check(self) -> bool:
        try:
            self._get_client().head_bucket(Bucket=self.bucket)
            return True
        except (BotoCoreError, ClientError) as e:
            logger.warning("S3 head_bucket failed: %s", type(e).__name__)
            return False


class LocalObjectStore(ObjectStore):
    """Writes objects under a local directory. For development and tests."""

    backend = "local"

    def __init__(self, root: Path):
        self.root = Path(root)

    def put_object(self, key: str, body: bytes, content_type: str) -> None:
        path = self.root / key
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(body)
        except OSError as e:
            raise ObjectStoreError(f"write failed for {key}") from e


def get_object_store() -> ObjectStore:
    if OBJECT_STORE_BACKEND == "s3":
        return S3ObjectStore(
            bucket=S3_BUCKET,
            region=S3_REGION,
            endpoint=S3_ENDPOINT,
            force_path_style=S3_FORCE_PATH_STYLE,
            access_key_id=S3_ACCESS_KEY_ID,
            secret_access_key=S3_SECRET_ACCESS_KEY,
        )
    return LocalObjectStore(LOCAL_OBJECT_DIR)
