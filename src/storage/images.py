"""S3 image store — uploads intake photos and returns their public URL."""

from __future__ import annotations

import asyncio
import re
import time
import uuid
from typing import Optional

import boto3
import structlog
from botocore.exceptions import BotoCoreError, ClientError

from src.config import settings
from src.errors import ImageUploadError

logger = structlog.get_logger()

# Lazy singleton
_store: Optional["ImageStore"] = None

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def build_image_key(user_id: str, filename: str) -> str:
    """Storage key namespaced by owner.

    Format: ``<user_id>/<epoch_ms>-<random>-<safe name>``. The random part
    keeps same-millisecond uploads of the same file from overwriting each other.
    """
    safe_name = _UNSAFE_CHARS.sub("_", filename or "image").strip("._") or "image"
    return f"{user_id}/{int(time.time() * 1000)}-{uuid.uuid4().hex[:12]}-{safe_name}"


class ImageStore:
    """Async wrapper around boto3's synchronous S3 client."""

    def __init__(self, bucket: str, public_base_url: str, s3_client=None):
        self.bucket = bucket
        self.public_base_url = public_base_url.rstrip("/")
        self.s3 = s3_client or boto3.client(
            "s3",
            region_name=settings.s3_region,
            endpoint_url=settings.s3_endpoint_url,
        )

    def public_url(self, key: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url}/{key}"
        return f"https://{self.bucket}.s3.{settings.s3_region}.amazonaws.com/{key}"

    async def upload(self, user_id: str, filename: str, data: bytes, content_type: str) -> str:
        """Store one image and return its public URL.

        Raises:
            ImageUploadError: If the bucket write fails.
        """
        key = build_image_key(user_id, filename)

        # boto3 is synchronous — run in thread pool
        try:
            await asyncio.to_thread(
                self.s3.put_object,
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
            )
        except (BotoCoreError, ClientError) as e:
            logger.error("image_upload_failed", key=key, error=str(e))
            raise ImageUploadError() from e

        logger.info("image_uploaded", key=key, size=len(data))
        return self.public_url(key)


def get_image_store() -> ImageStore:
    """Get or create the singleton image store."""
    global _store
    if _store is None:
        _store = ImageStore(
            bucket=settings.s3_bucket,
            public_base_url=settings.image_public_base_url,
        )
    return _store
