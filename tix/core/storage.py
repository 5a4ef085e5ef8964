"""
Image asset storage on an S3-compatible object store.
"""

import asyncio
import logging
import mimetypes
import uuid
from dataclasses import dataclass
from typing import Any, Optional, Protocol

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from tix.core.errors import ImageUploadError, ValidationError
from tix.core.settings import StorageSettings, get_settings

logger = logging.getLogger(__name__)
settings = get_settings()

IMAGE_EXTENSIONS = {"image/jpeg": ".jpg", "image/png": ".png", "image/gif": ".gif"}


@dataclass
class UploadedAsset:
    url: str
    public_id: str


class AssetStore(Protocol):
    async def upload(self, content: bytes, content_type: str, folder: str) -> UploadedAsset: ...

    async def delete(self, public_id: str) -> None: ...


def validate_image(content: bytes, content_type: Optional[str]) -> str:
    """Check type and size of an uploaded image; returns the content type."""
    allowed = settings.storage.ALLOWED_IMAGE_TYPES
    if not content_type or content_type not in allowed:
        raise ValidationError("Only JPEG, PNG and GIF images are allowed")
    if not content:
        raise ValidationError("No image uploaded")
    if len(content) > settings.storage.MAX_IMAGE_BYTES:
        max_mb = settings.storage.MAX_IMAGE_BYTES // (1024 * 1024)
        raise ValidationError(f"Image must be {max_mb}MB or smaller")
    return content_type


def get_s3_client(config: StorageSettings) -> Any:
    """
    Returns an S3 client; ``S3_ENDPOINT_URL`` points it at a local
    S3-compatible server such as MinIO.
    """
    kwargs = {
        "aws_access_key_id": config.AWS_ACCESS_KEY_ID,
        "aws_secret_access_key": config.AWS_SECRET_ACCESS_KEY,
        "region_name": config.S3_REGION,
    }
    if config.S3_ENDPOINT_URL:
        kwargs["endpoint_url"] = config.S3_ENDPOINT_URL
    return boto3.client("s3", **kwargs)


class S3AssetStore:
    def __init__(self, config: StorageSettings, client: Any = None) -> None:
        self.config = config
        self.client = client or get_s3_client(config)

    def public_url(self, key: str) -> str:
        if self.config.S3_PUBLIC_BASE_URL:
            return f"{self.config.S3_PUBLIC_BASE_URL.rstrip('/')}/{key}"
        if self.config.S3_ENDPOINT_URL:
            return f"{self.config.S3_ENDPOINT_URL.rstrip('/')}/{self.config.S3_BUCKET}/{key}"
        return f"https://{self.config.S3_BUCKET}.s3.{self.config.S3_REGION}.amazonaws.com/{key}"

    async def upload(self, content: bytes, content_type: str, folder: str) -> UploadedAsset:
        extension = (
            IMAGE_EXTENSIONS.get(content_type)
            or mimetypes.guess_extension(content_type)
            or ""
        )
        key = f"{folder}/{uuid.uuid4().hex}{extension}"
        try:
            await asyncio.to_thread(
                self.client.put_object,
                Bucket=self.config.S3_BUCKET,
                Key=key,
                Body=content,
                ContentType=content_type,
            )
        except (BotoCoreError, ClientError) as e:
            logger.error("Failed to upload image to %s: %s", key, e)
            raise ImageUploadError("Failed to upload image")
        logger.info("Uploaded image %s (%d bytes)", key, len(content))
        return UploadedAsset(url=self.public_url(key), public_id=key)

    async def delete(self, public_id: str) -> None:
        try:
            await asyncio.to_thread(
                self.client.delete_object, Bucket=self.config.S3_BUCKET, Key=public_id
            )
        except (BotoCoreError, ClientError) as e:
            logger.error("Failed to delete image %s: %s", public_id, e)
            raise ImageUploadError("Failed to delete image")
        logger.info("Deleted image %s", public_id)
