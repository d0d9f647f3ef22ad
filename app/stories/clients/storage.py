"""
S3-compatible object storage for covers, previews and narrations.

Configuration (via settings):
- S3_ENDPOINT: Endpoint URL (MinIO, R2, AWS)
- S3_BUCKET: Bucket name
- S3_ACCESS_KEY / S3_SECRET_KEY: Credentials
- S3_FORCE_PATH_STYLE: Path-style addressing (default: True)
- PUBLIC_ASSET_BASE_URL: Base of public object URLs, S3_ENDPOINT if empty
"""

from __future__ import annotations

import logging

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

from stories.exceptions import GenerationError

logger = logging.getLogger(__name__)

IMMUTABLE_CACHE_CONTROL = "public, max-age=31536000, immutable"


class S3Storage:
    """Uploads buffers and builds URLs for them."""

    def __init__(
        self,
        endpoint: str | None = None,
        bucket: str | None = None,
        access_key: str | None = None,
        secret_key: str | None = None,
        force_path_style: bool | None = None,
        public_base_url: str | None = None,
    ):
        self.endpoint = endpoint if endpoint is not None else settings.S3_ENDPOINT
        self.bucket = bucket if bucket is not None else settings.S3_BUCKET
        self.access_key = access_key if access_key is not None else settings.S3_ACCESS_KEY
        self.secret_key = secret_key if secret_key is not None else settings.S3_SECRET_KEY
        self.force_path_style = (
            force_path_style if force_path_style is not None else settings.S3_FORCE_PATH_STYLE
        )
        self.public_base_url = (
            public_base_url if public_base_url is not None else settings.PUBLIC_ASSET_BASE_URL
        )
        self._s3_client = None

    @property
    def s3_client(self):
        """Get or create S3 client."""
        if self._s3_client is None:
            if not (self.endpoint and self.bucket and self.access_key and self.secret_key):
                raise ImproperlyConfigured(
                    "S3_ENDPOINT, S3_BUCKET, S3_ACCESS_KEY and S3_SECRET_KEY must be set"
                )
            self._s3_client = boto3.client(
                "s3",
                endpoint_url=self.endpoint,
                aws_access_key_id=self.access_key,
                aws_secret_access_key=self.secret_key,
                region_name="us-east-1",
                config=Config(s3={"addressing_style": "path" if self.force_path_style else "auto"}),
            )
        return self._s3_client

    def upload_buffer(
        self,
        key: str,
        body: bytes,
        content_type: str,
        cache_control: str | None = None,
    ) -> None:
        params = {
            "Bucket": self.bucket,
            "Key": key,
            "Body": body,
            "ContentType": content_type,
        }
        if cache_control:
            params["CacheControl"] = cache_control

        try:
            self.s3_client.put_object(**params)
        except (BotoCoreError, ClientError) as e:
            logger.error("storage.upload_failed", extra={"key": key}, exc_info=True)
            raise GenerationError(f"Failed to upload {key}: {e}") from e

        logger.info("storage.uploaded", extra={"key": key, "bytes": len(body)})

    def build_public_url(self, key: str) -> str:
        base = (self.public_base_url or self.endpoint or "").rstrip("/")
        return f"{base}/{self.bucket}/{key}"

    def presign(self, key: str, ttl: int = 3600) -> str:
        return self.s3_client.generate_presigned_url(
            "get_object",
            Params={"Bucket": self.bucket, "Key": key},
            ExpiresIn=ttl,
        )
