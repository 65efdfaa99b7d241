"""S3-compatible object storage for media files and their thumbnails."""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any, Protocol

from app.config import settings

logger = logging.getLogger(__name__)

_MISSING_OBJECT_CODES = {"404", "NoSuchKey", "NotFound"}


class ObjectStorageError(Exception):
    """Generic object storage failure."""


class StorageService(Protocol):
    """Storage provider interface used by the lifecycle cleanup."""

    def delete(self, key: str) -> None: ...


class S3StorageService:
    """S3/MinIO/R2-backed storage provider bound to a single bucket."""

    def __init__(
        self,
        bucket_name: str,
        endpoint_url: str,
        access_key: str | None,
        secret_key: str | None,
        region: str,
        client: Any | None = None,
    ) -> None:
        self.bucket_name = bucket_name
        self.region = region
        if client is not None:
            self.client = client
            return
        try:
            import boto3
            from botocore.config import Config
        except ImportError as exc:
            raise ObjectStorageError("boto3 is required for S3 storage") from exc
        self.client = boto3.client(
            "s3",
            endpoint_url=endpoint_url,
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
            region_name=region,
            # Failed calls are retried by the next scheduled sweep, not in-process.
            config=Config(
                connect_timeout=settings.s3_connect_timeout_seconds,
                read_timeout=settings.s3_read_timeout_seconds,
                retries={"max_attempts": 1, "mode": "standard"},
            ),
        )

    @staticmethod
    def _error_code(exc: Exception) -> str:
        response = getattr(exc, "response", None)
        if isinstance(response, dict):
            err = response.get("Error", {})
            if isinstance(err, dict):
                return str(err.get("Code", ""))
        return ""

    def delete(self, key: str) -> None:
        """Delete one object; deleting a missing object is a no-op."""
        try:
            self.client.delete_object(Bucket=self.bucket_name, Key=key)
        except Exception as exc:
            if self._error_code(exc) in _MISSING_OBJECT_CODES:
                logger.info(
                    "object_delete_missing bucket=%s key=%s", self.bucket_name, key
                )
                return
            raise ObjectStorageError(
                f"Failed to delete object {self.bucket_name}/{key}"
            ) from exc


def _build_storage(bucket_name: str) -> S3StorageService:
    try:
        settings.validate_s3_config()
        return S3StorageService(
            bucket_name=bucket_name,
            endpoint_url=settings.s3_endpoint_url,
            access_key=settings.s3_access_key,
            secret_key=settings.s3_secret_key,
            region=settings.s3_region,
        )
    except ValueError as exc:
        raise ObjectStorageError(
            f"Storage for bucket {bucket_name} is not configured: {exc}"
        ) from exc


@lru_cache(maxsize=1)
def get_media_storage() -> S3StorageService:
    return _build_storage(settings.s3_media_bucket)


@lru_cache(maxsize=1)
def get_thumbnail_storage() -> S3StorageService:
    return _build_storage(settings.s3_thumbnail_bucket)
