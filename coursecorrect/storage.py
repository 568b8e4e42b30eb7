import logging
import os
from dataclasses import dataclass
from typing import Any, Optional

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError
from starlette.concurrency import run_in_threadpool

from .config import Settings
from .errors import StorageError


logger = logging.getLogger(__name__)

MIME_TYPES = {
    "pdf": "application/pdf",
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "gif": "image/gif",
    "webp": "image/webp",
    "pptx": "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "mp4": "video/mp4",
    "webm": "video/webm",
    "mp3": "audio/mpeg",
    "wav": "audio/wav",
}
DEFAULT_MIME = "application/octet-stream"


def mime_type_for(path: str) -> str:
    ext = os.path.splitext(path.lower())[-1].lstrip(".")
    return MIME_TYPES.get(ext, DEFAULT_MIME)


@dataclass
class StoredObject:
    data: bytes
    mime_type: str


def make_s3_client(settings: Settings):
    return boto3.client(
        "s3",
        endpoint_url=settings.storage_endpoint or None,
        region_name=settings.storage_region,
        aws_access_key_id=settings.storage_access_key_id or None,
        aws_secret_access_key=settings.storage_secret_access_key or None,
        config=Config(s3={"addressing_style": "path"}, signature_version="s3v4"),
    )


class ObjectStorage:
    """Bucket/key access to the backend's S3-compatible storage."""

    def __init__(self, s3: Any, public_base_url: str = ""):
        self._s3 = s3
        self._public_base_url = public_base_url.rstrip("/")

    @classmethod
    def from_settings(cls, settings: Settings) -> "ObjectStorage":
        return cls(make_s3_client(settings), public_base_url=settings.supabase_url)

    def _get(self, bucket: str, path: str) -> bytes:
        resp = self._s3.get_object(Bucket=bucket, Key=path)
        return resp["Body"].read()

    async def download(self, bucket: str, path: str) -> StoredObject:
        try:
            data = await run_in_threadpool(self._get, bucket, path)
        except (ClientError, BotoCoreError) as e:
            logger.error("Storage download failed for %s/%s: %s", bucket, path, e)
            raise StorageError(f"Storage download failed: {path}")
        if not data:
            raise StorageError(f"No data returned for {path}")
        return StoredObject(data=data, mime_type=mime_type_for(path))

    async def upload(self, bucket: str, key: str, data: bytes, content_type: Optional[str] = None) -> None:
        try:
            await run_in_threadpool(
                self._s3.put_object,
                Bucket=bucket,
                Key=key,
                Body=data,
                ContentType=content_type or mime_type_for(key),
            )
        except (ClientError, BotoCoreError) as e:
            logger.error("Storage upload failed for %s/%s: %s", bucket, key, e)
            raise StorageError(f"Storage upload failed: {key}")

    def public_url(self, bucket: str, key: str) -> str:
        return f"{self._public_base_url}/storage/v1/object/public/{bucket}/{key}"
