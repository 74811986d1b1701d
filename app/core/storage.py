import logging
from pathlib import Path
from typing import Protocol

from botocore.client import BaseClient
from botocore.exceptions import ClientError
from fastapi import Request

from app.core.config import get_settings

logger = logging.getLogger(__name__)


class ImageStorage(Protocol):
    def store(self, data: bytes, key: str, content_type: str) -> str: ...

    def exists(self, key: str) -> bool: ...

    def delete(self, key: str) -> None: ...


def _sanitize_key(key: str) -> str:
    parts = [part for part in key.strip().split("/") if part and part not in (".", "..")]
    if not parts:
        raise ValueError("Storage key is empty")
    return "/".join(parts)


class LocalImageStorage:
    """Keep uploaded images on the local filesystem under ``root``."""

    def __init__(self, root: str | Path):
        self.root = Path(root)

    def _path(self, key: str) -> Path:
        return self.root / _sanitize_key(key)

    def store(self, data: bytes, key: str, content_type: str) -> str:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("wb") as buffer:
            buffer.write(data)
        return _sanitize_key(key)

    def exists(self, key: str) -> bool:
        return self._path(key).is_file()

    def delete(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)


class S3ImageStorage:
    def __init__(self, s3_client: BaseClient, bucket: str):
        self.s3_client = s3_client
        self.bucket = bucket

    def store(self, data: bytes, key: str, content_type: str) -> str:
        object_key = _sanitize_key(key)
        self.s3_client.put_object(
            Bucket=self.bucket,
            Key=object_key,
            Body=data,
            ContentType=content_type,
        )
        return object_key

    def exists(self, key: str) -> bool:
        try:
            self.s3_client.head_object(Bucket=self.bucket, Key=_sanitize_key(key))
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") in ("404", "NoSuchKey"):
                return False
            raise
        return True

    def delete(self, key: str) -> None:
        self.s3_client.delete_object(Bucket=self.bucket, Key=_sanitize_key(key))

    def close(self) -> None:
        close = getattr(self.s3_client, "close", None)
        if callable(close):
            close()


def build_image_storage() -> ImageStorage:
    settings = get_settings()
    if settings.aws_s3_bucket:
        from app.core.aws import build_s3_client

        logger.info("Storing activity images in S3 bucket %s", settings.aws_s3_bucket)
        return S3ImageStorage(build_s3_client(), settings.aws_s3_bucket)

    logger.info("Storing activity images under %s", settings.media_root)
    return LocalImageStorage(settings.media_root)


def get_image_storage(request: Request) -> ImageStorage:
    storage = getattr(request.app.state, "image_storage", None)
    if storage is None:
        raise RuntimeError("Image storage is not configured on application state")
    return storage
