"""Keyed JSON storage backends for inquiry collections."""

import json
import logging
import os
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from src.inquiry.errors import StorageError

logger = logging.getLogger(__name__)


class StorageBackend(ABC):
    """A key -> JSON document store.

    ``read`` returns None for a missing key and raises ValueError when the
    stored payload is not valid JSON. Medium failures raise StorageError.
    """

    @abstractmethod
    def read(self, key: str) -> Optional[Any]:
        pass

    @abstractmethod
    def write(self, key: str, payload: Any) -> None:
        pass

    @abstractmethod
    def describe(self) -> Dict[str, Any]:
        pass


class InMemoryStorage(StorageBackend):
    """Process-local storage, mainly for tests."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._documents: Dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    def read(self, key: str) -> Optional[Any]:
        with self._lock:
            raw = self._documents.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    def write(self, key: str, payload: Any) -> None:
        raw = json.dumps(payload, default=str)
        with self._lock:
            self._documents[key] = raw

    def describe(self) -> Dict[str, Any]:
        return {"backend": "memory", "keys": sorted(self._documents)}


class LocalFileStorage(StorageBackend):
    """One JSON file per key under a data directory."""

    def __init__(self, data_dir: str = "data"):
        self.data_dir = Path(data_dir)
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create data directory {self.data_dir}", e)

    def _path(self, key: str) -> Path:
        return self.data_dir / f"{key}.json"

    def read(self, key: str) -> Optional[Any]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            content = path.read_text(encoding="utf-8")
        except OSError as e:
            logger.error(f"Error reading {path}: {str(e)}")
            raise StorageError(f"Cannot read {path}", e)
        return json.loads(content)

    def write(self, key: str, payload: Any) -> None:
        path = self._path(key)
        tmp_path = path.with_suffix(".json.tmp")
        try:
            tmp_path.write_text(json.dumps(payload, indent=2, default=str), encoding="utf-8")
            os.replace(tmp_path, path)
        except OSError as e:
            logger.error(f"Error writing {path}: {str(e)}")
            raise StorageError(f"Cannot write {path}", e)

    def describe(self) -> Dict[str, Any]:
        return {"backend": "local", "data_dir": str(self.data_dir)}


class S3Storage(StorageBackend):
    """Stores each collection as a JSON object in an S3 bucket."""

    def __init__(self, bucket_name: str, prefix: str = "inquiry", s3_client=None):
        """Initialize S3 storage.

        Args:
            bucket_name: S3 bucket name
            prefix: Key prefix for all collections
            s3_client: Optional S3 client (for testing)
        """
        if not bucket_name:
            raise StorageError("S3 storage requires a bucket name")
        self.bucket_name = bucket_name
        self.prefix = prefix.strip("/")
        self.s3_client = s3_client or boto3.client("s3")

    def _object_key(self, key: str) -> str:
        return f"{self.prefix}/{key}.json" if self.prefix else f"{key}.json"

    def read(self, key: str) -> Optional[Any]:
        object_key = self._object_key(key)
        try:
            response = self.s3_client.get_object(Bucket=self.bucket_name, Key=object_key)
        except ClientError as e:
            if e.response["Error"]["Code"] == "NoSuchKey":
                return None
            logger.error(f"Error getting s3://{self.bucket_name}/{object_key}: {str(e)}")
            raise StorageError(f"Cannot read {object_key}", e)
        except BotoCoreError as e:
            logger.error(f"Error getting s3://{self.bucket_name}/{object_key}: {str(e)}")
            raise StorageError(f"Cannot read {object_key}", e)

        return json.loads(response["Body"].read())

    def write(self, key: str, payload: Any) -> None:
        object_key = self._object_key(key)
        try:
            self.s3_client.put_object(
                Bucket=self.bucket_name,
                Key=object_key,
                Body=json.dumps(payload, default=str),
                ContentType="application/json",
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error storing s3://{self.bucket_name}/{object_key}: {str(e)}")
            raise StorageError(f"Cannot write {object_key}", e)
        logger.info(f"Stored collection at s3://{self.bucket_name}/{object_key}")

    def describe(self) -> Dict[str, Any]:
        return {"backend": "s3", "bucket": self.bucket_name, "prefix": self.prefix}


def create_storage(config, s3_client=None) -> StorageBackend:
    """Build the storage backend named by the configuration.

    Args:
        config: InquiryConfig
        s3_client: Optional S3 client (for testing)

    Returns:
        Initialized storage backend
    """
    backend = config.storage_backend

    # Handle offline mode
    if backend == "s3" and os.getenv("NO_NETWORK") == "1":
        logger.warning("NO_NETWORK=1 detected, using local storage instead of S3")
        backend = "local"

    if backend == "memory":
        return InMemoryStorage()
    elif backend == "local":
        return LocalFileStorage(config.data_dir)
    elif backend == "s3":
        return S3Storage(config.bucket, config.prefix, s3_client=s3_client)
    else:
        raise StorageError(
            f"Unknown storage backend: {backend}. Supported backends: local, s3, memory"
        )
