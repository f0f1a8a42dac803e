"""
Rice Notes Backend — In-Memory Object Store
=============================================

What:  Dict-backed ObjectStore used by tests and by local development when no
       S3 bucket is configured (USE_MOCK_STORAGE=true).
How:   Keeps key → (bytes, content_type). Every call is counted so tests can
       assert exactly which store operations ran.

Not shared across processes; contents vanish on restart.
"""

import logging
import time
from collections import Counter
from dataclasses import dataclass
from typing import BinaryIO, Dict, List

from ricenotes.exceptions import StorageDeleteError, StorageLinkError, StorageUploadError
from ricenotes.services.storage_base import ObjectStore

logger = logging.getLogger(__name__)

MOCK_BUCKET_URL = "https://mock-bucket.s3.amazonaws.com"


@dataclass
class StoredObject:
    data: bytes
    content_type: str


class InMemoryObjectStore(ObjectStore):
    def __init__(self) -> None:
        self.objects: Dict[str, StoredObject] = {}
        self.calls: Counter = Counter()
        self.deleted_keys: List[str] = []

    async def upload(
        self,
        key: str,
        stream: BinaryIO,
        content_type: str,
        size: int,
    ) -> None:
        self.calls["upload"] += 1
        try:
            data = stream.read()
        except (OSError, ValueError) as e:
            raise StorageUploadError(context={"key": key, "error": str(e)}) from e
        if len(data) != size:
            raise StorageUploadError(
                context={"key": key, "declared_size": size, "actual_size": len(data)}
            )
        self.objects[key] = StoredObject(data=data, content_type=content_type)
        logger.debug("Mock upload successful: key=%s size=%d", key, len(data))

    async def delete(self, key: str) -> None:
        self.calls["delete"] += 1
        self.deleted_keys.append(key)
        if key not in self.objects:
            raise StorageDeleteError(context={"key": key, "error": "file not found"})
        del self.objects[key]
        logger.debug("Mock delete successful: key=%s", key)

    async def presigned_url(self, key: str, expires_in: int) -> str:
        self.calls["presigned_url"] += 1
        if key not in self.objects:
            raise StorageLinkError(context={"key": key, "error": "file not found"})
        expires = int(time.time()) + expires_in
        return f"{MOCK_BUCKET_URL}/{key}?expires={expires}"

    async def health_check(self) -> bool:
        return True
