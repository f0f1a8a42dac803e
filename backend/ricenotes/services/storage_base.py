"""
Rice Notes Backend — Abstract Object Store Interface
======================================================

What:  Abstract base class for the blob store holding uploaded PDFs.
How:   Concrete implementations inherit from ObjectStore:
       - S3ObjectStore (s3_storage.py): AWS S3 or any S3-compatible endpoint
       - InMemoryObjectStore (memory_storage.py): dict-backed, for tests and
         local development without AWS credentials
Who:   Called by NoteService; selected in main.py from settings.

Key layout:
    notes/{owner_email}/{note_id}/{file_name}

    Unique per note without a lookup (note_id is fresh), and groups each
    owner's objects under one prefix.
"""

from abc import ABC, abstractmethod
from typing import BinaryIO

STORAGE_KEY_PREFIX = "notes"


def build_storage_key(owner_email: str, note_id: str, file_name: str) -> str:
    """Deterministic object key for a note's file."""
    return f"{STORAGE_KEY_PREFIX}/{owner_email}/{note_id}/{file_name}"


class ObjectStore(ABC):
    """
    Contract:
        - upload() reads `stream` exactly once; it never rewinds it
        - Implementation errors are wrapped in StorageUploadError,
          StorageDeleteError or StorageLinkError
        - health_check() never raises
        - Timeouts belong to the implementation's own client configuration
    """

    @abstractmethod
    async def upload(
        self,
        key: str,
        stream: BinaryIO,
        content_type: str,
        size: int,
    ) -> None:
        """
        Store `size` bytes read from `stream` under `key`.

        Raises:
            StorageUploadError: The object could not be written.
        """
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        """
        Remove the object stored under `key`.

        Raises:
            StorageDeleteError: The object could not be removed.
        """
        ...

    @abstractmethod
    async def presigned_url(self, key: str, expires_in: int) -> str:
        """
        Return a URL granting GET access to `key` for `expires_in` seconds.

        Raises:
            StorageLinkError: The link could not be generated.
        """
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """True when the backing store is reachable."""
        ...
