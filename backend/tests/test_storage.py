"""
Rice Notes Backend — Object Store Tests
=========================================

InMemoryObjectStore directly; S3ObjectStore against a MagicMock boto3
client (asserting the exact SDK calls, not AWS behaviour).
"""

import io
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from ricenotes.exceptions import StorageDeleteError, StorageLinkError, StorageUploadError
from ricenotes.services.memory_storage import InMemoryObjectStore
from ricenotes.services.s3_storage import S3ObjectStore
from ricenotes.services.storage_base import build_storage_key


def _client_error(operation: str, code: str = "AccessDenied") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": "nope"}}, operation)


def test_build_storage_key():
    assert build_storage_key("a@rice.edu", "1234", "calc.pdf") == "notes/a@rice.edu/1234/calc.pdf"


class TestInMemoryObjectStore:
    @pytest.mark.asyncio
    async def test_upload_stores_bytes_and_content_type(self):
        store = InMemoryObjectStore()

        await store.upload("k", io.BytesIO(b"%PDF-data"), "application/pdf", 9)

        assert store.objects["k"].data == b"%PDF-data"
        assert store.objects["k"].content_type == "application/pdf"
        assert store.calls["upload"] == 1

    @pytest.mark.asyncio
    async def test_size_mismatch_is_upload_error(self):
        store = InMemoryObjectStore()

        with pytest.raises(StorageUploadError):
            await store.upload("k", io.BytesIO(b"abc"), "application/pdf", 10)
        assert "k" not in store.objects

    @pytest.mark.asyncio
    async def test_delete_missing_key_raises(self):
        store = InMemoryObjectStore()

        with pytest.raises(StorageDeleteError):
            await store.delete("missing")

    @pytest.mark.asyncio
    async def test_presigned_url_for_existing_key(self):
        store = InMemoryObjectStore()
        await store.upload("notes/a/1/x.pdf", io.BytesIO(b"x"), "application/pdf", 1)

        url = await store.presigned_url("notes/a/1/x.pdf", 900)

        assert url.startswith("https://mock-bucket.s3.amazonaws.com/notes/a/1/x.pdf?expires=")

    @pytest.mark.asyncio
    async def test_presigned_url_for_missing_key_raises(self):
        store = InMemoryObjectStore()

        with pytest.raises(StorageLinkError):
            await store.presigned_url("missing", 900)


class TestS3ObjectStore:
    def setup_method(self):
        self.client = MagicMock()
        self.store = S3ObjectStore(bucket="rice-notes-test", client=self.client)

    def test_bucket_is_required(self):
        with pytest.raises(ValueError):
            S3ObjectStore(bucket="", client=MagicMock())

    @pytest.mark.asyncio
    async def test_upload_uses_server_side_encryption(self):
        body = io.BytesIO(b"%PDF")

        await self.store.upload("notes/a/1/x.pdf", body, "application/pdf", 4)

        self.client.put_object.assert_called_once_with(
            Bucket="rice-notes-test",
            Key="notes/a/1/x.pdf",
            Body=body,
            ContentType="application/pdf",
            ContentLength=4,
            ServerSideEncryption="AES256",
        )

    @pytest.mark.asyncio
    async def test_upload_client_error_is_wrapped(self):
        self.client.put_object.side_effect = _client_error("PutObject")

        with pytest.raises(StorageUploadError) as exc_info:
            await self.store.upload("k", io.BytesIO(b"x"), "application/pdf", 1)

        assert exc_info.value.context["bucket"] == "rice-notes-test"

    @pytest.mark.asyncio
    async def test_upload_connection_error_is_wrapped(self):
        self.client.put_object.side_effect = EndpointConnectionError(endpoint_url="https://s3")

        with pytest.raises(StorageUploadError):
            await self.store.upload("k", io.BytesIO(b"x"), "application/pdf", 1)

    @pytest.mark.asyncio
    async def test_delete(self):
        await self.store.delete("notes/a/1/x.pdf")

        self.client.delete_object.assert_called_once_with(
            Bucket="rice-notes-test", Key="notes/a/1/x.pdf"
        )

    @pytest.mark.asyncio
    async def test_delete_error_is_wrapped(self):
        self.client.delete_object.side_effect = _client_error("DeleteObject")

        with pytest.raises(StorageDeleteError):
            await self.store.delete("k")

    @pytest.mark.asyncio
    async def test_presigned_url(self):
        self.client.generate_presigned_url.return_value = "https://signed.example/x"

        url = await self.store.presigned_url("notes/a/1/x.pdf", 900)

        assert url == "https://signed.example/x"
        self.client.generate_presigned_url.assert_called_once_with(
            "get_object",
            Params={"Bucket": "rice-notes-test", "Key": "notes/a/1/x.pdf"},
            ExpiresIn=900,
        )

    @pytest.mark.asyncio
    async def test_presigned_url_error_is_wrapped(self):
        self.client.generate_presigned_url.side_effect = _client_error("GetObject")

        with pytest.raises(StorageLinkError):
            await self.store.presigned_url("k", 900)

    @pytest.mark.asyncio
    async def test_health_check(self):
        assert await self.store.health_check() is True

        self.client.head_bucket.side_effect = _client_error("HeadBucket", code="404")
        assert await self.store.health_check() is False
