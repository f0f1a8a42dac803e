"""
Rice Notes Backend — Notes Route Tests
========================================

End-to-end through the ASGI app with in-memory stores.

What we test:
    ✅ Multipart upload → 201 + Location, object stored under the owner's key
    ✅ Validation errors carry details.field
    ✅ Every route requires a session
    ✅ Lenient paging, course filter, owner isolation
    ✅ Foreign and missing notes are indistinguishable
    ✅ Download links and delete
    ✅ Oversized bodies answered 413 before they are read in full
    ✅ Notes serialize their creation instant as uploaded_at
"""

import uuid
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from ricenotes.exceptions import StorageUploadError
from ricenotes.main import create_app
from ricenotes.middleware.upload_limit import MULTIPART_OVERHEAD

PDF = b"%PDF-1.4\n" + b"0" * 2039


async def upload(client, headers, title="Calc Notes", course_id="MATH101", file_name="calc.pdf", data=None):
    return await client.post(
        "/api/notes",
        headers=headers,
        data={"title": title, "course_id": course_id},
        files={"file": (file_name, data if data is not None else PDF, "application/pdf")},
    )


class TestUpload:
    @pytest.mark.asyncio
    async def test_upload_creates_note(self, client, auth_headers, object_store):
        response = await upload(client, auth_headers)

        assert response.status_code == 201
        body = response.json()
        assert body["title"] == "Calc Notes"
        assert body["course_id"] == "MATH101"
        assert body["file_name"] == "calc.pdf"
        assert body["file_size"] == 2048
        assert body["content_type"] == "application/pdf"
        assert response.headers["Location"] == f"/api/notes/{body['id']}"
        assert "owner_email" not in body
        assert "storage_key" not in body
        assert "uploaded_at" in body
        assert "created_at" not in body

        key = f"notes/a@rice.edu/{body['id']}/calc.pdf"
        assert object_store.objects[key].data == PDF

    @pytest.mark.asyncio
    async def test_title_and_course_are_trimmed(self, client, auth_headers):
        response = await upload(client, auth_headers, title="  Calc  ", course_id=" MATH101 ")

        assert response.status_code == 201
        assert response.json()["title"] == "Calc"
        assert response.json()["course_id"] == "MATH101"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "kwargs, field",
        [
            ({"title": "   "}, "title"),
            ({"course_id": ""}, "course_id"),
            ({"file_name": "notes.txt"}, "file"),
            ({"data": b""}, "file"),
        ],
    )
    async def test_invalid_upload_is_rejected(self, client, auth_headers, object_store, kwargs, field):
        response = await upload(client, auth_headers, **kwargs)

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "validation_error"
        assert body["details"] == {"field": field}
        assert object_store.calls["upload"] == 0

    @pytest.mark.asyncio
    async def test_missing_file_is_rejected(self, client, auth_headers):
        response = await client.post(
            "/api/notes",
            headers=auth_headers,
            data={"title": "Calc", "course_id": "MATH101"},
        )

        assert response.status_code == 400
        assert response.json()["details"] == {"field": "file"}

    @pytest.mark.asyncio
    async def test_storage_failure_writes_no_metadata(self, client, auth_headers, object_store, repository):
        object_store.upload = AsyncMock(side_effect=StorageUploadError())

        response = await upload(client, auth_headers)

        assert response.status_code == 500
        assert response.json()["error"] == "storage_error"
        assert repository.notes == {}

    @pytest.mark.asyncio
    async def test_upload_requires_session(self, client):
        response = await upload(client, {})

        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"


class TestListAndGet:
    @pytest.mark.asyncio
    async def test_list_is_newest_first_and_private(self, client, auth_headers):
        ids = []
        for i in range(3):
            created = await upload(client, auth_headers, title=f"Note {i}")
            ids.append(created.json()["id"])

        response = await client.get("/api/notes", headers=auth_headers)

        assert response.status_code == 200
        assert [n["id"] for n in response.json()] == list(reversed(ids))
        assert response.headers["Cache-Control"] == "private, no-store"

    @pytest.mark.asyncio
    async def test_paging_values_are_lenient(self, client, auth_headers):
        for i in range(3):
            await upload(client, auth_headers, title=f"Note {i}")

        assert len((await client.get("/api/notes", params={"limit": "abc"}, headers=auth_headers)).json()) == 3
        assert len((await client.get("/api/notes", params={"limit": "2"}, headers=auth_headers)).json()) == 2
        assert len((await client.get("/api/notes", params={"limit": "500"}, headers=auth_headers)).json()) == 3
        assert len((await client.get("/api/notes", params={"offset": "-4"}, headers=auth_headers)).json()) == 3
        assert len((await client.get("/api/notes", params={"offset": "2"}, headers=auth_headers)).json()) == 1

    @pytest.mark.asyncio
    async def test_course_filter(self, client, auth_headers):
        await upload(client, auth_headers, course_id="MATH101")
        await upload(client, auth_headers, course_id="COMP140")

        response = await client.get("/api/notes", params={"course_id": "COMP140"}, headers=auth_headers)

        assert [n["course_id"] for n in response.json()] == ["COMP140"]

    @pytest.mark.asyncio
    async def test_other_users_notes_are_invisible(self, client, auth_headers, other_auth_headers):
        note_id = (await upload(client, auth_headers)).json()["id"]

        listing = await client.get("/api/notes", headers=other_auth_headers)
        foreign = await client.get(f"/api/notes/{note_id}", headers=other_auth_headers)
        missing = await client.get(f"/api/notes/{uuid.uuid4()}", headers=other_auth_headers)

        assert listing.json() == []
        assert foreign.status_code == missing.status_code == 404
        assert foreign.json()["error"] == missing.json()["error"] == "not_found"
        assert "a@rice.edu" not in foreign.text

    @pytest.mark.asyncio
    async def test_get_own_note(self, client, auth_headers):
        note_id = (await upload(client, auth_headers)).json()["id"]

        response = await client.get(f"/api/notes/{note_id}", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["id"] == note_id
        assert {"uploaded_at", "updated_at"} <= set(response.json())

    @pytest.mark.asyncio
    async def test_non_uuid_id_is_not_found(self, client, auth_headers):
        response = await client.get("/api/notes/not-a-uuid", headers=auth_headers)

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_session_is_checked_before_id(self, client):
        response = await client.get("/api/notes/not-a-uuid")

        assert response.status_code == 401


class TestDownloadAndDelete:
    @pytest.mark.asyncio
    async def test_download_link(self, client, auth_headers):
        note_id = (await upload(client, auth_headers)).json()["id"]

        response = await client.get(f"/api/notes/{note_id}/download", headers=auth_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["url"].startswith(
            f"https://mock-bucket.s3.amazonaws.com/notes/a@rice.edu/{note_id}/calc.pdf"
        )
        assert "expires_at" in body

    @pytest.mark.asyncio
    async def test_download_foreign_note_is_not_found(self, client, auth_headers, other_auth_headers):
        note_id = (await upload(client, auth_headers)).json()["id"]

        response = await client.get(f"/api/notes/{note_id}/download", headers=other_auth_headers)

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_delete_removes_row_and_object(self, client, auth_headers, object_store):
        note_id = (await upload(client, auth_headers)).json()["id"]

        response = await client.delete(f"/api/notes/{note_id}", headers=auth_headers)

        assert response.status_code == 204
        assert object_store.objects == {}
        assert (await client.get(f"/api/notes/{note_id}", headers=auth_headers)).status_code == 404
        assert (await client.delete(f"/api/notes/{note_id}", headers=auth_headers)).status_code == 404

    @pytest.mark.asyncio
    async def test_delete_foreign_note_keeps_it(self, client, auth_headers, other_auth_headers, object_store):
        note_id = (await upload(client, auth_headers)).json()["id"]

        response = await client.delete(f"/api/notes/{note_id}", headers=other_auth_headers)

        assert response.status_code == 404
        assert len(object_store.objects) == 1


class CountingBody:
    """Multipart body streamed in chunks; counts what the server pulled."""

    boundary = "ricenotes-boundary"

    def __init__(self, total: int, chunk_size: int = 16 * 1024):
        self.total = total
        self.chunk_size = chunk_size
        self.consumed = 0

    @property
    def content_type(self) -> str:
        return f"multipart/form-data; boundary={self.boundary}"

    async def __aiter__(self):
        head = (
            f"--{self.boundary}\r\n"
            'Content-Disposition: form-data; name="file"; filename="big.pdf"\r\n'
            "Content-Type: application/pdf\r\n\r\n"
        ).encode()
        self.consumed += len(head)
        yield head
        while self.consumed < self.total:
            self.consumed += self.chunk_size
            yield b"0" * self.chunk_size


class TestUploadBodyLimit:
    MAX_FILE_SIZE = 1024
    CAP = MAX_FILE_SIZE + MULTIPART_OVERHEAD

    @pytest_asyncio.fixture
    async def small_client(self, settings, object_store, repository, token_service):
        app = create_app(
            settings.model_copy(update={"max_file_size": self.MAX_FILE_SIZE}),
            object_store=object_store,
            repository=repository,
            token_service=token_service,
        )
        async with AsyncClient(transport=ASGITransport(app=app), base_url="https://test") as c:
            yield c

    @pytest.mark.asyncio
    async def test_declared_oversize_is_rejected_unread(self, small_client, object_store):
        body = CountingBody(total=4 * self.CAP)

        response = await small_client.post(
            "/api/notes",
            content=body,
            headers={"Content-Type": body.content_type, "Content-Length": str(body.total)},
        )

        assert response.status_code == 413
        assert response.json()["error"] == "payload_too_large"
        assert body.consumed == 0
        assert object_store.calls["upload"] == 0

    @pytest.mark.asyncio
    async def test_chunked_oversize_stops_at_cap(self, small_client, object_store):
        body = CountingBody(total=4 * self.CAP)

        response = await small_client.post(
            "/api/notes", content=body, headers={"Content-Type": body.content_type}
        )

        assert response.status_code == 413
        assert response.json()["error"] == "payload_too_large"
        assert body.consumed <= self.CAP + 2 * body.chunk_size
        assert body.consumed < body.total
        assert object_store.calls["upload"] == 0

    @pytest.mark.asyncio
    async def test_small_upload_passes(self, small_client, auth_headers):
        response = await upload(small_client, auth_headers, data=b"%PDF-1.4\n" + b"0" * 500)

        assert response.status_code == 201
