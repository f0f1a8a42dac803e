"""
Rice Notes Backend — SQL Repository Tests
===========================================

Runs SqlNoteRepository against a throwaway SQLite file through aiosqlite,
with tables created by the same create_tables() used at startup.
"""

import uuid
from datetime import datetime, timezone

import pytest
import pytest_asyncio

from ricenotes.config import Settings
from ricenotes.database import (
    create_engine_from_settings,
    create_session_factory,
    create_tables,
    dispose_engine,
)
from ricenotes.exceptions import MetadataReadError
from ricenotes.models.note import Note
from ricenotes.repositories.sql import SqlNoteRepository


def _note(owner="a@rice.edu", course_id="MATH101", title="Calc Notes") -> Note:
    note_id = uuid.uuid4()
    return Note(
        id=note_id,
        owner_email=owner,
        title=title,
        course_id=course_id,
        file_name="calc.pdf",
        storage_key=f"notes/{owner}/{note_id}/calc.pdf",
        file_size=2048,
        content_type="application/pdf",
    )


@pytest_asyncio.fixture
async def engine(tmp_path):
    settings = Settings(_env_file=None, database_url=f"sqlite+aiosqlite:///{tmp_path / 'notes.db'}")
    engine = create_engine_from_settings(settings)
    await create_tables(engine)
    yield engine
    await dispose_engine(engine)


@pytest.fixture
def sql_repository(engine):
    return SqlNoteRepository(create_session_factory(engine))


class TestSqlNoteRepository:
    @pytest.mark.asyncio
    async def test_insert_sets_timestamps_and_get_reads_back(self, sql_repository):
        note = await sql_repository.insert(_note())

        assert note.created_at is not None
        assert note.updated_at == note.created_at

        loaded = await sql_repository.get(note.id)
        assert loaded is not None
        assert loaded.owner_email == "a@rice.edu"
        assert loaded.title == "Calc Notes"
        assert loaded.file_size == 2048

    @pytest.mark.asyncio
    async def test_get_missing_returns_none(self, sql_repository):
        assert await sql_repository.get(uuid.uuid4()) is None

    @pytest.mark.asyncio
    async def test_list_is_owner_scoped_newest_first(self, sql_repository):
        first = await sql_repository.insert(_note(title="One"))
        second = await sql_repository.insert(_note(title="Two", course_id="COMP140"))
        third = await sql_repository.insert(_note(title="Three"))
        await sql_repository.insert(_note(owner="b@rice.edu"))

        notes = await sql_repository.list_for_owner("a@rice.edu")
        assert [n.id for n in notes] == [third.id, second.id, first.id]

        math = await sql_repository.list_for_owner("a@rice.edu", course_id="MATH101")
        assert [n.id for n in math] == [third.id, first.id]

        page = await sql_repository.list_for_owner("a@rice.edu", limit=1, offset=1)
        assert [n.id for n in page] == [second.id]

    @pytest.mark.asyncio
    async def test_equal_timestamps_page_deterministically(self, sql_repository, monkeypatch):
        instant = datetime(2024, 9, 1, 12, 0, tzinfo=timezone.utc)
        monkeypatch.setattr("ricenotes.repositories.sql.utcnow", lambda: instant)
        notes = [await sql_repository.insert(_note(title=f"Note {i}")) for i in range(3)]

        pages = [
            await sql_repository.list_for_owner("a@rice.edu", limit=1, offset=offset)
            for offset in range(3)
        ]

        paged_ids = [page[0].id for page in pages]
        assert paged_ids == sorted((n.id for n in notes), reverse=True)

    @pytest.mark.asyncio
    async def test_delete_requires_matching_owner(self, sql_repository):
        note = await sql_repository.insert(_note())

        assert await sql_repository.delete(note.id, "b@rice.edu") is False
        assert await sql_repository.get(note.id) is not None

        assert await sql_repository.delete(note.id, "a@rice.edu") is True
        assert await sql_repository.delete(note.id, "a@rice.edu") is False
        assert await sql_repository.get(note.id) is None

    @pytest.mark.asyncio
    async def test_ping(self, sql_repository):
        assert await sql_repository.ping() is True

    @pytest.mark.asyncio
    async def test_read_failure_is_metadata_read_error(self, engine, sql_repository):
        async with engine.begin() as conn:
            await conn.run_sync(Note.__table__.drop)

        with pytest.raises(MetadataReadError):
            await sql_repository.list_for_owner("a@rice.edu")
