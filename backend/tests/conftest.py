"""
Rice Notes Backend — Test Configuration (conftest.py)
=======================================================

Shared fixtures. Everything runs against in-memory stores and a fake
identity provider; no AWS, Google or PostgreSQL access is needed.

Fixture Hierarchy:
    settings            Settings with test secrets, rate limiting off
    object_store        InMemoryObjectStore
    repository          InMemoryNoteRepository
    note_service        NoteService over the two stores above
    fake_provider       FakeOAuthProvider (scriptable identity/errors)
    token_service       TokenService over fake_provider
    app / client        create_app(...) + httpx AsyncClient (ASGITransport)
    auth_headers        Bearer header for a@rice.edu
"""

import io
import os
from typing import Optional

# Settings are read from the environment when ricenotes.main is imported
os.environ.setdefault("DATABASE_URL", "")
os.environ.setdefault("USE_MOCK_STORAGE", "true")
os.environ.setdefault("JWT_SECRET", "test-secret-not-real")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from ricenotes.config import Settings
from ricenotes.exceptions import CodeExchangeError
from ricenotes.repositories.memory import InMemoryNoteRepository
from ricenotes.services.memory_storage import InMemoryObjectStore
from ricenotes.services.note_service import NoteService
from ricenotes.services.oauth_provider import IdentityClaims, OAuthProvider
from ricenotes.services.token_service import TokenService

TEST_SECRET = "test-secret-not-real"
OWNER = "a@rice.edu"


class FakeOAuthProvider(OAuthProvider):
    """
    Identity provider double.

    `identity` is returned for any code except "bad-code"; set `profile_error`
    to make fetch_profile raise.
    """

    def __init__(self, identity: Optional[IdentityClaims] = None):
        self.identity = identity or IdentityClaims(
            email=OWNER, name="Ada Owl", picture="https://example.com/ada.png", email_verified=True
        )
        self.profile_error: Optional[Exception] = None
        self.exchanged_codes = []

    def authorization_url(self, state: str) -> str:
        return f"https://accounts.google.com/o/oauth2/v2/auth?state={state}"

    async def exchange_code(self, code: str) -> str:
        self.exchanged_codes.append(code)
        if code == "bad-code":
            raise CodeExchangeError(context={"status": 400})
        return "access-token"

    async def fetch_profile(self, access_token: str) -> IdentityClaims:
        if self.profile_error is not None:
            raise self.profile_error
        return self.identity


def make_pdf(size: int = 2048) -> bytes:
    header = b"%PDF-1.4\n"
    return header + b"0" * (size - len(header))


@pytest.fixture
def pdf_bytes():
    return make_pdf()


@pytest.fixture
def pdf_stream(pdf_bytes):
    return io.BytesIO(pdf_bytes)


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        database_url="",
        use_mock_storage=True,
        jwt_secret=TEST_SECRET,
        google_client_id="test-client",
        google_client_secret="test-client-secret",
        frontend_dashboard_url="http://localhost:3000/dashboard",
        frontend_error_url="http://localhost:3000/unauthorized",
        rate_limit_enabled=False,
        log_level="WARNING",
    )


@pytest.fixture
def object_store():
    return InMemoryObjectStore()


@pytest.fixture
def repository():
    return InMemoryNoteRepository()


@pytest.fixture
def note_service(object_store, repository):
    return NoteService(object_store=object_store, repository=repository)


@pytest.fixture
def fake_provider():
    return FakeOAuthProvider()


@pytest.fixture
def token_service(fake_provider):
    return TokenService(provider=fake_provider, secret=TEST_SECRET, allowed_domain="rice.edu")


@pytest.fixture
def app(settings, object_store, repository, token_service):
    from ricenotes.main import create_app

    return create_app(
        settings,
        object_store=object_store,
        repository=repository,
        token_service=token_service,
    )


@pytest_asyncio.fixture
async def client(app):
    """
    HTTPS base URL so Secure cookies set by the auth routes are sent back.
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="https://test") as c:
        yield c


def bearer_for(token_service: TokenService, email: str = OWNER) -> dict:
    token = token_service.issue_token(IdentityClaims(email=email, name="Test User"))
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers(token_service):
    return bearer_for(token_service)


@pytest.fixture
def other_auth_headers(token_service):
    return bearer_for(token_service, email="b@rice.edu")
