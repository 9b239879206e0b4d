"""Shared fixtures: a throwaway SQLite store, a recording mailer and a test client."""

import os
import tempfile

# Configuration must be in place before the application modules are imported
_TEST_DIR = tempfile.mkdtemp(prefix="portfolio_api_test_")
os.environ["PATH_DATABASE"] = _TEST_DIR
os.environ["NAME_DB"] = "test.db"
os.environ["PATH_LOG_FILE"] = os.path.join(_TEST_DIR, "test.log")
os.environ["SESSION_SECRET"] = "test-session-secret-that-is-long-enough"  # nosec B105
os.environ["ENVIRONMENT"] = "development"
os.environ["ADMIN_EMAIL"] = "admin@example.com"
os.environ["MAIL_FROM"] = "noreply@example.com"
os.environ["CONTACT_TO_EMAIL"] = "owner@example.com"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from portfolio_api import rate_limit, store  # noqa: E402
from portfolio_api.auth import create_session_token  # noqa: E402
from portfolio_api.database import SessionLocal, engine, init_db  # noqa: E402
from portfolio_api.mailer import get_mailer  # noqa: E402
from portfolio_api.main import app  # noqa: E402
from portfolio_api.models import Base  # noqa: E402


class RecordingMailer:
    """Stands in for the SMTP mailer and keeps every message it was asked to send."""

    def __init__(self):
        self.sent = []
        self.error = None

    async def send(self, to: str, subject: str, html_body: str, text_body: str) -> None:
        if self.error is not None:
            raise self.error
        self.sent.append({"to": to, "subject": subject, "html": html_body, "text": text_body})


@pytest.fixture(autouse=True)
def clean_state():
    """Fresh tables and empty in-memory limiters for every test."""
    init_db()
    rate_limit.request_code_limiter.reset()
    rate_limit.verify_code_limiter.reset()
    rate_limit.create_blog_limiter.reset()
    yield
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())
    app.dependency_overrides.clear()


@pytest.fixture
def mailer():
    recording = RecordingMailer()
    app.dependency_overrides[get_mailer] = lambda: recording
    return recording


@pytest.fixture
def client(mailer):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def session_token() -> str:
    return create_session_token()


@pytest.fixture
def auth_headers(session_token) -> dict:
    return {"Authorization": f"Bearer {session_token}"}


@pytest.fixture
def make_post(db):
    """Create a post directly in the store."""

    def _make_post(**overrides):
        fields = {
            "title": "Hello World",
            "excerpt": "A first post",
            "content": "<p>Body text</p>",
        }
        fields.update(overrides)
        return store.create_post(db, fields)

    return _make_post
