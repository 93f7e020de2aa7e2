# tests/conftest.py
import os, pathlib, tempfile
from datetime import datetime, timedelta, timezone

import pytest
from dotenv import load_dotenv

# Must run before any newsfeed module reads its config
load_dotenv(pathlib.Path(__file__).parent / ".env.test", override=True)
_tmp = pathlib.Path(tempfile.mkdtemp(prefix="newsfeed-test-"))
os.environ["DB_URL"] = f"sqlite:///{_tmp / 'newsfeed.db'}"
os.environ["LOG_DIR"] = str(_tmp / "logs")

NOW = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(scope="session", autouse=True)
def _init_db():
    from newsfeed.store import init_db
    init_db()


@pytest.fixture()
def client():
    from fastapi.testclient import TestClient
    from newsfeed.main import app
    return TestClient(app)


@pytest.fixture()
def session_factory():
    """Fresh in-memory database per test."""
    from sqlalchemy.pool import StaticPool
    from sqlmodel import SQLModel, Session, create_engine
    from newsfeed import models  # noqa: F401

    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    SQLModel.metadata.create_all(engine)
    return lambda: Session(engine)


@pytest.fixture()
def make_article():
    from newsfeed.models import Article

    def _make(url, title="Some headline", hours_old=None, category="general", source="Example Wire", **kw):
        published = NOW - timedelta(hours=hours_old) if hours_old is not None else None
        return Article(
            url=url,
            title=title,
            description=kw.pop("description", ""),
            content=kw.pop("content", ""),
            published_at=published,
            category=category,
            source_name=source,
            **kw,
        )

    return _make
