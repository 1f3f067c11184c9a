import os

# Point the app at throwaway backends before config is imported.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["REDIS_URL"] = ""
os.environ["AUTO_CREATE_TABLES"] = "false"

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import models
from auth import get_current_user
from database import Base, get_db
from errors import CacheError
from main import app
from redis_client import BookCache
from repositories.book_repository import SqlBookRepository
from schemas import CurrentUser
from services.book_service import BookService, get_book_service


class InMemoryBookCache(BookCache):
    def __init__(self):
        self.store = {}
        self.ttls = {}
        self.fail_reads = False
        self.fail_writes = False

    def get(self, key):
        if self.fail_reads:
            raise CacheError("cache unreachable")
        return self.store.get(key)

    def set(self, key, value, ttl):
        if self.fail_writes:
            raise CacheError("cache unreachable")
        self.store[key] = value
        self.ttls[key] = ttl

    def delete_prefix(self, prefix):
        keys = [key for key in self.store if key.startswith(prefix)]
        for key in keys:
            del self.store[key]
            self.ttls.pop(key, None)
        return len(keys)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


@pytest.fixture
def cache():
    return InMemoryBookCache()


@pytest.fixture
def service(session_factory, cache):
    return BookService(
        session_factory,
        SqlBookRepository(),
        cache,
        cache_ttl=300,
        invalidate_on_write=True,
        recommendation_limit=10,
        default_timeout=None,
    )


@pytest.fixture
def add_rows(session_factory):
    def _add(*rows):
        with session_factory() as db:
            db.add_all(rows)
            db.commit()
            return [row.id for row in rows if hasattr(row, "id")]
    return _add


@pytest.fixture
def make_book(add_rows):
    def _make(title="Book", author_id=1, stock=1, publish_at=None):
        now = publish_at or datetime.now(timezone.utc)
        book = models.Book(author_id=author_id, title=title, stock=stock, publish_at=now, updated_at=now)
        return add_rows(book)[0]
    return _make


@pytest.fixture
def fetch_book(session_factory):
    def _fetch(book_id):
        with session_factory() as db:
            return db.query(models.Book).filter(models.Book.id == book_id).first()
    return _fetch


@pytest.fixture
def client(service, session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_book_service] = lambda: service
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def current_user():
    user = CurrentUser(user_id=7, role="user")
    app.dependency_overrides[get_current_user] = lambda: user
    yield user
    app.dependency_overrides.pop(get_current_user, None)
