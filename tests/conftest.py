"""Shared fixtures: in-memory SQLite, fake Redis, and an app wired to both."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("DEBUG", "false")

import fakeredis
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import catalog_moderation.models  # noqa: F401
from catalog_moderation.core.rate_limiter import RateLimiter
from catalog_moderation.core.security import create_access_token
from catalog_moderation.db.base import Base
from catalog_moderation.db.session import get_db
from catalog_moderation.main import create_app
from catalog_moderation.models.catalog import Artwork, Artist
from catalog_moderation.models.permission import PermissionGrant
from catalog_moderation.services.cache_service import CacheService

ALL_CONSENTS = {
    "age_verification": True,
    "cc0_licensing": True,
    "public_commons": True,
    "freedom_of_panorama": True,
}


class RecordingMaterializer:
    def __init__(self):
        self.materialized = []

    def materialize(self, submission):
        self.materialized.append(submission.id)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def redis_client():
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture
def rate_limiter(redis_client):
    return RateLimiter(redis_client, enabled=True)


@pytest.fixture
def materializer():
    return RecordingMaterializer()


@pytest.fixture
def app(session_factory, redis_client, materializer):
    app = create_app(
        cache=CacheService(redis_client),
        rate_limiter=RateLimiter(redis_client, enabled=True),
        materializer=materializer,
    )

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    return app


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def artwork(db):
    artwork = Artwork(id="aw-1", title="Digital Orca", lat=49.2890, lon=-123.1170)
    db.add(artwork)
    db.commit()
    return artwork


@pytest.fixture
def artist(db):
    artist = Artist(id="ar-1", name="Douglas Coupland")
    db.add(artist)
    db.commit()
    return artist


def grant(db, actor_token, capability, granted_by="system"):
    """Insert an active grant directly, bypassing the admin checks."""
    row = PermissionGrant(actor_token=actor_token, capability=capability, granted_by=granted_by)
    db.add(row)
    db.commit()
    return row


def auth(actor_token):
    return {"Authorization": f"Bearer {create_access_token(actor_token)}"}
