import os
from typing import Generator

# Keep the module-level app in orderdrop.main off the working directory
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from orderdrop import models  # noqa: F401
from orderdrop.blob import PutBlobResult
from orderdrop.config import Settings
from orderdrop.db import Base
from orderdrop.dependencies import get_db
from orderdrop.errors import StorageFailure
from orderdrop.main import create_app
from orderdrop.services import register_user
from orderdrop.sessions import InMemorySessionStore


class FakeBlobStore:
    """Records puts in memory and hands out predictable URLs."""

    def __init__(self):
        self.objects = {}
        self.deleted = []
        self.fail_on = None  # blob kind ("video"/"image") whose put raises
        self.before_put = None

    def put(self, key, data, content_type=None, access="public"):
        if self.before_put is not None:
            self.before_put(key)
        if self.fail_on and key.rsplit("/", 1)[-1].startswith(self.fail_on):
            raise StorageFailure(f"Failed to store {key}")
        self.objects[key] = (data, content_type, access)
        return PutBlobResult(url=f"https://blob.test/{key}", pathname=key, content_type=content_type)

    def delete(self, urls):
        self.deleted.extend(urls)


@pytest.fixture(scope="function")
def db_session() -> Generator:
    # Use in-memory SQLite with a single connection
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        engine.dispose()


@pytest.fixture
def settings():
    return Settings(database_url="sqlite://", session_secret="test-secret",
                    max_video_bytes=100 * 1024 * 1024, max_image_bytes=10 * 1024 * 1024)


@pytest.fixture
def blob_store():
    return FakeBlobStore()


@pytest.fixture
def app(db_session, settings, blob_store):
    application = create_app(
        settings=settings,
        session_factory=sessionmaker(bind=db_session.get_bind(), future=True),
        session_store=InMemorySessionStore(),
        blob_store=blob_store,
    )

    # Override dependency to use the same session
    def override_get_db():
        try:
            yield db_session
        finally:
            pass
    application.dependency_overrides[get_db] = override_get_db
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
def client(app):
    from fastapi.testclient import TestClient
    with TestClient(app) as c:
        yield c


@pytest.fixture
def seller(db_session):
    return register_user(db_session, "seller", "sellerpass", is_seller=True)


@pytest.fixture
def seller_client(app, seller):
    from fastapi.testclient import TestClient
    with TestClient(app) as c:
        r = c.post("/api/login", json={"username": "seller", "password": "sellerpass"})
        assert r.status_code == 200
        yield c


def upload_parts(video_size=1024, image_size=512, video_name="video.mp4", image_name="image.png",
                 song_request="Happy Birthday"):
    files = {
        "video": (video_name, b"v" * video_size, "video/mp4"),
        "image": (image_name, b"i" * image_size, "image/png"),
    }
    data = {"songRequest": song_request} if song_request is not None else {}
    return files, data


@pytest.fixture
def make_upload():
    return upload_parts
