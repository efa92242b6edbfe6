import os
import tempfile

# app.config reads these at import time
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="meniba-uploads-"))
os.environ.setdefault("MONGO_MODE", "local")

import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from app.deps import get_database, get_media_store
from app.main import app
from app.services.media_store import MediaStore


@pytest.fixture
def mongo_db():
    return AsyncMongoMockClient()["meniba_test"]


@pytest.fixture
def reports(mongo_db):
    return mongo_db["reports"]


@pytest.fixture
def media_store(tmp_path):
    return MediaStore(str(tmp_path / "uploads"))


@pytest.fixture
def client(mongo_db, media_store):
    # no `with`: startup would try to reach a real Mongo
    app.dependency_overrides[get_database] = lambda: mongo_db
    app.dependency_overrides[get_media_store] = lambda: media_store
    yield TestClient(app)
    app.dependency_overrides.clear()
