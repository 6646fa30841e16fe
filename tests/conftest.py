import pytest
from datetime import datetime, timezone
from fastapi.testclient import TestClient
from app.main import app
from app.api.deps import get_store, get_upload_storage
from app.services.ticket_store import initialize
from app.services.uploads import UploadStorage

FIXED_NOW = datetime(2026, 10, 19, 9, 30, 15, 250000, tzinfo=timezone.utc)
TODAY = "20261019"


@pytest.fixture
def data_dir(tmp_path):
    return tmp_path / "data"


@pytest.fixture(scope="function")
def store(data_dir):
    # CSV-backed store on a fresh directory with a frozen clock
    return initialize(data_dir, clock=lambda: FIXED_NOW)


@pytest.fixture
def upload_storage(tmp_path):
    uploads = UploadStorage(tmp_path / "uploads")
    uploads.initialize()
    return uploads


@pytest.fixture
def client(store, upload_storage):
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_upload_storage] = lambda: upload_storage
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
