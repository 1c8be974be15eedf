import pytest
from fastapi.testclient import TestClient

from filedock.main import create_app

SMALL_LIMITS = {
    "files": {"field": "files", "max_files": 3, "max_size": 1024, "label": "files"},
    "videos": {"field": "videos", "max_files": 2, "max_size": 2048, "label": "videos"},
}


@pytest.fixture
def upload_root(tmp_path):
    return tmp_path / "store"


@pytest.fixture
def client(upload_root):
    app = create_app(upload_root=upload_root, limits=SMALL_LIMITS, public_base_url="")
    with TestClient(app) as c:
        yield c
