from __future__ import annotations

from pathlib import Path
import sys


import pytest


# Ensure the repository root (parent of ./tests) is importable during pytest collection.
# This avoids ModuleNotFoundError for imports like `import persistence...` under pytest import modes
# that don't automatically prepend the cwd/rootdir to sys.path.
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))


@pytest.fixture
def settings(tmp_path: Path):
    """
    Settings rooted in a temp directory so tests never touch real ./data or ./uploads.
    """
    from settings import Settings

    return Settings(
        data_dir=tmp_path / "data" / "db",
        uploads_dir=tmp_path / "uploads",
        jwt_secret="test-secret",
        jwt_alg="HS256",
        jwt_expire_seconds=3600,
        debug_log_requests=False,
        max_project_upload_bytes=1024,
        max_profile_upload_bytes=512,
    )


@pytest.fixture
def store(settings):
    from persistence.document_store import JsonDocumentStore

    return JsonDocumentStore(settings.data_dir)


@pytest.fixture
def client(settings):
    from fastapi.testclient import TestClient

    import app as app_module

    with TestClient(app_module.create_app(settings)) as c:
        yield c


@pytest.fixture
def register(client):
    """Register a user over HTTP and return (auth headers, user json)."""

    def _register(email: str = "ada@example.com", password: str = "secret1", name: str = "Ada"):
        r = client.post("/api/v1/users/register", json={"name": name, "email": email, "password": password})
        assert r.status_code == 201, r.text
        body = r.json()
        return {"Authorization": f"Bearer {body['token']}"}, body["user"]

    return _register
