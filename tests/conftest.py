import os
import tempfile

# Settings are read at import time
os.environ.pop("DATABASE_URL", None)
os.environ.pop("ADMIN_EMAIL", None)
os.environ.pop("ADMIN_PASSWORD", None)
os.environ["JWT_SECRET"] = "test-secret"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="portfolio-uploads-")

import mongomock  # noqa: E402
import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

import auth  # noqa: E402
import database  # noqa: E402
import main  # noqa: E402

ADMIN_EMAIL = "owner@example.com"
ADMIN_PASSWORD = "correct horse battery"


@pytest.fixture(autouse=True)
def mongo_db(monkeypatch):
    db = mongomock.MongoClient().db
    monkeypatch.setattr(database, "db", db)
    return db


@pytest.fixture
def client():
    with TestClient(main.app) as c:
        yield c


@pytest.fixture
def admin_id():
    return auth.create_admin(ADMIN_EMAIL, ADMIN_PASSWORD, "Site Owner")


@pytest.fixture
def auth_headers(client, admin_id):
    res = client.post("/api/admin/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
    assert res.status_code == 200
    return {"Authorization": f"Bearer {res.json()['token']}"}
