import os
import tempfile

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="dealfinder-uploads-"))

import dealfinder.models  # noqa: F401
from dealfinder.core.config import settings
from dealfinder.core.deps import get_db
from dealfinder.db.base import Base
from dealfinder.main import app
from dealfinder.routers.auth import login_throttle


@pytest.fixture()
def test_context(tmp_path):
    original_secret = settings.secret_key
    original_upload_dir = settings.upload_dir
    original_admin_emails = settings.bootstrap_admin_emails
    settings.secret_key = "test-secret-key"
    settings.upload_dir = str(tmp_path / "uploads")
    settings.bootstrap_admin_emails = ["admin@example.com"]

    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    def override_get_db():
        db = session_local()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as client:
        yield client, session_local

    app.dependency_overrides.clear()
    Base.metadata.drop_all(bind=engine)
    settings.secret_key = original_secret
    settings.upload_dir = original_upload_dir
    settings.bootstrap_admin_emails = original_admin_emails
    login_throttle.clear()
