"""
Pytest configuration and fixtures for the photo gallery API tests
"""
import os
import tempfile

import pytest

# Ensure test-friendly environment prior to importing the app
_TMP = tempfile.mkdtemp(prefix="gallery-tests-")
os.environ["DATABASE_URL"] = "sqlite:///" + os.path.join(_TMP, "test.sqlite3")
os.environ.setdefault("LOG_DIR", os.path.join(_TMP, "logs"))
os.environ.setdefault("APP_ENV", "test")

from gallery import create_app  # noqa: E402
from gallery.errors import AuthError  # noqa: E402
from gallery.models import database  # noqa: E402
from gallery.models.database import Base, SessionLocal  # noqa: E402
from gallery.models.imageModel import Image  # noqa: E402
from gallery.models.metadataModel import ImageMetadata  # noqa: E402
from gallery.services import auth  # noqa: E402

USER = "user-1"
OTHER_USER = "user-2"


@pytest.fixture
def app(tmp_path):
    app = create_app({
        "TESTING": True,
        "APP_ENV": "test",
        "UPLOAD_DIR": str(tmp_path / "originals"),
        "THUMBNAIL_DIR": str(tmp_path / "thumbnails"),
        "SUPABASE_URL": "https://project.supabase.co",
        "BEDROCK_ENABLED": False,
        "OPENAI_ENABLED": False,
        "ANALYZE_ON_UPLOAD": False,
        "ANALYSIS_DAILY_CAP": 200,
    })
    Base.metadata.drop_all(bind=database.engine)
    Base.metadata.create_all(bind=database.engine)
    yield app
    Base.metadata.drop_all(bind=database.engine)


@pytest.fixture(autouse=True)
def fake_supabase(monkeypatch):
    """Tokens are the user id; the token 'bad' is rejected."""
    def fetch(token, config):
        if token == "bad":
            raise AuthError("Token rejected (401)")
        return {"id": token, "email": f"{token}@example.com"}

    monkeypatch.setattr(auth, "fetch_supabase_user", fetch)


@pytest.fixture
def client(app):
    return app.test_client()


def auth_headers(user_id=USER):
    return {"Authorization": f"Bearer {user_id}"}


@pytest.fixture
def make_image():
    """Insert an image (and optionally its metadata) directly through the ORM."""
    def _make(filename="photo.jpg", user_id=USER, tags=None, description=None,
              colors=None, status=None):
        with SessionLocal() as db:
            img = Image(user_id=user_id, filename=filename,
                        original_path=f"https://cdn.example.com/{filename}")
            db.add(img)
            db.commit()
            db.refresh(img)
            if status is not None:
                db.add(ImageMetadata(
                    image_id=img.id, user_id=user_id, description=description or "",
                    tags=tags or [], colors=colors or [], ai_processing_status=status,
                ))
                db.commit()
            return img.id
    return _make
