from gallery import create_app
from gallery.models import database
from gallery.models.database import SessionLocal
from gallery.models.imageModel import Image


def test_create_app_uses_configured_database(tmp_path):
    original = database.DATABASE_URL
    db_file = tmp_path / "override.sqlite3"
    try:
        create_app({
            "TESTING": True,
            "DATABASE_URL": f"sqlite:///{db_file}",
            "UPLOAD_DIR": str(tmp_path / "originals"),
            "THUMBNAIL_DIR": str(tmp_path / "thumbnails"),
            "ANALYZE_ON_UPLOAD": False,
        })
        assert SessionLocal.kw["bind"].url.database == str(db_file)
        with SessionLocal() as db:
            db.add(Image(user_id="user-1", filename="a.jpg", original_path="https://cdn.example.com/a.jpg"))
            db.commit()
        assert db_file.exists()
    finally:
        database.bind_engine(original)
    assert str(SessionLocal.kw["bind"].url) == str(database.engine.url)
    assert database.DATABASE_URL == original
