"""
API tests for the photo gallery endpoints
"""
import io
import os

from PIL import Image as PILImage

from gallery.models.database import SessionLocal
from gallery.models.metadataModel import ImageMetadata
from gallery.services import gallery as gallery_service, storage
from gallery.services.ai import rekognition
from conftest import OTHER_USER, USER, auth_headers


def fake_rekognition(tags=("Beach", "Sunset", "Ocean", "Sand"), colors=("#112233",)):
    def analyze(image_bytes, config):
        return list(tags), list(colors)
    return analyze


def test_health(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.get_json()["status"] == "ok"


def test_requires_bearer_token(client):
    assert client.get("/api/images").status_code == 401
    response = client.get("/api/images", headers=auth_headers("bad"))
    assert response.status_code == 401
    assert response.get_json() == {"error": "Not authenticated"}


def test_create_image_from_json(client):
    response = client.post("/api/images", headers=auth_headers(), json={
        "filename": "beach.jpg",
        "original_path": "https://cdn.example.com/beach.jpg",
        "thumbnail_path": "https://cdn.example.com/beach_thumb.jpg",
    })
    assert response.status_code == 200
    data = response.get_json()
    assert data["filename"] == "beach.jpg"
    assert data["user_id"] == USER
    assert data["metadata"] is None


def test_create_image_missing_fields(client):
    response = client.post("/api/images", headers=auth_headers(), json={"filename": "x.jpg"})
    assert response.status_code == 400
    assert response.get_json()["error"] == "Missing required fields: filename and original_path"


def test_list_is_scoped_and_newest_first(client, make_image):
    first = make_image("a.jpg")
    second = make_image("b.jpg")
    make_image("theirs.jpg", user_id=OTHER_USER)

    data = client.get("/api/images", headers=auth_headers()).get_json()
    assert [img["id"] for img in data] == [second, first]


def test_get_single_image(client, make_image):
    image_id = make_image("a.jpg", tags=["Dog"], status="completed")
    data = client.get(f"/api/images?id={image_id}", headers=auth_headers()).get_json()
    assert len(data) == 1
    assert data[0]["metadata"]["tags"] == ["Dog"]

    assert client.get("/api/images?id=9999", headers=auth_headers()).status_code == 404
    other = make_image("theirs.jpg", user_id=OTHER_USER)
    assert client.get(f"/api/images?id={other}", headers=auth_headers()).status_code == 404


def test_patch_and_delete(client, make_image):
    image_id = make_image("a.jpg", status="completed")

    response = client.patch("/api/images", headers=auth_headers(),
                            json={"id": image_id, "name": "Holiday", "description": "At the sea"})
    assert response.status_code == 200
    assert response.get_json()["name"] == "Holiday"

    assert client.delete("/api/images", headers=auth_headers(), json={}).status_code == 400
    response = client.delete("/api/images", headers=auth_headers(), json={"id": image_id})
    assert response.status_code == 200
    assert response.get_json()[0]["id"] == image_id

    with SessionLocal() as db:
        assert db.query(ImageMetadata).filter(ImageMetadata.image_id == image_id).count() == 0
    assert client.delete("/api/images", headers=auth_headers(), json={"id": image_id}).status_code == 404


def test_search_by_query(client, make_image):
    make_image("dog.jpg", tags=["Dog", "Grass"], status="completed")
    cat = make_image("cat.jpg", tags=["Cat"], description="A cat asleep on a sofa", status="completed")

    data = client.get("/api/images?q=sofa", headers=auth_headers()).get_json()
    assert [img["id"] for img in data] == [cat]
    data = client.get("/api/images?q=GRASS", headers=auth_headers()).get_json()
    assert [img["filename"] for img in data] == ["dog.jpg"]


def test_filter_by_color(client, make_image):
    red = make_image("red.jpg", colors=["#ff0000", "#00ff00"], status="completed")
    make_image("blue.jpg", colors=["#0000ff"], status="completed")
    make_image("plain.jpg")

    data = client.get("/api/images?color=%23FF0000", headers=auth_headers()).get_json()
    assert [img["id"] for img in data] == [red]


def test_find_similar_ranks_and_filters(client, make_image):
    target = make_image("beach.jpg", tags=["Beach", "Sea", "Sand"], status="completed")
    close = make_image("beach2.jpg", tags=["beach", "sea", "sand", "Sky"], status="completed")
    partial = make_image("coast.jpg", tags=["Sea", "Rock", "Cliff"], status="completed")
    make_image("city.jpg", tags=["Street", "Car"], status="completed")

    data = client.get(f"/api/images?similarTo={target}", headers=auth_headers()).get_json()
    ids = [img["id"] for img in data]
    assert ids == [close, partial]
    assert all(0.1 < img["similarity"] <= 1 for img in data)
    assert data[0]["similarity"] > data[1]["similarity"]

    assert client.get("/api/images?similarTo=9999", headers=auth_headers()).status_code == 404


def test_analyze_requires_fields_and_auth(client):
    response = client.post("/api/analyze-image", json={"image_id": 1, "image_url": "x"})
    assert response.status_code == 401
    assert response.get_json() == {"error": "Unauthorized"}

    response = client.post("/api/analyze-image", headers=auth_headers(), json={"image_id": 1})
    assert response.status_code == 400


def test_analyze_image_completes_with_template(client, make_image, monkeypatch):
    monkeypatch.setattr(rekognition, "analyze_tags_and_colors", fake_rekognition())
    monkeypatch.setattr(storage, "fetch_image_bytes", lambda url, config: b"bytes")
    image_id = make_image("beach.jpg")

    response = client.post("/api/analyze-image", headers=auth_headers(),
                           json={"image_id": image_id, "image_url": "https://cdn.example.com/beach.jpg"})
    assert response.status_code == 200
    data = response.get_json()
    assert data["provider"] == "fallback"
    assert data["metadata"]["ai_processing_status"] == "completed"
    assert data["metadata"]["description"] == "A photo of Beach, Sunset, Ocean."
    assert data["metadata"]["colors"] == ["#112233"]
    assert data["debug"] == {"bedrockEnabled": False, "openaiEnabled": False}

    # a second call returns the stored result without re-running analysis
    monkeypatch.setattr(rekognition, "analyze_tags_and_colors", None)
    again = client.post("/api/analyze-image", headers=auth_headers(),
                        json={"image_id": image_id, "image_url": "https://cdn.example.com/beach.jpg"})
    assert again.status_code == 200
    assert again.get_json()["metadata"]["id"] == data["metadata"]["id"]


def test_analyze_processing_returns_202(client, make_image):
    image_id = make_image("busy.jpg", status="processing")
    response = client.post("/api/analyze-image", headers=auth_headers(),
                           json={"image_id": image_id, "image_url": "https://cdn.example.com/busy.jpg"})
    assert response.status_code == 202
    assert response.get_json()["status"] == "processing"


def test_analyze_unknown_image(client):
    response = client.post("/api/analyze-image", headers=auth_headers(),
                           json={"image_id": 4242, "image_url": "https://cdn.example.com/x.jpg"})
    assert response.status_code == 404


def test_daily_cap(client, app, make_image, monkeypatch):
    app.config["ANALYSIS_DAILY_CAP"] = 1
    monkeypatch.setattr(rekognition, "analyze_tags_and_colors", fake_rekognition())
    make_image("done.jpg", status="completed")
    image_id = make_image("new.jpg")

    response = client.post("/api/analyze-image", headers=auth_headers(),
                           json={"image_id": image_id, "image_url": "https://cdn.example.com/new.jpg"})
    assert response.status_code == 429
    assert response.get_json()["error"] == "Daily analysis limit reached. Please try again tomorrow."


def test_rekognition_failure_marks_failed_then_retry(client, make_image, monkeypatch):
    def broken(image_bytes, config):
        raise RuntimeError("rekognition down")

    monkeypatch.setattr(rekognition, "analyze_tags_and_colors", broken)
    monkeypatch.setattr(storage, "fetch_image_bytes", lambda url, config: b"bytes")
    image_id = make_image("a.jpg")
    body = {"image_id": image_id, "image_url": "https://cdn.example.com/a.jpg"}

    response = client.post("/api/analyze-image", headers=auth_headers(), json=body)
    assert response.status_code == 500
    assert response.get_json()["error"] == "AI analysis failed"
    assert response.get_json()["details"] == "rekognition down"

    with SessionLocal() as db:
        meta = db.query(ImageMetadata).filter(ImageMetadata.image_id == image_id).one()
        assert meta.ai_processing_status == "failed"
        failed_id = meta.id

    monkeypatch.setattr(rekognition, "analyze_tags_and_colors", fake_rekognition(tags=("Tree",)))
    response = client.post("/api/analyze-image", headers=auth_headers(), json=body)
    assert response.status_code == 200
    assert response.get_json()["metadata"]["id"] == failed_id
    assert response.get_json()["metadata"]["description"] == "A photo of Tree."


def _png_bytes():
    buf = io.BytesIO()
    PILImage.new("RGB", (640, 480), "red").save(buf, format="PNG")
    buf.seek(0)
    return buf


def test_multipart_upload_and_serving(client):
    response = client.post(
        "/api/images",
        headers=auth_headers(),
        data={"file": (_png_bytes(), "red.png")},
        content_type="multipart/form-data",
    )
    assert response.status_code == 200
    data = response.get_json()
    assert data["filename"] == "red.png"
    assert data["original_path"].endswith(f"/api/images/{data['id']}/original")

    original = client.get(f"/api/images/{data['id']}/original", headers=auth_headers())
    assert original.status_code == 200
    thumb = client.get(f"/api/images/{data['id']}/thumbnail", headers=auth_headers())
    assert thumb.status_code == 200
    assert max(PILImage.open(io.BytesIO(thumb.data)).size) <= 300

    assert client.get(f"/api/images/{data['id']}/original",
                      headers=auth_headers(OTHER_USER)).status_code == 404


def test_multipart_upload_rejects_other_types(client):
    response = client.post(
        "/api/images",
        headers=auth_headers(),
        data={"file": (io.BytesIO(b"hello"), "notes.txt")},
        content_type="multipart/form-data",
    )
    assert response.status_code == 400
    assert response.get_json()["error"] == "Unsupported file type"


def test_uploaded_image_is_analysed_from_local_file(client, monkeypatch):
    seen = {}

    def analyze(image_bytes, config):
        seen["bytes"] = image_bytes
        return ["Red"], ["#ff0000"]

    def no_fetch(url, config):
        raise AssertionError("should read the stored original")

    monkeypatch.setattr(rekognition, "analyze_tags_and_colors", analyze)
    monkeypatch.setattr(storage, "fetch_image_bytes", no_fetch)
    created = client.post("/api/images", headers=auth_headers(),
                          data={"file": (_png_bytes(), "red.png")},
                          content_type="multipart/form-data").get_json()

    response = client.post("/api/analyze-image", headers=auth_headers(),
                           json={"image_id": created["id"], "image_url": created["original_path"]})
    assert response.status_code == 200
    assert seen["bytes"].startswith(b"\x89PNG")


def test_stats(client, make_image):
    make_image("a.jpg", status="completed")
    make_image("b.jpg", status="failed")
    make_image("c.jpg")

    stats = client.get("/api/stats", headers=auth_headers()).get_json()
    assert stats["total_images"] == 3
    assert stats["completed"] == 1
    assert stats["failed"] == 1
    assert stats["unanalysed"] == 1
    assert stats["success_rate"] == 50.0


def test_multipart_upload_rejects_truncated_image(client, app):
    data = _png_bytes().getvalue()[:200]
    response = client.post(
        "/api/images",
        headers=auth_headers(),
        data={"file": (io.BytesIO(data), "broken.png")},
        content_type="multipart/form-data",
    )
    assert response.status_code == 400
    assert response.get_json()["error"] == "File must be an image"


def test_failed_upload_leaves_no_files(client, app, monkeypatch):
    def broken(*args, **kwargs):
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(gallery_service, "create_image", broken)
    response = client.post(
        "/api/images",
        headers=auth_headers(),
        data={"file": (_png_bytes(), "red.png")},
        content_type="multipart/form-data",
    )
    assert response.status_code == 500
    for folder in (app.config["UPLOAD_DIR"], app.config["THUMBNAIL_DIR"]):
        assert [f for _, _, files in os.walk(folder) for f in files] == []
