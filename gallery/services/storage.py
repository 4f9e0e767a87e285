import io
import os
import uuid
import requests
from PIL import Image as PILImage
from werkzeug.utils import secure_filename
from ..errors import ImageFetchError, InvalidRequest
from ..utils.logging import logger

ALLOWED_EXT = {"jpg", "jpeg", "png", "gif", "webp"}


def file_extension(filename):
    return filename.rsplit(".", 1)[-1].lower() if "." in filename else ""


def safe_open_image(data):
    try:
        img = PILImage.open(io.BytesIO(data))
        img.load()
        return img
    except (OSError, SyntaxError, PILImage.DecompressionBombError):
        logger.error("Upload is not a readable image")
        raise InvalidRequest("File must be an image")


def save_upload(file_storage, user_id, config):
    """Store an uploaded original plus a thumbnail; returns (storage_key, thumbnail_key)."""
    filename = file_storage.filename or ""
    ext = file_extension(filename)
    if ext not in ALLOWED_EXT:
        raise InvalidRequest("Unsupported file type")

    data = file_storage.read()
    if not data:
        raise InvalidRequest("Empty file")
    pil_img = safe_open_image(data)

    storage_key = f"{secure_filename(user_id)}/originals/{uuid.uuid4().hex}.{ext}"
    path = os.path.join(config["UPLOAD_DIR"], storage_key)
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "wb") as f:
        f.write(data)
    logger.info(f"Stored upload {filename} as {storage_key}")

    thumbnail_key = generate_thumbnail(pil_img, storage_key, config)
    return storage_key, thumbnail_key


def generate_thumbnail(pil_img, storage_key, config):
    size = config.get("THUMBNAIL_SIZE", 300)
    img_copy = pil_img.copy()
    img_copy.thumbnail((size, size))
    ext = "jpg" if pil_img.format and pil_img.format.lower() in ("jpeg", "jpg") else "png"
    thumbnail_key = storage_key.replace("/originals/", "/thumbnails/").rsplit(".", 1)[0] + f".{ext}"
    path = os.path.join(config["THUMBNAIL_DIR"], thumbnail_key)
    os.makedirs(os.path.dirname(path), exist_ok=True)
    if ext == "jpg" and img_copy.mode in ("RGBA", "P", "LA"):
        img_copy = img_copy.convert("RGB")
    img_copy.save(path)
    logger.info(f"Generated thumbnail: {thumbnail_key}")
    return thumbnail_key


def original_file(storage_key, config):
    return os.path.join(config["UPLOAD_DIR"], storage_key)


def thumbnail_file(storage_key, config):
    for ext in ("jpg", "png"):
        key = storage_key.replace("/originals/", "/thumbnails/").rsplit(".", 1)[0] + f".{ext}"
        path = os.path.join(config["THUMBNAIL_DIR"], key)
        if os.path.exists(path):
            return path
    return None


def delete_stored(storage_key, config):
    for path in (original_file(storage_key, config), thumbnail_file(storage_key, config)):
        if path and os.path.exists(path):
            try:
                os.remove(path)
            except OSError as e:
                logger.warning(f"Could not remove {path}: {e}")


def fetch_image_bytes(image_url, config):
    timeout_ms = config.get("IMAGE_FETCH_TIMEOUT_MS", 10000)
    try:
        response = requests.get(image_url, timeout=timeout_ms / 1000.0)
    except requests.RequestException as e:
        raise ImageFetchError(f"Failed to fetch image: {e}")
    if response.status_code != 200:
        raise ImageFetchError(f"Failed to fetch image: {response.status_code} {response.reason}")
    return response.content


def load_image_bytes(image, image_url, config):
    """Prefer the locally stored original; otherwise download image_url."""
    if image.storage_key:
        path = original_file(image.storage_key, config)
        if os.path.exists(path):
            with open(path, "rb") as f:
                return f.read()
    return fetch_image_bytes(image_url, config)
