from sqlalchemy.orm import selectinload
from ..errors import ImageNotFound
from ..models.imageModel import Image
from ..models.metadataModel import ImageMetadata
from ..utils.logging import logger
from .similarity import rank_similar


def _user_images(db, user_id):
    return (
        db.query(Image)
        .options(selectinload(Image.metadata_row))
        .filter(Image.user_id == user_id)
        .order_by(Image.uploaded_at.desc(), Image.id.desc())
    )


def list_images(db, user_id):
    return _user_images(db, user_id).all()


def get_image(db, user_id, image_id):
    img = _user_images(db, user_id).filter(Image.id == image_id).first()
    if img is None:
        raise ImageNotFound(f"Image {image_id} not found")
    return img


def create_image(db, user_id, filename, original_path, thumbnail_path=None, storage_key=None):
    img = Image(
        user_id=user_id,
        filename=filename,
        original_path=original_path,
        thumbnail_path=thumbnail_path,
        storage_key=storage_key,
    )
    db.add(img)
    db.commit()
    db.refresh(img)
    logger.info(f"Created image {img.id} for user {user_id}")
    return img


def update_image(db, user_id, image_id, name=None, description=None):
    img = get_image(db, user_id, image_id)
    if name is not None:
        img.name = name
    if description is not None:
        img.description = description
    db.commit()
    db.refresh(img)
    return img


def delete_image(db, user_id, image_id):
    img = get_image(db, user_id, image_id)
    snapshot = img.to_dict()
    db.delete(img)
    db.commit()
    logger.info(f"Deleted image {image_id} for user {user_id}")
    return snapshot, img.storage_key


def _metadata_text(img):
    meta = img.metadata_row
    return (meta.description if meta else None) or ""


def _metadata_tags(img):
    meta = img.metadata_row
    return list(meta.tags or []) if meta else []


def search_images(db, user_id, q):
    """Case-insensitive substring match on filename, name, descriptions and tags."""
    needle = q.strip().lower()
    if not needle:
        return list_images(db, user_id)
    matches = []
    for img in list_images(db, user_id):
        fields = [img.filename, img.name, img.description, _metadata_text(img)]
        fields.extend(_metadata_tags(img))
        if any(needle in (f or "").lower() for f in fields):
            matches.append(img)
    return matches


def normalize_hex(value):
    value = value.strip().lower()
    return value if value.startswith("#") else "#" + value


def filter_by_color(db, user_id, color):
    wanted = normalize_hex(color)
    return [
        img for img in list_images(db, user_id)
        if img.metadata_row and wanted in {normalize_hex(c) for c in img.metadata_row.colors or []}
    ]


def find_similar(db, user_id, image_id):
    """Rank the user's other images by tag/description similarity to image_id.

    Returns a list of (image, score), best first.
    """
    target = get_image(db, user_id, image_id)
    images = list_images(db, user_id)
    by_id = {img.id: img for img in images}
    ranked = rank_similar(
        (target.id, _metadata_tags(target), _metadata_text(target)),
        [(img.id, _metadata_tags(img), _metadata_text(img)) for img in images],
    )
    return [(by_id[key], score) for key, score in ranked]


def status_counts(db, user_id):
    counts = {"total_images": _user_images(db, user_id).count(), "unanalysed": 0}
    for status in ("pending", "processing", "completed", "failed"):
        counts[status] = (
            db.query(ImageMetadata)
            .filter(ImageMetadata.user_id == user_id, ImageMetadata.ai_processing_status == status)
            .count()
        )
    counts["unanalysed"] = counts["total_images"] - sum(counts[s] for s in ("pending", "processing", "completed", "failed"))
    return counts
