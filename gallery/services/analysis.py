from datetime import datetime, timedelta, timezone
from sqlalchemy import func as sa_func
from sqlalchemy.exc import SQLAlchemyError
from ..errors import AnalysisFailed
from ..models.metadataModel import (
    ImageMetadata, STATUS_PENDING, STATUS_PROCESSING, STATUS_COMPLETED, STATUS_FAILED,
)
from ..utils.logging import logger
from .ai import bedrock, openai_text, rekognition
from .ai.template import template_description

PROVIDER_BEDROCK = "bedrock"
PROVIDER_OPENAI = "openai"
PROVIDER_FALLBACK = "fallback"


def describe_tags(tags, config):
    """Try each enabled description provider in priority order; the template always answers."""
    chain = []
    if config.get("BEDROCK_ENABLED"):
        chain.append((PROVIDER_BEDROCK, bedrock.generate_description))
    if config.get("OPENAI_ENABLED", True):
        chain.append((PROVIDER_OPENAI, openai_text.generate_description))

    for name, generate in chain:
        try:
            return generate(tags, config), name
        except Exception as e:
            logger.warning(f"{name} description failed, falling through: {e}")
    return template_description(tags), PROVIDER_FALLBACK


def analyze_image_bytes(image_bytes, config):
    """Tags and colours from Rekognition (errors propagate), then a description."""
    tags, colors = rekognition.analyze_tags_and_colors(image_bytes, config)
    description, provider = describe_tags(tags, config)
    return {"tags": tags, "colors": colors, "description": description, "provider": provider}


def get_metadata(db, image_id, user_id):
    return (
        db.query(ImageMetadata)
        .filter(ImageMetadata.image_id == image_id, ImageMetadata.user_id == user_id)
        .first()
    )


def count_recent_metadata(db, user_id, hours=24, exclude_image_id=None):
    since = datetime.now(timezone.utc) - timedelta(hours=hours)
    query = db.query(sa_func.count(ImageMetadata.id)).filter(
        ImageMetadata.user_id == user_id, ImageMetadata.created_at >= since
    )
    if exclude_image_id is not None:
        query = query.filter(ImageMetadata.image_id != exclude_image_id)
    return query.scalar() or 0


def daily_cap_reached(db, user_id, config, exclude_image_id=None):
    """True once the user has used up their rolling 24h analysis allowance.

    A queued job passes its own image id so its pending row is not counted twice.
    """
    cap = config.get("ANALYSIS_DAILY_CAP", 200)
    if not cap or cap <= 0:
        return False
    return count_recent_metadata(db, user_id, exclude_image_id=exclude_image_id) >= cap


def set_status(db, image_id, user_id, status):
    """Create the image's metadata row if missing and move it to status."""
    meta = get_metadata(db, image_id, user_id)
    if meta is None:
        meta = ImageMetadata(image_id=image_id, user_id=user_id, description="", tags=[], colors=[])
        db.add(meta)
    meta.ai_processing_status = status
    db.commit()
    db.refresh(meta)
    return meta


def mark_pending(db, image_id, user_id):
    return set_status(db, image_id, user_id, STATUS_PENDING)


def mark_processing(db, image_id, user_id):
    return set_status(db, image_id, user_id, STATUS_PROCESSING)


def mark_failed(db, image_id, user_id):
    db.rollback()
    meta = get_metadata(db, image_id, user_id)
    if meta is None:
        return None
    meta.ai_processing_status = STATUS_FAILED
    db.commit()
    return meta


def save_result(db, meta, result):
    meta.description = result["description"]
    meta.tags = list(result["tags"])
    meta.colors = list(result["colors"])
    meta.provider = result["provider"]
    meta.ai_processing_status = STATUS_COMPLETED
    db.commit()
    db.refresh(meta)
    return meta


def run_for_image(db, image, image_bytes_loader, config):
    """Full lifecycle for one image: processing -> completed | failed.

    image_bytes_loader is called after the row is marked processing so fetch
    errors are recorded as failures too.
    """
    meta = mark_processing(db, image.id, image.user_id)
    try:
        result = analyze_image_bytes(image_bytes_loader(), config)
    except Exception as e:
        logger.exception(f"Analysis failed for image {image.id}: {e}")
        mark_failed(db, image.id, image.user_id)
        raise AnalysisFailed("AI analysis failed", details=getattr(e, "message", None) or str(e))
    try:
        saved = save_result(db, meta, result)
    except SQLAlchemyError as e:
        logger.exception(f"Saving analysis for image {image.id} failed: {e}")
        mark_failed(db, image.id, image.user_id)
        raise AnalysisFailed("Failed to save analysis results")
    logger.info(f"Image {image.id} analysed via {result['provider']}")
    return saved, result["provider"]
