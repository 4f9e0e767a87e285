import os
from flask import Blueprint, current_app, g, request, jsonify, send_file, url_for
from .errors import AnalysisFailed, ImageNotFound, InvalidRequest
from .models.database import SessionLocal
from .models.metadataModel import STATUS_COMPLETED, STATUS_PROCESSING
from .services import analysis, gallery, storage
from .services.auth import login_required
from .services.worker import enqueue_analysis
from .utils.logging import logger

routes_bp = Blueprint("routes_bp", __name__)


def error_response(msg, code=400, details=None):
    body = {"error": msg}
    if details is not None:
        body["details"] = details
    return jsonify(body), code


def parse_image_id(value):
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidRequest("Image id must be an integer")


def json_body():
    body = request.get_json(silent=True)
    return body if isinstance(body, dict) else {}


@routes_bp.route("/", methods=["GET"])
def health_check():
    return jsonify({"status": "ok", "message": "Photo gallery API is running"})


@routes_bp.route("/api/images", methods=["GET"])
@login_required()
def list_images():
    args = request.args
    db = SessionLocal()
    try:
        if args.get("id"):
            img = gallery.get_image(db, g.user_id, parse_image_id(args["id"]))
            return jsonify([img.to_dict()])

        if args.get("similarTo"):
            ranked = gallery.find_similar(db, g.user_id, parse_image_id(args["similarTo"]))
            return jsonify([dict(img.to_dict(), similarity=round(score, 4)) for img, score in ranked])

        if args.get("color"):
            imgs = gallery.filter_by_color(db, g.user_id, args["color"])
        elif args.get("q"):
            imgs = gallery.search_images(db, g.user_id, args["q"])
        else:
            imgs = gallery.list_images(db, g.user_id)
        return jsonify([i.to_dict() for i in imgs])
    finally:
        db.close()


@routes_bp.route("/api/images", methods=["POST"])
@login_required()
def create_image():
    config = current_app.config
    db = SessionLocal()
    storage_key = None
    try:
        if "file" in request.files:
            file = request.files["file"]
            if file.filename == "":
                return error_response("No file selected")
            storage_key, _ = storage.save_upload(file, g.user_id, config)
            filename = request.form.get("filename") or file.filename
            img = gallery.create_image(db, g.user_id, filename, "", storage_key=storage_key)
            img.original_path = url_for("routes_bp.get_original", image_id=img.id, _external=True)
            img.thumbnail_path = url_for("routes_bp.get_thumbnail", image_id=img.id, _external=True)
            db.commit()
        else:
            body = json_body()
            filename, original_path = body.get("filename"), body.get("original_path")
            if not filename or not original_path:
                return error_response("Missing required fields: filename and original_path")
            img = gallery.create_image(db, g.user_id, filename, original_path, body.get("thumbnail_path"))

        if config.get("ANALYZE_ON_UPLOAD"):
            if analysis.daily_cap_reached(db, g.user_id, config):
                logger.warning(f"Daily analysis limit reached for {g.user_id}, image {img.id} not queued")
            else:
                analysis.mark_pending(db, img.id, g.user_id)
                enqueue_analysis(img.id, img.original_path)
                db.refresh(img)

        return jsonify(img.to_dict()), 200
    except InvalidRequest:
        raise
    except Exception as e:
        db.rollback()
        if storage_key:
            storage.delete_stored(storage_key, config)
        logger.exception(e)
        return error_response(str(e), 500)
    finally:
        db.close()


@routes_bp.route("/api/images", methods=["PATCH"])
@login_required()
def update_image():
    body = json_body()
    if body.get("id") is None:
        return error_response("Image id is required")
    db = SessionLocal()
    try:
        img = gallery.update_image(
            db, g.user_id, parse_image_id(body["id"]), body.get("name"), body.get("description")
        )
        return jsonify(img.to_dict()), 200
    finally:
        db.close()


@routes_bp.route("/api/images", methods=["DELETE"])
@login_required()
def delete_image():
    body = json_body()
    if body.get("id") is None:
        return error_response("Image id is required")
    db = SessionLocal()
    try:
        deleted, storage_key = gallery.delete_image(db, g.user_id, parse_image_id(body["id"]))
        if storage_key:
            storage.delete_stored(storage_key, current_app.config)
        return jsonify([deleted]), 200
    finally:
        db.close()


def _stored_image(image_id):
    db = SessionLocal()
    try:
        img = gallery.get_image(db, g.user_id, image_id)
    finally:
        db.close()
    if not img.storage_key:
        raise ImageNotFound("Image is not stored locally")
    return img


@routes_bp.route("/api/images/<int:image_id>/original", methods=["GET"])
@login_required()
def get_original(image_id):
    img = _stored_image(image_id)
    path = storage.original_file(img.storage_key, current_app.config)
    if not os.path.exists(path):
        return error_response("File missing", 404)
    return send_file(path)


@routes_bp.route("/api/images/<int:image_id>/thumbnail", methods=["GET"])
@login_required()
def get_thumbnail(image_id):
    img = _stored_image(image_id)
    path = storage.thumbnail_file(img.storage_key, current_app.config)
    if not path:
        return error_response("Thumbnail not found", 404)
    return send_file(path)


@routes_bp.route("/api/stats", methods=["GET"])
@login_required()
def get_stats():
    db = SessionLocal()
    try:
        counts = gallery.status_counts(db, g.user_id)
        analysed = counts["completed"] + counts["failed"]
        counts["success_rate"] = round(counts["completed"] / analysed * 100, 2) if analysed else 0
        counts["analyses_last_24h"] = analysis.count_recent_metadata(db, g.user_id)
        return jsonify(counts)
    finally:
        db.close()


@routes_bp.route("/api/analyze-image", methods=["POST"])
@login_required("Unauthorized")
def analyze_image():
    config = current_app.config
    body = json_body()
    image_id, image_url = body.get("image_id"), body.get("image_url")
    if not image_id or not image_url:
        return error_response("image_id and image_url are required")

    db = SessionLocal()
    try:
        img = gallery.get_image(db, g.user_id, parse_image_id(image_id))

        existing = analysis.get_metadata(db, img.id, g.user_id)
        if existing is not None:
            if existing.ai_processing_status == STATUS_COMPLETED:
                return jsonify({"success": True, "metadata": existing.to_dict()})
            if existing.ai_processing_status == STATUS_PROCESSING:
                return jsonify({"success": True, "metadata": existing.to_dict(), "status": "processing"}), 202
            # pending or failed: analyse again on the same row

        if analysis.daily_cap_reached(db, g.user_id, config):
            return error_response("Daily analysis limit reached. Please try again tomorrow.", 429)

        try:
            meta, provider = analysis.run_for_image(
                db, img, lambda: storage.load_image_bytes(img, image_url, config), config
            )
        except AnalysisFailed as e:
            return error_response(e.message, 500, e.details)

        response = {"success": True, "metadata": meta.to_dict(), "provider": provider}
        if config.get("APP_ENV") != "production":
            response["debug"] = {
                "bedrockEnabled": bool(config.get("BEDROCK_ENABLED")),
                "openaiEnabled": bool(config.get("OPENAI_ENABLED")),
            }
        return jsonify(response)
    except (ImageNotFound, InvalidRequest):
        raise
    except Exception as e:
        logger.exception(f"Error analyzing image: {e}")
        return error_response("Failed to analyze image", 500, str(e))
    finally:
        db.close()
