import time
import requests
from botocore.exceptions import ClientError
from flask import Blueprint, current_app, request, jsonify
from .errors import GalleryError
from .services.ai import bedrock, openai_text, rekognition
from .services.storage import fetch_image_bytes
from .utils.logging import logger

diagnostics_bp = Blueprint("diagnostics_bp", __name__, url_prefix="/api")

HELLO_PROMPT = "Say hello in one word."


@diagnostics_bp.route("/test-bedrock", methods=["POST"])
def test_bedrock():
    config = current_app.config
    body = request.get_json(silent=True) or {}
    model_id = body.get("model_id") or config.get("BEDROCK_MODEL_ID") or "amazon.titan-text-express-v1"
    region = config.get("AWS_REGION") or "us-east-1"
    logger.info(f"Testing Bedrock with model {model_id} in {region}")
    try:
        payload = bedrock.invoke_model(model_id, bedrock.build_request_body(model_id, HELLO_PROMPT, 50), config)
        return jsonify({
            "success": True,
            "model": model_id,
            "region": region,
            "expectedResourceArn": f"arn:aws:bedrock:{region}::foundation-model/{model_id}",
            "response": payload,
        })
    except Exception as e:
        logger.exception(f"Bedrock test error: {e}")
        metadata = getattr(e, "response", {}).get("ResponseMetadata", {}) if isinstance(e, ClientError) else {}
        return jsonify({
            "success": False,
            "region": region,
            "error": type(e).__name__,
            "message": str(e),
            "code": metadata.get("HTTPStatusCode"),
            "requestId": metadata.get("RequestId"),
        }), 500


@diagnostics_bp.route("/test-openai", methods=["GET"])
def test_openai():
    config = current_app.config
    if config.get("APP_ENV") == "production":
        return jsonify({"error": "Not available in production"}), 404
    if not config.get("OPENAI_ENABLED", True):
        return jsonify({"ok": True, "openaiEnabled": False})
    if not config.get("OPENAI_API_KEY"):
        return jsonify({"ok": False, "error": "OPENAI_API_KEY is not set"}), 400
    try:
        choice = openai_text.chat_completion(
            [{"role": "user", "content": "Reply with the single word: OK"}], config, max_tokens=2
        )
    except GalleryError as e:
        return jsonify({"ok": False, "error": e.message}), 500
    return jsonify({
        "ok": True,
        "model": config.get("OPENAI_MODEL"),
        "reply": ((choice.get("message") or {}).get("content") or "").strip(),
        "finish_reason": choice.get("finish_reason"),
        "usage": choice.get("usage"),
    })


@diagnostics_bp.route("/test-rekognition", methods=["POST"])
def test_rekognition():
    config = current_app.config
    image_url = (request.get_json(silent=True) or {}).get("image_url")
    if not image_url:
        return jsonify({"error": "image_url required"}), 400
    logger.info(f"Testing Rekognition with URL: {image_url}")
    try:
        tags, colors = rekognition.analyze_tags_and_colors(fetch_image_bytes(image_url, config), config)
    except Exception as e:
        logger.exception(f"Rekognition test failed: {e}")
        return jsonify({"error": "Test failed", "details": getattr(e, "message", None) or str(e)}), 500
    return jsonify({"success": True, "tags": tags, "colors": colors})


@diagnostics_bp.route("/test-fastapi", methods=["GET"])
def test_fastapi():
    config = current_app.config
    base_url = config.get("HF_FASTAPI_URL")
    tags = [t.strip() for t in (request.args.get("tags") or "Beach,Sunset,Ocean").split(",") if t.strip()]
    if not base_url:
        return jsonify({"ok": False, "error": "HF_FASTAPI_URL not set"}), 400

    started = time.monotonic()
    try:
        res = requests.post(
            f"{base_url.rstrip('/')}/describe",
            json={"tags": tags},
            timeout=config.get("HF_FASTAPI_TIMEOUT_MS", 8000) / 1000.0,
        )
    except requests.RequestException as e:
        return jsonify({
            "ok": False,
            "error": str(e),
            "elapsedMs": int((time.monotonic() - started) * 1000),
        }), 500

    try:
        payload = res.json()
    except ValueError:
        payload = res.text
    return jsonify({
        "ok": res.ok,
        "status": res.status_code,
        "elapsedMs": int((time.monotonic() - started) * 1000),
        "response": payload,
    }), (200 if res.ok else 502)
