import os
from flask import Flask, jsonify
from .config import load_settings
from .diagnostics import diagnostics_bp
from .errors import GalleryError
from .routes import routes_bp
from .models import database
from .services.worker import start_worker
from .utils.logging import logger

# Import models so their tables are registered on Base
from .models import imageModel, metadataModel  # noqa: F401


def create_app(overrides=None):
    # Create Flask app
    app = Flask(__name__)

    # --- Configuration ---
    app.config.update(load_settings())
    if overrides:
        app.config.update(overrides)

    # Ensure directories exist
    os.makedirs(app.config["UPLOAD_DIR"], exist_ok=True)
    os.makedirs(app.config["THUMBNAIL_DIR"], exist_ok=True)

    # --- Database setup ---
    engine = database.bind_engine(app.config["DATABASE_URL"])
    database.Base.metadata.create_all(bind=engine)
    logger.info("Database tables initialized")

    # --- Errors ---
    @app.errorhandler(GalleryError)
    def handle_gallery_error(e):
        body = {"error": e.message}
        if e.details is not None:
            body["details"] = e.details
        return jsonify(body), e.status_code

    @app.errorhandler(413)
    def handle_too_large(e):
        return jsonify({"error": "File too large"}), 413

    # --- Register blueprints ---
    app.register_blueprint(routes_bp)
    app.register_blueprint(diagnostics_bp)

    # --- Start background worker ---
    if app.config.get("ANALYZE_ON_UPLOAD"):
        start_worker(app)

    logger.info("Flask app created successfully")
    return app
