import os
from dotenv import load_dotenv

load_dotenv()

BASE_DIR = os.path.dirname(os.path.abspath(__file__))


def env_bool(name, default):
    return os.getenv(name, str(default)).strip().lower() == "true"


def env_int(name, default):
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(float(raw))
    except ValueError:
        return default


def load_settings():
    """Read runtime settings from the environment into a plain dict for app.config."""
    return {
        "APP_ENV": os.getenv("APP_ENV", "development"),
        "DATABASE_URL": os.getenv("DATABASE_URL", "sqlite:///" + os.path.join(BASE_DIR, "gallery.db")),

        # --- Auth (Supabase) ---
        "SUPABASE_URL": os.getenv("SUPABASE_URL", ""),
        "SUPABASE_ANON_KEY": os.getenv("SUPABASE_ANON_KEY", ""),
        "AUTH_TIMEOUT_MS": env_int("AUTH_TIMEOUT_MS", 5000),

        # --- AWS ---
        "AWS_REGION": os.getenv("AWS_REGION", "us-east-1"),
        "AWS_ACCESS_KEY_ID": os.getenv("AWS_ACCESS_KEY_ID"),
        "AWS_SECRET_ACCESS_KEY": os.getenv("AWS_SECRET_ACCESS_KEY"),

        # --- Rekognition tagging ---
        "AI_MAX_LABELS": env_int("AI_MAX_LABELS", 10),
        "AI_MIN_CONFIDENCE": env_int("AI_MIN_CONFIDENCE", 80),
        "AI_INCLUDE_PARENT_TAGS": env_bool("AI_INCLUDE_PARENT_TAGS", True),
        "AI_OCR_ENABLED": env_bool("AI_OCR_ENABLED", True),
        "AI_OCR_MAX_WORDS": env_int("AI_OCR_MAX_WORDS", 6),
        "AI_EXCLUDE_PERSON_FROM_TAGS": env_bool("AI_EXCLUDE_PERSON_FROM_TAGS", False),
        "REKOGNITION_TIMEOUT_MS": env_int("REKOGNITION_TIMEOUT_MS", 10000),

        # --- Description providers ---
        "BEDROCK_ENABLED": env_bool("BEDROCK_ENABLED", False),
        "BEDROCK_MODEL_ID": os.getenv("BEDROCK_MODEL_ID", "amazon.titan-text-express-v1"),
        "BEDROCK_MAX_TOKENS": env_int("BEDROCK_MAX_TOKENS", 60),
        "BEDROCK_TIMEOUT_MS": env_int("BEDROCK_TIMEOUT_MS", 7000),
        "OPENAI_ENABLED": env_bool("OPENAI_ENABLED", True),
        "OPENAI_API_KEY": os.getenv("OPENAI_API_KEY"),
        "OPENAI_API_URL": os.getenv("OPENAI_API_URL", "https://api.openai.com/v1/chat/completions"),
        "OPENAI_MODEL": os.getenv("OPENAI_MODEL", "gpt-3.5-turbo"),
        "OPENAI_MAX_TOKENS": env_int("OPENAI_MAX_TOKENS", 120),
        "OPENAI_TIMEOUT_MS": env_int("OPENAI_TIMEOUT_MS", 8000),
        "HF_FASTAPI_URL": os.getenv("HF_FASTAPI_URL"),
        "HF_FASTAPI_TIMEOUT_MS": env_int("HF_FASTAPI_TIMEOUT_MS", 8000),

        # --- Analysis ---
        "ANALYSIS_DAILY_CAP": env_int("ANALYSIS_DAILY_CAP", 200),
        "ANALYZE_ON_UPLOAD": env_bool("ANALYZE_ON_UPLOAD", False),
        "IMAGE_FETCH_TIMEOUT_MS": env_int("IMAGE_FETCH_TIMEOUT_MS", 10000),

        # --- Local storage ---
        "UPLOAD_DIR": os.getenv("UPLOAD_DIR", os.path.join(BASE_DIR, "statics", "originals")),
        "THUMBNAIL_DIR": os.getenv("THUMBNAIL_DIR", os.path.join(BASE_DIR, "statics", "thumbnails")),
        "THUMBNAIL_SIZE": env_int("THUMBNAIL_SIZE", 300),
        "MAX_CONTENT_LENGTH": env_int("MAX_UPLOAD_MB", 5) * 1024 * 1024,
    }
