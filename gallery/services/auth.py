from functools import wraps
import requests
from flask import current_app, g, request, jsonify
from ..errors import AuthError
from ..utils.logging import logger


def bearer_token():
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def fetch_supabase_user(token, config):
    """Resolve an access token to a Supabase user dict via /auth/v1/user."""
    base_url = (config.get("SUPABASE_URL") or "").rstrip("/")
    if not base_url:
        raise AuthError("SUPABASE_URL is not configured")
    try:
        response = requests.get(
            f"{base_url}/auth/v1/user",
            headers={
                "Authorization": f"Bearer {token}",
                "apikey": config.get("SUPABASE_ANON_KEY") or "",
            },
            timeout=config.get("AUTH_TIMEOUT_MS", 5000) / 1000.0,
        )
    except requests.RequestException as e:
        logger.warning(f"Auth provider unreachable: {e}")
        raise AuthError("Auth provider unreachable")
    if response.status_code != 200:
        raise AuthError(f"Token rejected ({response.status_code})")
    try:
        user = response.json()
    except ValueError:
        raise AuthError("Auth provider returned invalid JSON")
    if not isinstance(user, dict) or not user.get("id"):
        raise AuthError("Auth provider returned no user")
    return user


def current_user():
    token = bearer_token()
    if not token:
        raise AuthError("Missing bearer token")
    return fetch_supabase_user(token, current_app.config)


def login_required(message="Not authenticated"):
    """Reject the request with 401 unless the bearer token maps to a user; sets g.user_id."""
    def decorator(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            try:
                user = current_user()
            except AuthError as e:
                logger.info(f"Auth failed for {request.path}: {e.message}")
                return jsonify({"error": message}), 401
            g.user = user
            g.user_id = str(user["id"])
            return view(*args, **kwargs)
        return wrapper
    return decorator
