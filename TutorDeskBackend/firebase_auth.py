import logging
from typing import Any, Dict, Optional

from firebase_admin import auth

from shared.config import load_backend_config
from shared.firebase_app import init_firebase_app


logger = logging.getLogger("firebase_auth")


_firebase_ready = False
_firebase_init_error: Optional[str] = None


def init_firebase_admin_if_needed() -> bool:
    global _firebase_ready
    global _firebase_init_error
    if _firebase_ready:
        return True
    cfg = load_backend_config()
    if not cfg.firebase_admin_enabled:
        _firebase_init_error = "disabled"
        return False
    try:
        init_firebase_app(cfg)
        _firebase_ready = True
        _firebase_init_error = None
        return True
    except Exception as e:
        _firebase_init_error = str(e)
        logger.warning("Firebase Admin init failed; token auth disabled error=%s", e)
        return False


def verify_bearer_token(token: str) -> Optional[Dict[str, Any]]:
    if not token:
        return None
    if not init_firebase_admin_if_needed():
        return None
    try:
        return auth.verify_id_token(token)
    except (ValueError, auth.InvalidIdTokenError, auth.ExpiredIdTokenError, auth.RevokedIdTokenError) as e:
        logger.info("firebase_token_rejected error=%s", type(e).__name__)
        return None


def firebase_admin_status() -> Dict[str, Any]:
    """
    Returns a small status blob to distinguish "invalid token" vs "auth misconfigured".
    """
    cfg = load_backend_config()
    ready = init_firebase_admin_if_needed() if cfg.firebase_admin_enabled else False
    return {
        "enabled": bool(cfg.firebase_admin_enabled),
        "ready": bool(ready),
        "credentials_set": bool(cfg.firebase_service_account or cfg.firebase_admin_credentials_path or cfg.emulator_active),
        "init_error": _firebase_init_error,
    }
