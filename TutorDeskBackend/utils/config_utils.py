"""
Configuration utilities.

Pydantic-backed configuration getters (shared/config.py).
"""
from shared.config import load_backend_config


def get_app_env() -> str:
    """Get application environment (prod, dev, etc.)."""
    return str(load_backend_config().app_env or "dev").strip().lower()


def is_production() -> bool:
    """Check if running in production environment."""
    return get_app_env() in {"prod", "production"}


def get_redis_prefix() -> str:
    """Get Redis key prefix (default: tutordesk)."""
    return str(load_backend_config().redis_prefix or "tutordesk").strip()
