"""
Centralized Configuration Management for TutorDesk.

Goal:
- One typed source of truth for config across the API service, the Firestore triggers and the backfill tools.
- Keep the original web console env var names working (NEXT_PUBLIC_* aliases), but prefer the canonical keys.
"""

from __future__ import annotations

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


_REPO_ROOT = Path(__file__).resolve().parents[1]


def _env_file_candidates(service_dir: str) -> list[Path]:
    # Order matters: service-local .env first, then repo-root .env (if any).
    return [
        _REPO_ROOT / service_dir / ".env",
        _REPO_ROOT / ".env",
    ]


class FirebaseSettings(BaseSettings):
    """Firebase Admin SDK connection settings shared by every service."""

    model_config = SettingsConfigDict(case_sensitive=False, extra="ignore")

    firebase_project_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("FIREBASE_PROJECT_ID", "NEXT_PUBLIC_FIREBASE_PROJECT_ID", "GCLOUD_PROJECT"),
    )
    # Raw service account JSON (as stored in a secret manager / CI variable).
    firebase_service_account: Optional[str] = Field(default=None, validation_alias=AliasChoices("FIREBASE_SERVICE_ACCOUNT"))
    firebase_admin_credentials_path: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("FIREBASE_ADMIN_CREDENTIALS_PATH", "GOOGLE_APPLICATION_CREDENTIALS"),
    )
    use_firebase_emulator: bool = Field(
        default=False,
        validation_alias=AliasChoices("USE_FIREBASE_EMULATOR", "NEXT_PUBLIC_USE_FIREBASE_EMULATOR"),
    )
    firestore_emulator_host: Optional[str] = Field(default=None, validation_alias=AliasChoices("FIRESTORE_EMULATOR_HOST"))

    @property
    def emulator_active(self) -> bool:
        return bool(self.use_firebase_emulator and (self.firestore_emulator_host or "").strip())

    def service_account_info(self) -> Optional[Dict[str, Any]]:
        raw = (self.firebase_service_account or "").strip()
        if not raw:
            return None
        try:
            info = json.loads(raw)
        except ValueError as e:
            raise ValueError(f"FIREBASE_SERVICE_ACCOUNT is not valid JSON: {e}") from e
        if not isinstance(info, dict):
            raise ValueError("FIREBASE_SERVICE_ACCOUNT must be a JSON object")
        return info


class BackendConfig(FirebaseSettings):
    """Configuration for the TutorDeskBackend API service."""

    model_config = SettingsConfigDict(case_sensitive=False, extra="ignore")

    # Environment
    app_env: str = Field(default="dev", validation_alias=AliasChoices("APP_ENV", "ENV"))
    app_host: str = Field(default="0.0.0.0", validation_alias=AliasChoices("APP_HOST"))
    app_port: int = Field(default=8000, validation_alias=AliasChoices("APP_PORT"))

    # Auth
    auth_required: bool = Field(default=True, validation_alias=AliasChoices("AUTH_REQUIRED"))
    firebase_admin_enabled: bool = Field(default=True, validation_alias=AliasChoices("FIREBASE_ADMIN_ENABLED"))
    admin_api_key: Optional[str] = Field(default=None, validation_alias=AliasChoices("ADMIN_API_KEY"))
    # Comma-separated Firebase UIDs allowed into the console without the `admin` custom claim.
    admin_uids: str = Field(default="", validation_alias=AliasChoices("ADMIN_UIDS"))

    # Algolia (search)
    algolia_app_id: Optional[str] = Field(default=None, validation_alias=AliasChoices("ALGOLIA_APP_ID", "NEXT_PUBLIC_ALGOLIA_APP_ID"))
    algolia_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("ALGOLIA_ADMIN_API_KEY", "ALGOLIA_API_KEY", "NEXT_PUBLIC_ALGOLIA_API_KEY"),
    )
    algolia_students_index: str = Field(
        default="students",
        validation_alias=AliasChoices("ALGOLIA_STUDENTS_INDEX", "NEXT_PUBLIC_ALGOLIA_STUDENTS_INDEX"),
    )
    algolia_tutors_index: str = Field(
        default="tutors",
        validation_alias=AliasChoices("ALGOLIA_TUTORS_INDEX", "NEXT_PUBLIC_ALGOLIA_TUTORS_INDEX"),
    )
    algolia_requests_index: str = Field(
        default="requests",
        validation_alias=AliasChoices("ALGOLIA_REQUESTS_INDEX", "NEXT_PUBLIC_ALGOLIA_REQUESTS_INDEX"),
    )
    search_fallback_scan_limit: int = Field(default=500, validation_alias=AliasChoices("SEARCH_FALLBACK_SCAN_LIMIT"))

    # Request workflow
    chat_message_delay_seconds: float = Field(default=0.0, validation_alias=AliasChoices("CHAT_MESSAGE_DELAY_SECONDS"))
    enforce_status_transitions: bool = Field(default=False, validation_alias=AliasChoices("ENFORCE_STATUS_TRANSITIONS"))

    # Cache
    redis_url: str = Field(default="redis://localhost:6379/0", validation_alias=AliasChoices("REDIS_URL"))
    redis_prefix: str = Field(default="tutordesk", validation_alias=AliasChoices("REDIS_PREFIX"))
    dashboard_cache_ttl_seconds: int = Field(default=60, validation_alias=AliasChoices("DASHBOARD_CACHE_TTL_SECONDS"))

    # CORS
    cors_allow_origins: str = Field(default="*", validation_alias=AliasChoices("CORS_ALLOW_ORIGINS"))

    # Observability
    log_level: str = Field(default="INFO", validation_alias=AliasChoices("LOG_LEVEL"))
    log_dir: Optional[str] = Field(default=None, validation_alias=AliasChoices("LOG_DIR"))
    log_file: Optional[str] = Field(default=None, validation_alias=AliasChoices("LOG_FILE"))
    log_json: bool = Field(default=False, validation_alias=AliasChoices("LOG_JSON"))
    log_to_console: bool = Field(default=True, validation_alias=AliasChoices("LOG_TO_CONSOLE"))
    log_to_file: bool = Field(default=True, validation_alias=AliasChoices("LOG_TO_FILE"))
    log_max_bytes: int = Field(default=5_000_000, validation_alias=AliasChoices("LOG_MAX_BYTES"))
    log_backup_count: int = Field(default=5, validation_alias=AliasChoices("LOG_BACKUP_COUNT"))

    sentry_dsn: Optional[str] = Field(default=None, validation_alias=AliasChoices("SENTRY_DSN"))
    sentry_environment: str = Field(default="production", validation_alias=AliasChoices("SENTRY_ENVIRONMENT"))
    sentry_release: Optional[str] = Field(default=None, validation_alias=AliasChoices("SENTRY_RELEASE"))
    sentry_traces_sample_rate: Optional[float] = Field(default=None, validation_alias=AliasChoices("SENTRY_TRACES_SAMPLE_RATE"))
    sentry_profiles_sample_rate: Optional[float] = Field(default=None, validation_alias=AliasChoices("SENTRY_PROFILES_SAMPLE_RATE"))

    @model_validator(mode="after")
    def _validate_ranges(self) -> "BackendConfig":
        if self.chat_message_delay_seconds < 0:
            raise ValueError("CHAT_MESSAGE_DELAY_SECONDS must be >= 0")
        if self.search_fallback_scan_limit < 1:
            raise ValueError("SEARCH_FALLBACK_SCAN_LIMIT must be >= 1")
        return self

    @property
    def algolia_enabled(self) -> bool:
        return bool((self.algolia_app_id or "").strip() and (self.algolia_api_key or "").strip())

    @property
    def cors_origins(self) -> list[str]:
        raw = (self.cors_allow_origins or "*").strip()
        if raw == "*":
            return ["*"]
        return [o.strip() for o in raw.split(",") if o.strip()]


class FunctionsConfig(FirebaseSettings):
    """Configuration for the Firestore triggers and the flag backfill tools."""

    model_config = SettingsConfigDict(case_sensitive=False, extra="ignore")

    backfill_batch_size: int = Field(default=500, validation_alias=AliasChoices("BACKFILL_BATCH_SIZE"))
    log_level: str = Field(default="INFO", validation_alias=AliasChoices("LOG_LEVEL"))

    @model_validator(mode="after")
    def _validate_batch_size(self) -> "FunctionsConfig":
        # Firestore rejects write batches above 500 operations.
        if not 1 <= self.backfill_batch_size <= 500:
            raise ValueError("BACKFILL_BATCH_SIZE must be between 1 and 500")
        return self


@lru_cache(maxsize=4)
def _cached_backend_config(env_file_str: Optional[str]) -> BackendConfig:
    env_file = Path(env_file_str) if env_file_str else None
    candidates = [env_file] if env_file else _env_file_candidates("TutorDeskBackend")
    existing = [p for p in candidates if p and p.exists()]
    return BackendConfig(_env_file=existing or None, _env_file_encoding="utf-8")  # type: ignore[arg-type]


def load_backend_config(*, env_file: Optional[Path] = None) -> BackendConfig:
    return _cached_backend_config(str(env_file) if env_file else None)


def load_functions_config(*, env_file: Optional[Path] = None) -> FunctionsConfig:
    candidates = [env_file] if env_file else _env_file_candidates("TutorDeskFunctions")
    existing = [p for p in candidates if p and p.exists()]
    return FunctionsConfig(_env_file=existing or None, _env_file_encoding="utf-8")  # type: ignore[arg-type]


def validate_environment_integrity(cfg: BaseSettings) -> None:
    """
    Validate that environment configuration is internally consistent.

    Raises RuntimeError if dangerous misconfigurations detected.
    """
    app_env = str(getattr(cfg, "app_env", "dev")).strip().lower()

    if app_env in {"prod", "production"}:
        # Check 1: prod must never talk to the local emulator
        if getattr(cfg, "use_firebase_emulator", False):
            raise RuntimeError(
                "FATAL CONFIGURATION ERROR:\n"
                "APP_ENV=prod but USE_FIREBASE_EMULATOR=true\n"
                "This configuration would serve the admin console from emulator data.\n"
                "Fix: Unset USE_FIREBASE_EMULATOR / FIRESTORE_EMULATOR_HOST in .env.prod"
            )

        # Check 2: Prod requires authentication
        if hasattr(cfg, "auth_required") and not getattr(cfg, "auth_required", True):
            raise RuntimeError(
                "FATAL CONFIGURATION ERROR:\n"
                "APP_ENV=prod but AUTH_REQUIRED=false\n"
                "Production must have authentication enabled.\n"
                "Fix: Set AUTH_REQUIRED=true in .env.prod"
            )

        # Check 3: Prod requires admin API key
        if hasattr(cfg, "admin_api_key"):
            admin_key = str(getattr(cfg, "admin_api_key", "") or "").strip()
            if not admin_key or admin_key == "changeme" or len(admin_key) < 32:
                raise RuntimeError(
                    "FATAL CONFIGURATION ERROR:\n"
                    "APP_ENV=prod but ADMIN_API_KEY is missing or weak\n"
                    "Production must have a strong admin API key.\n"
                    "Fix: Set ADMIN_API_KEY to a secure random string in .env.prod"
                )

    elif app_env == "staging":
        if getattr(cfg, "chat_message_delay_seconds", 0) > 5:
            logging.warning(
                "STAGING CHAT DELAY HIGH: "
                "CHAT_MESSAGE_DELAY_SECONDS=%s will slow every assign/accept request.",
                getattr(cfg, "chat_message_delay_seconds", 0),
            )
