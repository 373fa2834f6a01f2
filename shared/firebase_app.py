"""
Firebase Admin SDK bootstrap shared by the API, the Firestore triggers and the backfill tools.

Credential resolution order:
1. Emulator (USE_FIREBASE_EMULATOR + FIRESTORE_EMULATOR_HOST): project id only, no credentials
2. A credentials file passed by the caller (the backfill `--credentials` flag)
3. FIREBASE_SERVICE_ACCOUNT (service account JSON in an env var)
4. FIREBASE_ADMIN_CREDENTIALS_PATH
5. Application Default Credentials
"""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, Optional

import firebase_admin
from firebase_admin import credentials, firestore

from shared.config import FirebaseSettings
from shared.exceptions import ConfigurationError

logger = logging.getLogger("tutordesk.firebase")


def _options(settings: FirebaseSettings) -> Optional[Dict[str, Any]]:
    project_id = (settings.firebase_project_id or "").strip()
    return {"projectId": project_id} if project_id else None


def _init_from_file(path: str, options: Optional[Dict[str, Any]]) -> firebase_admin.App:
    if not os.path.exists(path):
        raise ConfigurationError(f"Firebase credentials file not found: {path}")
    logger.info("firebase_init_credentials_file", extra={"credentials_path": path})
    return firebase_admin.initialize_app(credentials.Certificate(path), options=options)


def init_firebase_app(settings: FirebaseSettings, *, credentials_path: Optional[str] = None) -> firebase_admin.App:
    """Return the default Firebase app, initializing it on first use."""
    try:
        return firebase_admin.get_app()
    except ValueError:
        pass

    options = _options(settings)

    if settings.emulator_active:
        # google-cloud-firestore picks the emulator up from the environment.
        os.environ["FIRESTORE_EMULATOR_HOST"] = str(settings.firestore_emulator_host).strip()
        logger.info("firebase_init_emulator", extra={"emulator_host": settings.firestore_emulator_host})
        return firebase_admin.initialize_app(options=options)

    explicit = (credentials_path or "").strip()
    if explicit:
        return _init_from_file(explicit, options)

    try:
        info = settings.service_account_info()
    except ValueError as e:
        raise ConfigurationError(str(e)) from e

    if info:
        logger.info("firebase_init_service_account_env")
        return firebase_admin.initialize_app(credentials.Certificate(info), options=options)

    configured = (settings.firebase_admin_credentials_path or "").strip()
    if configured:
        return _init_from_file(configured, options)

    logger.info("firebase_init_application_default")
    return firebase_admin.initialize_app(options=options)


def firestore_client(settings: FirebaseSettings, *, credentials_path: Optional[str] = None):
    app = init_firebase_app(settings, credentials_path=credentials_path)
    return firestore.client(app)
