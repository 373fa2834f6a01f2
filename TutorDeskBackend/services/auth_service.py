"""
Authentication and authorization service.

Admin routes accept either the shared admin API key or a Firebase ID token
issued to a console admin (`admin` custom claim or ADMIN_UIDS).
"""
import logging
import secrets
from typing import Any, Dict, Optional, Set

from fastapi import HTTPException, Request

from TutorDeskBackend.firebase_auth import firebase_admin_status, verify_bearer_token
from TutorDeskBackend.utils.config_utils import is_production
from shared.config import load_backend_config
from shared.observability.exception_handler import swallow_exception

logger = logging.getLogger("tutordesk_backend")


class AuthService:
    """Centralized authentication and authorization logic."""

    def is_auth_required(self) -> bool:
        """Check if authentication is enabled."""
        return bool(load_backend_config().auth_required)

    def get_admin_key(self) -> str:
        """Get admin API key from config."""
        return str(load_backend_config().admin_api_key or "").strip()

    def _provided_key(self, request: Request) -> str:
        return (request.headers.get("x-api-key") or request.headers.get("x-admin-key") or "").strip()

    def get_admin_uids(self) -> Set[str]:
        raw = str(load_backend_config().admin_uids or "")
        return {uid.strip() for uid in raw.split(",") if uid.strip()}

    def is_admin_token(self, decoded: Dict[str, Any]) -> bool:
        """A token is an admin token when it carries `admin: true` or its uid is allow-listed."""
        if decoded.get("admin") is True:
            return True
        uid = str(decoded.get("uid") or "").strip()
        return bool(uid) and uid in self.get_admin_uids()

    def require_admin(self, request: Request) -> None:
        """
        Allow the request when it carries the admin API key or an admin's Firebase ID token.

        A valid token from an app student or tutor is rejected with 403.

        Raises:
            HTTPException: 401 if unauthorized, 403 for a non-admin token,
                500 if the key is missing in prod
        """
        key = self.get_admin_key()
        provided = self._provided_key(request)
        if key and provided and secrets.compare_digest(provided, key):
            return

        decoded = self._decoded_token(request)
        if decoded and decoded.get("uid"):
            if not self.is_admin_token(decoded):
                logger.warning("admin_forbidden", extra={"uid": decoded.get("uid")})
                raise HTTPException(status_code=403, detail="admin_forbidden")
            self._remember_uid(request, decoded["uid"])
            return

        if not key:
            # In dev, allow missing key for easier local iteration
            if not is_production():
                return
            raise HTTPException(status_code=500, detail="admin_api_key_missing")

        raise HTTPException(status_code=401, detail="admin_unauthorized")

    def _decoded_token(self, request: Request) -> Optional[Dict[str, Any]]:
        header = request.headers.get("authorization") or ""
        if not header:
            return None

        parts = header.split()
        if len(parts) != 2 or parts[0].lower() != "bearer":
            return None

        return verify_bearer_token(parts[1]) or None

    def _remember_uid(self, request: Request, uid: str) -> None:
        try:
            request.state.uid = uid
        except AttributeError as e:
            swallow_exception(e, context="auth_request_state_setting", extra={"module": __name__})

    def get_uid_from_request(self, request: Request) -> Optional[str]:
        """
        Extract Firebase UID from request if present.

        Returns None if no bearer token or invalid token. Does not raise.
        """
        decoded = self._decoded_token(request)
        if not decoded:
            return None

        uid = decoded.get("uid")
        if uid:
            self._remember_uid(request, uid)
        return uid

    def validate_production_config(self) -> None:
        """
        Validate production configuration at startup.

        Raises:
            RuntimeError: If critical configuration is missing/invalid
        """
        if not is_production():
            return

        if not self.get_admin_key():
            raise RuntimeError("ADMIN_API_KEY is required when APP_ENV=prod")

        if not self.is_auth_required():
            raise RuntimeError("AUTH_REQUIRED must be true when APP_ENV=prod")

        st = firebase_admin_status()
        if st.get("enabled") and not st.get("ready"):
            raise RuntimeError(
                f"Firebase Admin not ready in prod "
                f"(check FIREBASE_SERVICE_ACCOUNT / FIREBASE_ADMIN_CREDENTIALS_PATH). status={st}"
            )
