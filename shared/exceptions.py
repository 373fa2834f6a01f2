"""
Custom exception classes for TutorDesk.

Provides specific exception types for better error handling and debugging.
Use these instead of generic Exception to enable targeted error handling.
The API layer maps each class to an HTTP status code (see `status_code`).
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class TutorDeskError(Exception):
    """Base exception for all TutorDesk errors"""

    status_code: int = 500

    def __init__(self, message: str = "", *, extra: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        # Additional keys rendered next to `error` in the JSON body (e.g. conflictType).
        self.extra: Dict[str, Any] = dict(extra or {})


class NotFoundError(TutorDeskError):
    """Referenced document does not exist (request, offer, tutor, room...)"""

    status_code = 404


class ValidationError(TutorDeskError):
    """Data validation failures"""

    status_code = 400


class ConflictError(TutorDeskError):
    """Write refused because it collides with existing state"""

    status_code = 409


class DataAccessError(TutorDeskError):
    """Database/cache access failures (Firestore, Redis, etc.)"""

    pass


class ExternalServiceError(TutorDeskError):
    """External API failures (Algolia, etc.)"""

    pass


class ConfigurationError(TutorDeskError):
    """Configuration or environment variable errors"""

    pass
