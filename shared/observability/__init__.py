"""
Observability helpers shared by the backend and the Firestore triggers.
"""

from __future__ import annotations

from .exception_handler import swallow_exception

__all__ = ["swallow_exception"]
