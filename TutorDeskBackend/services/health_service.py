"""
Health check service.

Provides health status for Firestore, Algolia and Redis.
"""
import logging
from typing import Any, Dict

from TutorDeskBackend.algolia_store import AlgoliaStore
from TutorDeskBackend.firestore_store import FirestoreStore
from TutorDeskBackend.redis_store import RedisStore

logger = logging.getLogger("tutordesk_backend")


class HealthService:
    """Aggregate health checks for all backing services."""

    def __init__(self, db: FirestoreStore, algolia: AlgoliaStore, cache: RedisStore):
        self.db = db
        self.algolia = algolia
        self.cache = cache

    def basic_health(self) -> Dict[str, Any]:
        """Basic health check (always returns ok=True)."""
        return {"ok": True}

    def firestore_health(self) -> Dict[str, Any]:
        try:
            return {"ok": bool(self.db.ping())}
        except Exception as e:
            logger.warning("health_firestore_failed error=%s", e)
            return {"ok": False, "error": str(e)}

    def algolia_health(self) -> Dict[str, Any]:
        if not self.algolia.enabled():
            return {"ok": False, "skipped": True, "reason": "algolia_disabled"}
        try:
            return {"ok": bool(self.algolia.ping())}
        except Exception as e:
            logger.warning("health_algolia_failed error=%s", e)
            return {"ok": False, "error": str(e)}

    def redis_health(self) -> Dict[str, Any]:
        try:
            return {"ok": bool(self.cache.ping())}
        except Exception as e:
            logger.warning("health_redis_failed error=%s", e)
            return {"ok": False, "error": str(e)}

    def full_health(self) -> Dict[str, Any]:
        """
        Aggregate health. Redis only backs the report cache, so it is reported
        but does not fail the check.
        """
        base = self.basic_health()
        firestore_h = self.firestore_health()
        algolia_h = self.algolia_health()
        redis_h = self.redis_health()

        ok = (
            bool(base.get("ok")) and
            bool(firestore_h.get("ok")) and
            (bool(algolia_h.get("ok")) or bool(algolia_h.get("skipped")))
        )

        return {
            "ok": ok,
            "base": base,
            "firestore": firestore_h,
            "algolia": algolia_h,
            "redis": redis_h,
        }
