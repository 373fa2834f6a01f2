"""
Response caching service.

Caches expensive read-only payloads (the dashboard report) in Redis with an
in-process fallback so a Redis outage only costs recomputation.
"""
import time
import json
import asyncio
import logging
from typing import Any, Dict, List, Tuple, Optional

from TutorDeskBackend.redis_store import RedisStore
from TutorDeskBackend.utils.config_utils import get_redis_prefix
from TutorDeskBackend.utils.request_utils import build_cache_key
from shared.observability.exception_handler import swallow_exception

logger = logging.getLogger("tutordesk_backend")

# Module-level so every CacheService instance shares the fallback while Redis is down.
_CACHE_LOCAL: Dict[str, Tuple[str, float]] = {}
_CACHE_LOCK = asyncio.Lock()
_CACHE_LOCAL_MAX = 500


class CacheService:
    """JSON payload cache keyed by namespace and parameters."""

    def __init__(self, store: RedisStore):
        self.store = store

    def cache_key(self, path: str, items: Optional[List[Tuple[str, str]]] = None, *, namespace: str) -> str:
        return build_cache_key(path, list(items or []), namespace=namespace, redis_prefix=get_redis_prefix())

    async def get_cached(self, key: str) -> Optional[Dict[str, Any]]:
        """
        Get cached payload if available.

        Args:
            key: Cache key

        Returns:
            Cached payload dict or None if not found/expired
        """
        try:
            raw = self.store.r.get(key)
            if raw:
                return json.loads(raw)
        except Exception as e:
            swallow_exception(e, context="cache_redis_get", extra={"module": __name__})

        now = time.time()
        async with _CACHE_LOCK:
            raw, exp = _CACHE_LOCAL.get(key, ("", 0.0))
            if raw and float(exp) > now:
                try:
                    return json.loads(raw)
                except ValueError as e:
                    swallow_exception(e, context="cache_local_json_parse", extra={"module": __name__})
                    return None
            if float(exp) <= now:
                _CACHE_LOCAL.pop(key, None)
        return None

    async def set_cached(self, key: str, payload: Dict[str, Any], ttl_s: int) -> None:
        """
        Store a payload for `ttl_s` seconds (no-op when ttl_s <= 0).
        """
        if ttl_s <= 0:
            return
        raw = json.dumps(payload, ensure_ascii=False, separators=(",", ":"), default=str)
        try:
            self.store.r.setex(key, int(ttl_s), raw)
            return
        except Exception as e:
            swallow_exception(e, context="cache_redis_set", extra={"module": __name__})

        now = time.time()
        async with _CACHE_LOCK:
            _CACHE_LOCAL[key] = (raw, now + float(ttl_s))
            if len(_CACHE_LOCAL) > _CACHE_LOCAL_MAX:
                for k, (_, exp) in list(_CACHE_LOCAL.items()):
                    if float(exp) <= now:
                        _CACHE_LOCAL.pop(k, None)

    async def invalidate(self, key: str) -> None:
        try:
            self.store.r.delete(key)
        except Exception as e:
            swallow_exception(e, context="cache_redis_delete", extra={"module": __name__})
        async with _CACHE_LOCK:
            _CACHE_LOCAL.pop(key, None)
