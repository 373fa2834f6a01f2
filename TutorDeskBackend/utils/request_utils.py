"""
Request/response utilities.
"""
import hashlib
from typing import List, Optional, Tuple
from urllib.parse import quote as _url_quote

from fastapi import Request


def get_client_ip(request: Request) -> str:
    """
    Extract client IP from request headers or client object.

    Checks X-Forwarded-For header first, falls back to client.host.
    """
    xff = (request.headers.get("x-forwarded-for") or "").strip()
    if xff:
        first = xff.split(",", 1)[0].strip()
        return first or "unknown"
    return getattr(getattr(request, "client", None), "host", None) or "unknown"


def get_request_id(request: Request) -> Optional[str]:
    return getattr(getattr(request, "state", None), "request_id", None)


def canonical_query_string(items: List[Tuple[str, str]]) -> str:
    """Stable, sorted query string so equivalent requests share a cache key."""
    items = [(str(k), str(v)) for k, v in (items or [])]
    items.sort(key=lambda kv: (kv[0], kv[1]))
    return "&".join([f"{k}={_url_quote(v)}" for k, v in items])


def build_cache_key(path: str, items: List[Tuple[str, str]], *, namespace: str, redis_prefix: str) -> str:
    """
    Build cache key from path and query parameters.

    Returns:
        "<prefix>:<namespace>:<sha256 prefix>"
    """
    base = f"{path}?{canonical_query_string(items)}"
    h = hashlib.sha256(base.encode("utf-8")).hexdigest()[:24]
    return f"{redis_prefix}:{namespace}:{h}"
