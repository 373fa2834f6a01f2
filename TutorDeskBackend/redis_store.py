from dataclasses import dataclass
from typing import Optional

import redis

from shared.config import load_backend_config


@dataclass(frozen=True)
class RedisConfig:
    url: str


def load_redis_config() -> RedisConfig:
    cfg = load_backend_config()
    return RedisConfig(
        url=str(cfg.redis_url or "redis://localhost:6379/0").strip(),
    )


class RedisStore:
    """
    Thin wrapper over the redis client.

    Redis only holds derived data (cached dashboard reports); Firestore stays the
    source of truth, so callers treat every failure here as a cache miss.
    """

    def __init__(self, cfg: Optional[RedisConfig] = None):
        self.cfg = cfg or load_redis_config()
        self.r = redis.Redis.from_url(self.cfg.url, decode_responses=True)

    def ping(self) -> bool:
        return bool(self.r.ping())
