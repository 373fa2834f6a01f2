"""
Pytest configuration and fixtures for backend tests.

Services run against `InMemoryStore`, a dict-backed stand-in for
`FirestoreStore` with the same method surface; Algolia and Redis are mocks.
"""
import os
import copy
import itertools
import logging
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Dict, Generator, Iterable, List, Optional
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient


# Set test environment variables before ANY imports
os.environ["APP_ENV"] = "test"
os.environ["AUTH_REQUIRED"] = "false"
os.environ["FIREBASE_ADMIN_ENABLED"] = "false"
os.environ["ADMIN_API_KEY"] = "test_admin_key"
os.environ["REDIS_URL"] = "redis://localhost:6379/15"
os.environ["SENTRY_DSN"] = ""
os.environ["ALGOLIA_APP_ID"] = ""
os.environ["ALGOLIA_ADMIN_API_KEY"] = ""
os.environ["LOG_TO_FILE"] = "false"
os.environ["CHAT_MESSAGE_DELAY_SECONDS"] = "0"


def ts(year: int, month: int = 1, day: int = 1, hour: int = 12) -> datetime:
    return datetime(year, month, day, hour, tzinfo=timezone.utc)


class InMemoryStore:
    """Dict-backed FirestoreStore: paths map to {doc_id: data}."""

    def __init__(self):
        self.collections: Dict[str, Dict[str, Dict[str, Any]]] = defaultdict(dict)
        self._ids = itertools.count(1)
        self.batch_calls: List[Dict[str, Any]] = []

    def seed(self, path: str, doc_id: str, data: Dict[str, Any]) -> None:
        self.collections[path][doc_id] = copy.deepcopy(data)

    def raw(self, path: str, doc_id: str) -> Optional[Dict[str, Any]]:
        return self.collections.get(path, {}).get(doc_id)

    def docs(self, path: str) -> Dict[str, Dict[str, Any]]:
        return self.collections.get(path, {})

    def get(self, path: str, doc_id: str) -> Optional[Dict[str, Any]]:
        data = self.raw(path, doc_id)
        if data is None:
            return None
        return {**copy.deepcopy(data), "id": doc_id}

    def set(self, path: str, doc_id: str, data: Dict[str, Any], *, merge: bool = False) -> None:
        current = self.collections[path].get(doc_id) if merge else None
        self.collections[path][doc_id] = {**(current or {}), **copy.deepcopy(data)}

    def add(self, path: str, data: Dict[str, Any]) -> str:
        doc_id = f"auto{next(self._ids)}"
        self.collections[path][doc_id] = copy.deepcopy(data)
        return doc_id

    def update(self, path: str, doc_id: str, data: Dict[str, Any]) -> None:
        from shared.exceptions import DataAccessError

        if doc_id not in self.collections.get(path, {}):
            raise DataAccessError(f"Firestore update failed for {path}")
        self.collections[path][doc_id].update(copy.deepcopy(data))

    def delete(self, path: str, doc_id: str) -> None:
        self.collections.get(path, {}).pop(doc_id, None)

    @staticmethod
    def _matches(doc: Dict[str, Any], field: str, op: str, value: Any) -> bool:
        if field not in doc:
            return False
        current = doc[field]
        if op == "==":
            return current == value
        if op == "!=":
            return current != value
        if op == "in":
            return current in value
        if op == "<=":
            return current <= value
        if op == ">=":
            return current >= value
        if op == "<":
            return current < value
        if op == ">":
            return current > value
        raise ValueError(f"unsupported operator {op}")

    def query(
        self,
        path: str,
        *,
        where: Optional[Iterable] = None,
        order_by: Optional[str] = None,
        descending: bool = True,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        items = [
            {**copy.deepcopy(data), "id": doc_id}
            for doc_id, data in self.docs(path).items()
            if all(self._matches(data, f, op, v) for f, op, v in (where or ()))
        ]
        if order_by:
            # Firestore drops documents that lack the ordering field.
            items = [d for d in items if d.get(order_by) is not None]
            items.sort(key=lambda d: d[order_by], reverse=descending)
        if limit is not None:
            items = items[: int(limit)]
        return items

    def update_many(self, path: str, doc_ids: Iterable[str], data: Dict[str, Any]) -> int:
        ids = [i for i in doc_ids if i]
        if not ids:
            return 0
        self.batch_calls.append({"path": path, "ids": ids})
        for doc_id in ids:
            self.update(path, doc_id, data)
        return len(ids)

    def ping(self) -> bool:
        return True


@pytest.fixture
def memory_db() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def mock_algolia():
    """Algolia disabled unless a test enables it."""
    algolia = MagicMock()
    algolia.enabled.return_value = False
    algolia.search.return_value = {"hits": [], "nbHits": 0, "page": 0, "nbPages": 0}
    algolia.ping.return_value = True
    return algolia


@pytest.fixture
def mock_redis():
    """Mock Redis store behaviors."""
    mock_store = MagicMock()
    # CacheService expects a `.r` Redis client interface.
    mock_store.r = MagicMock()
    mock_store.r.get.return_value = None
    mock_store.r.setex.return_value = True
    mock_store.ping.return_value = True
    return mock_store


@pytest.fixture
def backend_cfg():
    from shared.config import load_backend_config

    return load_backend_config()


@pytest.fixture
def app_context(memory_db, mock_algolia, mock_redis, backend_cfg):
    from TutorDeskBackend.app_context import build_app_context

    return build_app_context(
        backend_cfg,
        db=memory_db,
        algolia=mock_algolia,
        store=mock_redis,
        logger=logging.getLogger("tutordesk_backend"),
    )


@pytest.fixture(scope="session")
def test_app():
    """
    Import and configure the FastAPI app for testing.
    """
    from TutorDeskBackend.app import app
    return app


@pytest.fixture
def client(test_app, app_context) -> Generator[TestClient, None, None]:
    """
    Create a FastAPI TestClient whose routes see the in-memory context.
    """
    from TutorDeskBackend.app_context import get_app_context

    test_app.dependency_overrides[get_app_context] = lambda: app_context
    with TestClient(test_app) as test_client:
        yield test_client
    test_app.dependency_overrides.pop(get_app_context, None)


@pytest.fixture
def admin_headers() -> Dict[str, str]:
    """Generate admin API key headers for testing admin endpoints."""
    return {"X-Admin-Key": os.environ.get("ADMIN_API_KEY", "test_admin_key")}


@pytest.fixture
def sample_request() -> Dict[str, Any]:
    """A new request from a Lebanese student with no tutor yet."""
    return {
        "student_id": "stu1",
        "tutor_id": None,
        "student_price": "",
        "tutor_price": "",
        "min_price": None,
        "request_status": "new",
        "assistance_type": "homework",
        "subject": "Mathematics",
        "label": "Algebra homework",
        "language": "en",
        "country": "Lebanon",
        "created_at": ts(2026, 3, 1),
        "updated_at": ts(2026, 3, 1),
    }
