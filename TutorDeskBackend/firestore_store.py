"""
Firestore document access for the back-office API.

Services address collections by path ("requests", "requests/{id}/tutor_offers")
and exchange plain dicts; every returned document carries its `id`. Client
errors are re-raised as DataAccessError so the API renders them uniformly.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from google.api_core.exceptions import GoogleAPICallError
from google.cloud import firestore
from google.cloud.firestore_v1 import FieldFilter

from shared.config import BackendConfig, load_backend_config
from shared.exceptions import DataAccessError
from shared.firebase_app import firestore_client

logger = logging.getLogger("tutordesk_backend.firestore")

Where = Sequence[Tuple[str, str, Any]]

# Firestore rejects write batches above 500 operations.
MAX_BATCH_WRITES = 500


def _doc_to_dict(snapshot) -> Optional[Dict[str, Any]]:
    if not snapshot.exists:
        return None
    data = snapshot.to_dict() or {}
    data["id"] = snapshot.id
    return data


@contextmanager
def _firestore_errors(op: str, path: str) -> Iterator[None]:
    try:
        yield
    except GoogleAPICallError as e:
        logger.error("firestore_call_failed op=%s path=%s error=%s", op, path, e, extra={"collection": path})
        raise DataAccessError(f"Firestore {op} failed for {path}") from e


class FirestoreStore:
    def __init__(self, cfg: Optional[BackendConfig] = None, *, client: Any = None):
        self.cfg = cfg or load_backend_config()
        self._client = client

    @property
    def db(self):
        if self._client is None:
            self._client = firestore_client(self.cfg)
        return self._client

    def get(self, path: str, doc_id: str) -> Optional[Dict[str, Any]]:
        with _firestore_errors("get", path):
            return _doc_to_dict(self.db.collection(path).document(doc_id).get())

    def set(self, path: str, doc_id: str, data: Dict[str, Any], *, merge: bool = False) -> None:
        with _firestore_errors("set", path):
            self.db.collection(path).document(doc_id).set(dict(data), merge=merge)

    def add(self, path: str, data: Dict[str, Any]) -> str:
        with _firestore_errors("add", path):
            _, ref = self.db.collection(path).add(dict(data))
            return ref.id

    def update(self, path: str, doc_id: str, data: Dict[str, Any]) -> None:
        with _firestore_errors("update", path):
            self.db.collection(path).document(doc_id).update(dict(data))

    def delete(self, path: str, doc_id: str) -> None:
        with _firestore_errors("delete", path):
            self.db.collection(path).document(doc_id).delete()

    def query(
        self,
        path: str,
        *,
        where: Optional[Where] = None,
        order_by: Optional[str] = None,
        descending: bool = True,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Run a filtered query; `where` holds (field, op, value) triples."""
        with _firestore_errors("query", path):
            q = self.db.collection(path)
            for field, op, value in where or ():
                q = q.where(filter=FieldFilter(field, op, value))
            if order_by:
                direction = firestore.Query.DESCENDING if descending else firestore.Query.ASCENDING
                q = q.order_by(order_by, direction=direction)
            if limit is not None:
                q = q.limit(int(limit))
            return [d for d in (_doc_to_dict(s) for s in q.stream()) if d is not None]

    def update_many(self, path: str, doc_ids: Iterable[str], data: Dict[str, Any]) -> int:
        """Apply the same partial update to several documents in batched writes."""
        ids = [str(i) for i in doc_ids if i]
        if not ids:
            return 0
        with _firestore_errors("batch_update", path):
            col = self.db.collection(path)
            for start in range(0, len(ids), MAX_BATCH_WRITES):
                batch = self.db.batch()
                for doc_id in ids[start : start + MAX_BATCH_WRITES]:
                    batch.update(col.document(doc_id), dict(data))
                batch.commit()
        return len(ids)

    def ping(self) -> bool:
        with _firestore_errors("ping", "requests"):
            list(self.db.collection("requests").limit(1).stream())
        return True
