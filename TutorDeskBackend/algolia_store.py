from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from algoliasearch.search.client import SearchClientSync

from shared.config import BackendConfig, load_backend_config
from shared.exceptions import ExternalServiceError


logger = logging.getLogger("tutordesk_backend.algolia")


class AlgoliaStore:
    """Read-only access to the Algolia indices mirrored from Firestore."""

    def __init__(self, cfg: Optional[BackendConfig] = None, *, client: Any = None):
        self.cfg = cfg or load_backend_config()
        self._client = client

    def enabled(self) -> bool:
        return self._client is not None or self.cfg.algolia_enabled

    @property
    def client(self) -> SearchClientSync:
        if self._client is None:
            if not self.cfg.algolia_enabled:
                raise ExternalServiceError("Algolia is not configured")
            self._client = SearchClientSync(str(self.cfg.algolia_app_id).strip(), str(self.cfg.algolia_api_key).strip())
        return self._client

    def search(
        self,
        index_name: str,
        *,
        query: str = "",
        page: int = 0,
        hits_per_page: int = 20,
        filters: str = "",
        attributes: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        """
        Search one index. `page` is 0-based as Algolia expects.

        Returns the raw response dict (hits, nbHits, page, nbPages).
        """
        params: Dict[str, Any] = {
            "query": query or "",
            "page": max(0, int(page)),
            "hitsPerPage": int(hits_per_page),
        }
        if filters:
            params["filters"] = filters
        if attributes:
            params["attributesToRetrieve"] = list(attributes)

        try:
            resp = self.client.search_single_index(index_name=index_name, search_params=params)
        except ExternalServiceError:
            raise
        except Exception as e:
            logger.warning("algolia_search_failed index=%s error=%s", index_name, e, extra={"index": index_name})
            raise ExternalServiceError(f"Algolia search failed: {e}") from e

        data = resp.to_dict() if hasattr(resp, "to_dict") else dict(resp)
        return {
            "hits": list(data.get("hits") or []),
            "nbHits": int(data.get("nbHits") or 0),
            "page": int(data.get("page") or 0),
            "nbPages": int(data.get("nbPages") or 0),
        }

    def ping(self) -> bool:
        try:
            self.client.list_indices()
        except ExternalServiceError:
            raise
        except Exception as e:
            raise ExternalServiceError(f"Algolia unreachable: {e}") from e
        return True
