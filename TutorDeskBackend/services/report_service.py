"""
Read-only reports: issue reports on single requests and the cached dashboard.
"""
import logging
from typing import Any, Dict, List, Optional, Set

from TutorDeskBackend.firestore_store import FirestoreStore
from TutorDeskBackend.services.cache_service import CacheService
from TutorDeskBackend.services.dashboard_report import OPEN_STATUSES, build_dashboard_report
from TutorDeskBackend.services.offers_service import REQUESTS, offers_path
from TutorDeskBackend.utils.time_utils import utc_now
from shared.exceptions import NotFoundError

logger = logging.getLogger("tutordesk_backend.reports")


class ReportService:
    def __init__(self, db: FirestoreStore, cache: CacheService, *, cache_ttl_s: int = 60):
        self.db = db
        self.cache = cache
        self.cache_ttl_s = cache_ttl_s

    def request_report(self, request_id: str) -> Dict[str, Any]:
        request = self.db.get(REQUESTS, request_id)
        if request is None:
            raise NotFoundError("Request not found")
        if str(request.get("issue_reported") or "") != "1":
            raise NotFoundError("No issue reported for this request")
        return {"report": request.get("report")}

    def _open_requests_with_offers(self, requests: List[Dict[str, Any]]) -> Set[str]:
        with_offers: Set[str] = set()
        for r in requests:
            if r.get("deleted_at") is not None:
                continue
            if str(r.get("request_status") or "").strip().lower() not in OPEN_STATUSES:
                continue
            if self.db.query(offers_path(r["id"]), limit=1):
                with_offers.add(r["id"])
        return with_offers

    async def dashboard(self, year: Optional[int] = None) -> Dict[str, Any]:
        now = utc_now()
        year = int(year or now.year)
        key = self.cache.cache_key("/api/reports/dashboard", [("year", str(year))], namespace="dashboard")

        cached = await self.cache.get_cached(key)
        if cached is not None:
            return {**cached, "cached": True}

        requests = self.db.query(REQUESTS)
        students = self.db.query("students")
        tutors = self.db.query("tutors")
        report = build_dashboard_report(
            requests,
            students,
            tutors,
            year=year,
            now=now,
            requests_with_offers=self._open_requests_with_offers(requests),
        )
        logger.info(
            "dashboard_report_built",
            extra={"context": f"year={year} requests={len(requests)} students={len(students)} tutors={len(tutors)}"},
        )

        await self.cache.set_cached(key, report, self.cache_ttl_s)
        return {**report, "cached": False}
