"""
Application context (dependency injection container) for TutorDeskBackend.

Routes depend on `get_app_context()` instead of module-level singletons, so
tests can swap the whole graph through `app.dependency_overrides`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache

from TutorDeskBackend.algolia_store import AlgoliaStore
from TutorDeskBackend.firestore_store import FirestoreStore
from TutorDeskBackend.redis_store import RedisStore
from TutorDeskBackend.sentry_init import setup_sentry
from TutorDeskBackend.services.auth_service import AuthService
from TutorDeskBackend.services.cache_service import CacheService
from TutorDeskBackend.services.chat_service import ChatService
from TutorDeskBackend.services.health_service import HealthService
from TutorDeskBackend.services.notifications_service import NotificationsService
from TutorDeskBackend.services.offers_service import OffersService
from TutorDeskBackend.services.people_service import PeopleService
from TutorDeskBackend.services.report_service import ReportService
from TutorDeskBackend.services.request_actions_service import RequestActionsService
from TutorDeskBackend.services.search_service import SearchService
from TutorDeskBackend.services.support_service import SupportService
from shared.config import BackendConfig, load_backend_config
from shared.logging_setup import setup_logging


@dataclass(frozen=True)
class AppContext:
    logger: logging.Logger
    cfg: BackendConfig
    db: FirestoreStore
    algolia: AlgoliaStore
    store: RedisStore
    auth_service: AuthService
    health_service: HealthService
    cache_service: CacheService
    offers_service: OffersService
    request_actions_service: RequestActionsService
    search_service: SearchService
    people_service: PeopleService
    support_service: SupportService
    notifications_service: NotificationsService
    report_service: ReportService


def build_app_context(
    cfg: BackendConfig,
    *,
    db: FirestoreStore,
    algolia: AlgoliaStore,
    store: RedisStore,
    logger: logging.Logger,
) -> AppContext:
    """Wire every service from already-constructed stores."""
    chat = ChatService(db, message_delay_s=cfg.chat_message_delay_seconds)
    offers_service = OffersService(db, chat, enforce_transitions=cfg.enforce_status_transitions)
    cache_service = CacheService(store)
    return AppContext(
        logger=logger,
        cfg=cfg,
        db=db,
        algolia=algolia,
        store=store,
        auth_service=AuthService(),
        health_service=HealthService(db, algolia, store),
        cache_service=cache_service,
        offers_service=offers_service,
        request_actions_service=RequestActionsService(
            db, offers_service, chat, enforce_transitions=cfg.enforce_status_transitions
        ),
        search_service=SearchService(db, algolia, cfg),
        people_service=PeopleService(db),
        support_service=SupportService(db),
        notifications_service=NotificationsService(db),
        report_service=ReportService(db, cache_service, cache_ttl_s=cfg.dashboard_cache_ttl_seconds),
    )


@lru_cache(maxsize=1)
def get_app_context() -> AppContext:
    setup_logging()
    logger = logging.getLogger("tutordesk_backend")
    setup_sentry(service_name="tutordesk-backend")

    cfg = load_backend_config()
    return build_app_context(
        cfg,
        db=FirestoreStore(cfg),
        algolia=AlgoliaStore(cfg),
        store=RedisStore(),
        logger=logger,
    )
