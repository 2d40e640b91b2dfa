"""Module-level wiring of the analytics engine.

Same conditional pattern as db/engine.py and services/cache.py: whatever
is configured gets the real implementation, everything else falls back
to an in-process one.

  DATABASE_URL set -> Pg repos       else in-memory repos
  CATALOG_URL set  -> HTTP catalog   else seedable InMemoryCatalog

Routes reach the facade through get_facade(), so tests can swap in one
with a fixed clock via app.dependency_overrides.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from learning_analytics.core.config import SETTINGS
from learning_analytics.db.engine import async_session_factory
from learning_analytics.repos.badge_repo import BadgeRepo, InMemoryBadgeRepo
from learning_analytics.repos.completion_repo import CompletionRepo, InMemoryCompletionRepo
from learning_analytics.repos.pg_badge_repo import PgBadgeRepo
from learning_analytics.repos.pg_completion_repo import PgCompletionRepo
from learning_analytics.services.analytics_facade import AnalyticsFacade
from learning_analytics.services.catalog_client import (
    CatalogClient,
    HttpCatalogClient,
    InMemoryCatalog,
)
from learning_analytics.services.completion_ledger import CompletionLedger
from learning_analytics.services.gamification import GamificationEngine
from learning_analytics.services.hierarchy import HierarchyResolver

logger = logging.getLogger(__name__)

if async_session_factory is not None:
    completion_repo: CompletionRepo = PgCompletionRepo(async_session_factory)
    badge_repo: BadgeRepo = PgBadgeRepo(async_session_factory)
else:
    completion_repo = InMemoryCompletionRepo()
    badge_repo = InMemoryBadgeRepo()

if SETTINGS.catalog_url:
    catalog: CatalogClient = HttpCatalogClient(
        SETTINGS.catalog_url, timeout_seconds=SETTINGS.catalog_timeout_seconds
    )
else:
    catalog = InMemoryCatalog()

resolver = HierarchyResolver(
    catalog,
    ttl_seconds=SETTINGS.hierarchy_cache_ttl_seconds,
    negative_ttl_seconds=SETTINGS.hierarchy_negative_ttl_seconds,
    max_entries=SETTINGS.hierarchy_cache_max_entries,
    timeout_seconds=SETTINGS.catalog_timeout_seconds,
)

facade = AnalyticsFacade(
    ledger=CompletionLedger(
        completion_repo, resolver, max_retries=SETTINGS.ledger_max_retries
    ),
    resolver=resolver,
    gamification=GamificationEngine(badge_repo, SETTINGS.engine),
    config=SETTINGS.engine,
)


def get_facade() -> AnalyticsFacade:
    return facade


def catalog_mode() -> str:
    return "http" if isinstance(catalog, HttpCatalogClient) else "in_memory"


@asynccontextmanager
async def lifespan_catalog():
    """Closes the HTTP catalog client's connection pool on shutdown."""
    logger.info("Catalog client: %s", catalog_mode())
    yield
    if isinstance(catalog, HttpCatalogClient):
        await catalog.aclose()
        logger.info("Catalog client closed")
