from __future__ import annotations

import sys
from collections.abc import Iterator
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from redis.exceptions import ConnectionError as RedisConnectionError

from learning_analytics.core.config import EngineConfig
from learning_analytics.main import app
from learning_analytics.repos.badge_repo import InMemoryBadgeRepo
from learning_analytics.repos.completion_repo import InMemoryCompletionRepo
from learning_analytics.services import engine, token_service
from learning_analytics.services.analytics_facade import AnalyticsFacade
from learning_analytics.services.cache import cache_service
from learning_analytics.services.catalog_client import InMemoryCatalog
from learning_analytics.services.completion_ledger import CompletionLedger
from learning_analytics.services.engine import get_facade
from learning_analytics.services.gamification import GamificationEngine
from learning_analytics.services.hierarchy import HierarchyResolver

# Ensure repo root is on sys.path so `import learning_analytics` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Fixed "now" for every test that cares about days.
NOW = datetime(2026, 3, 15, 12, 0, tzinfo=UTC)


@pytest.fixture(autouse=True)
def reset_engine_state() -> None:
    """Clear the module-level ledger, badges, catalog and hierarchy cache."""
    engine.completion_repo._store.clear()  # type: ignore[union-attr]
    engine.badge_repo._store.clear()  # type: ignore[union-attr]
    engine.catalog.clear()  # type: ignore[union-attr]
    engine.resolver.clear()


@pytest.fixture(autouse=True)
def reset_cache() -> None:
    """Clear cache between tests."""
    if hasattr(cache_service, "_store"):
        cache_service._store.clear()  # type: ignore[union-attr]


@pytest.fixture
def client() -> Iterator[TestClient]:
    """TestClient whose facade clock is pinned to NOW."""
    frozen = AnalyticsFacade(
        ledger=engine.facade.ledger,
        resolver=engine.resolver,
        gamification=engine.facade.gamification,
        config=engine.facade.config,
        clock=lambda: NOW,
    )
    app.dependency_overrides[get_facade] = lambda: frozen
    yield TestClient(app)
    app.dependency_overrides.pop(get_facade, None)


@pytest.fixture
def catalog() -> InMemoryCatalog:
    """The catalog the running app reads, seeded with the standard courses."""
    seed_catalog(engine.catalog)  # type: ignore[arg-type]
    return engine.catalog  # type: ignore[return-value]


def mint_token(
    username: str = "student-1",
    roles: list[str] | None = None,
) -> str:
    """Create a valid ES256 JWT for testing."""
    return token_service.create_access_token(sub=username, roles=roles)


def auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def token() -> str:
    """Token with default role (student)."""
    return mint_token()


@pytest.fixture
def staff_token() -> str:
    """Token with instructor role."""
    return mint_token(username="instructor-1", roles=["instructor"])


# ---------------------------------------------------------------------------
# Engine test helpers
# ---------------------------------------------------------------------------


def seed_catalog(catalog: InMemoryCatalog) -> InMemoryCatalog:
    """Three courses in three categories.

    py-101 (programming): m-py-1 [py-l1, py-l2], m-py-2 [py-l3, py-l4]
    ds-201 (data):        m-ds-1 [ds-l1 .. ds-l5]
    ux-101 (design):      m-ux-1 [ux-l1]
    """
    catalog.add_course(
        "py-101",
        title="Python Basics",
        category="programming",
        modules={"m-py-1": ["py-l1", "py-l2"], "m-py-2": ["py-l3", "py-l4"]},
    )
    catalog.add_course(
        "ds-201",
        title="Data Science",
        category="data",
        modules={"m-ds-1": [f"ds-l{i}" for i in range(1, 6)]},
    )
    catalog.add_course(
        "ux-101",
        title="UX Foundations",
        category="design",
        modules={"m-ux-1": ["ux-l1"]},
    )
    return catalog


def enroll(
    catalog: InMemoryCatalog,
    student_id: str,
    course_id: str,
    *,
    days_ago: int = 10,
    target_duration_days: int = 20,
) -> None:
    catalog.enroll(
        student_id,
        course_id,
        enrolled_at=NOW - timedelta(days=days_ago),
        target_duration_days=target_duration_days,
    )


def make_facade(
    catalog: InMemoryCatalog | None = None,
    *,
    config: EngineConfig | None = None,
    now: datetime = NOW,
) -> AnalyticsFacade:
    """A self-contained facade over in-memory stores, clock pinned to ``now``."""
    catalog = catalog if catalog is not None else seed_catalog(InMemoryCatalog())
    config = config or EngineConfig()
    resolver = HierarchyResolver(catalog)
    return AnalyticsFacade(
        ledger=CompletionLedger(InMemoryCompletionRepo(), resolver),
        resolver=resolver,
        gamification=GamificationEngine(InMemoryBadgeRepo(), config),
        config=config,
        clock=lambda: now,
    )


class UnreachableCache:
    """Cache backend whose every call fails the way redis-py does when Redis is down."""

    async def get(self, key: str) -> str | None:
        raise RedisConnectionError("Connection refused")

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        raise RedisConnectionError("Connection refused")

    async def incr(self, key: str, ttl_seconds: int) -> int:
        raise RedisConnectionError("Connection refused")

    async def delete(self, key: str) -> None:
        raise RedisConnectionError("Connection refused")

    async def delete_pattern(self, pattern: str) -> None:
        raise RedisConnectionError("Connection refused")
