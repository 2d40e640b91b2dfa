from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]


def _getenv(name: str, default: str) -> str:
    return os.environ.get(name, default).strip()


def _getenv_float(name: str, default: str) -> float:
    raw = _getenv(name, default)
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number (got {raw!r})") from None


def _getenv_int(name: str, default: str) -> int:
    raw = _getenv(name, default)
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer (got {raw!r})") from None


@dataclass(frozen=True, slots=True)
class EngineConfig:
    """Tunables of the analytics engine.

    Kept apart from Settings so the engine services take plain values and
    tests can build their own without touching the environment.
    """

    pacing_ahead_threshold: float = 5.0
    pacing_behind_threshold: float = 5.0
    level_base_points: int = 100
    level_multiplier: float = 1.5
    lesson_points: int = 10
    quiz_pass_points: int = 20
    quiz_pass_score: float = 70.0


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    log_json: bool
    port: int
    database_url: str | None
    redis_url: str | None
    catalog_url: str | None = None
    catalog_timeout_seconds: float = 2.0
    hierarchy_cache_ttl_seconds: float = 300.0
    hierarchy_negative_ttl_seconds: float = 30.0
    hierarchy_cache_max_entries: int = 10_000
    analytics_cache_ttl_seconds: int = 60
    ledger_max_retries: int = 8
    auth_public_key_pem: str | None = None
    engine: EngineConfig = EngineConfig()

    @property
    def is_dev(self) -> bool:
        return self.app_env == "dev"

    @property
    def is_test(self) -> bool:
        return self.app_env == "test"

    @property
    def is_prod(self) -> bool:
        return self.app_env == "prod"


def load_engine_config() -> EngineConfig:
    ahead = _getenv_float("PACING_AHEAD_THRESHOLD", "5")
    behind = _getenv_float("PACING_BEHIND_THRESHOLD", "5")
    if ahead < 0 or behind < 0:
        raise ValueError(
            f"pacing thresholds must be >= 0 (got ahead={ahead}, behind={behind})"
        )

    base_points = _getenv_int("LEVEL_BASE_POINTS", "100")
    if base_points <= 0:
        raise ValueError(f"LEVEL_BASE_POINTS must be > 0 (got {base_points})")

    multiplier = _getenv_float("LEVEL_MULTIPLIER", "1.5")
    if multiplier < 1:
        raise ValueError(f"LEVEL_MULTIPLIER must be >= 1 (got {multiplier})")

    quiz_pass_score = _getenv_float("QUIZ_PASS_SCORE", "70")
    if not 0 <= quiz_pass_score <= 100:
        raise ValueError(f"QUIZ_PASS_SCORE must be 0-100 (got {quiz_pass_score})")

    return EngineConfig(
        pacing_ahead_threshold=ahead,
        pacing_behind_threshold=behind,
        level_base_points=base_points,
        level_multiplier=multiplier,
        lesson_points=_getenv_int("LESSON_POINTS", "10"),
        quiz_pass_points=_getenv_int("QUIZ_PASS_POINTS", "20"),
        quiz_pass_score=quiz_pass_score,
    )


def load_settings() -> Settings:
    app_env_raw = _getenv("APP_ENV", "dev").lower()
    log_level_raw = _getenv("LOG_LEVEL", "info").lower()
    log_json_raw = _getenv("LOG_JSON", "false").lower()

    if app_env_raw not in ("dev", "test", "prod"):
        raise ValueError(f"APP_ENV must be dev|test|prod (got {app_env_raw!r})")

    if log_level_raw not in ("debug", "info", "warning", "error"):
        raise ValueError(
            f"LOG_LEVEL must be debug|info|warning|error (got {log_level_raw!r})"
        )

    if log_json_raw not in ("true", "false", "1", "0"):
        raise ValueError(f"LOG_JSON must be true|false (got {log_json_raw!r})")

    port = _getenv_int("PORT", "8000")

    catalog_timeout = _getenv_float("CATALOG_TIMEOUT_SECONDS", "2.0")
    if catalog_timeout <= 0:
        raise ValueError(
            f"CATALOG_TIMEOUT_SECONDS must be > 0 (got {catalog_timeout})"
        )

    hierarchy_max_entries = _getenv_int("HIERARCHY_CACHE_MAX_ENTRIES", "10000")
    if hierarchy_max_entries < 1:
        raise ValueError(
            f"HIERARCHY_CACHE_MAX_ENTRIES must be >= 1 (got {hierarchy_max_entries})"
        )

    ledger_max_retries = _getenv_int("LEDGER_MAX_RETRIES", "8")
    if ledger_max_retries < 1:
        raise ValueError(f"LEDGER_MAX_RETRIES must be >= 1 (got {ledger_max_retries})")

    # PEM blocks are multi-line; env files usually carry them with literal \n
    public_key_pem = _getenv("AUTH_PUBLIC_KEY_PEM", "").replace("\\n", "\n") or None

    return Settings(  # type: ignore[arg-type]
        app_env=app_env_raw,
        log_level=log_level_raw,
        log_json=log_json_raw in ("true", "1"),
        port=port,
        database_url=_getenv("DATABASE_URL", "") or None,
        redis_url=_getenv("REDIS_URL", "") or None,
        catalog_url=_getenv("CATALOG_URL", "") or None,
        catalog_timeout_seconds=catalog_timeout,
        hierarchy_cache_ttl_seconds=_getenv_float("HIERARCHY_CACHE_TTL_SECONDS", "300"),
        hierarchy_negative_ttl_seconds=_getenv_float(
            "HIERARCHY_NEGATIVE_TTL_SECONDS", "30"
        ),
        hierarchy_cache_max_entries=hierarchy_max_entries,
        analytics_cache_ttl_seconds=_getenv_int("ANALYTICS_CACHE_TTL_SECONDS", "60"),
        ledger_max_retries=ledger_max_retries,
        auth_public_key_pem=public_key_pem,
        engine=load_engine_config(),
    )


SETTINGS = load_settings()
