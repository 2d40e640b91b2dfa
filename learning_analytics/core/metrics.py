"""Prometheus metric inventory.

Every metric the service exports is declared here; the modules that own
the behaviour import and update them.  Counters only go up, so tests
assert on deltas (see tests/middleware/test_metrics.py).
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# HTTP metrics (MetricsMiddleware)
# ---------------------------------------------------------------------------

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests by method, route template, and status code",
    ["method", "endpoint", "status_code"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    # Dashboard reads fan out to the catalog; 2s is the catalog timeout
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

# ---------------------------------------------------------------------------
# Engine metrics
# ---------------------------------------------------------------------------

COMPLETIONS_RECORDED = Counter(
    "completions_recorded_total",
    "recordCompletion calls by outcome",
    ["outcome"],  # created|merged|rejected|busy
)

LEDGER_CAS_RETRIES = Counter(
    "ledger_cas_retries_total",
    "Compare-and-set conflicts on the completion ledger that were retried",
)

DANGLING_REFERENCES = Counter(
    "dangling_references_total",
    "Catalog references that could not be resolved",
    ["entity_type"],  # lesson|module|course|enrollment
)

HIERARCHY_CACHE_OPERATIONS = Counter(
    "hierarchy_cache_operations_total",
    "Hierarchy resolver lookups by cache result",
    ["result"],  # hit|miss
)

CATALOG_LOOKUP_FAILURES = Counter(
    "catalog_lookup_failures_total",
    "Catalog lookups that degraded to unresolvable",
    ["reason"],  # timeout|error
)

CACHE_OPERATIONS = Counter(
    "cache_operations_total",
    "Derived read-model cache lookups by result",
    ["operation"],  # hit|miss|error
)
