"""
Prometheus Metrics for the Sentence API - Observability instrumentation.

RESPONSIBILITY:
    Define and expose metrics for monitoring request volume, cache
    effectiveness and database load. Scraped from GET /metrics.

WHAT THE CACHE METRICS ANSWER:
    - sentence_cache_lookups_total{result="hit"} vs {result="miss"}: hit rate
    - sentence_store_queries_total: how much load reaches the database
    - sentence_cache_errors_total: Redis faults that were downgraded to misses

CARDINALITY:
    Labels stay low-cardinality. Sentence ids are never used as label values.
"""

from prometheus_client import Counter, Histogram, REGISTRY
import logging

logger = logging.getLogger(__name__)


# =============================================================================
# RED METRICS (Rate, Errors, Duration)
# =============================================================================

sentence_requests_total = Counter(
    "sentence_requests_total",
    "Total HTTP requests to the Sentence API",
    labelnames=["endpoint", "status"],
)

sentence_request_duration_seconds = Histogram(
    "sentence_request_duration_seconds",
    "HTTP request latency in seconds",
    labelnames=["endpoint"],
    buckets=[
        0.005,  # 5ms - all cache hits
        0.01,
        0.025,
        0.05,   # partial hits + one database round-trip
        0.1,
        0.25,
        0.5,
        1.0,
        2.5,
        float("inf")
    ]
)


# =============================================================================
# CACHE METRICS
# =============================================================================

# One increment per id looked up, not per request
sentence_cache_lookups_total = Counter(
    "sentence_cache_lookups_total",
    "Cache lookups per sentence id by result",
    labelnames=["result"],
)

sentence_cache_errors_total = Counter(
    "sentence_cache_errors_total",
    "Redis operations that failed and were treated as misses",
    labelnames=["operation"],
)


# =============================================================================
# STORE METRICS
# =============================================================================

sentence_store_queries_total = Counter(
    "sentence_store_queries_total",
    "Database queries issued by the repositories",
    labelnames=["operation"],
)

sentence_rate_limited_total = Counter(
    "sentence_rate_limited_total",
    "Requests rejected by the rate limiter",
)


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def record_request(endpoint: str, status: int, duration_seconds: float) -> None:
    """
    Record request metrics (counter + duration histogram).

    Called from middleware after each request completes.
    """
    sentence_requests_total.labels(endpoint=endpoint, status=str(status)).inc()
    sentence_request_duration_seconds.labels(endpoint=endpoint).observe(duration_seconds)


def record_cache_lookup(result: str, count: int = 1) -> None:
    """
    Record cache hits or misses.

    Args:
        result: "hit" or "miss"
        count: number of ids with this result
    """
    if result not in ["hit", "miss"]:
        logger.warning(f"Invalid cache lookup result: {result}")
        return
    if count > 0:
        sentence_cache_lookups_total.labels(result=result).inc(count)


def record_cache_error(operation: str) -> None:
    """Record a Redis failure for get, set or multi_get."""
    sentence_cache_errors_total.labels(operation=operation).inc()


def record_store_query(operation: str) -> None:
    """Record one database query by repository method name."""
    sentence_store_queries_total.labels(operation=operation).inc()


def record_rate_limited() -> None:
    sentence_rate_limited_total.inc()


def cache_summary() -> dict:
    """Current hit/miss/error totals, read back from the counters."""
    hits = sentence_cache_lookups_total.labels(result="hit")._value.get()
    misses = sentence_cache_lookups_total.labels(result="miss")._value.get()
    errors = sum(
        sentence_cache_errors_total.labels(operation=op)._value.get()
        for op in ("get", "set", "multi_get")
    )
    total = hits + misses
    hit_rate = (hits / total * 100) if total > 0 else 0
    return {
        "cache_hits": int(hits),
        "cache_misses": int(misses),
        "hit_rate_percent": round(hit_rate, 2),
        "cache_errors": int(errors),
    }


__all__ = [
    "sentence_requests_total",
    "sentence_request_duration_seconds",
    "sentence_cache_lookups_total",
    "sentence_cache_errors_total",
    "sentence_store_queries_total",
    "sentence_rate_limited_total",
    "record_request",
    "record_cache_lookup",
    "record_cache_error",
    "record_store_query",
    "record_rate_limited",
    "cache_summary",
    "REGISTRY",
]
