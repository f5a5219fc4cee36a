"""
Sentence API: random and by-id sentence lookups behind a Redis cache.
"""

import logging
import os
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from dotenv import load_dotenv
from fastapi import FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from redis.exceptions import RedisError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import Response

load_dotenv()

from cache_redis import SentenceCache
from db import create_engine, create_session_factory
from exceptions import ErrorCode, RateLimitExceededError, SentenceApiError
from models import ErrorResponse, HealthResponse, MetricsResponse, SentenceDto
from random_ids import RandomIdGenerator
from rate_limiter import FixedWindowRateLimiter
from repositories import CategoryRepository, SentenceRepository
from sentence_service import SentenceService
from validation import Threshold
import metrics  # Prometheus instrumentation

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)

VERSION = "0.1.0"
PUBLIC_PATHS = {"/", "/health", "/metrics", "/docs", "/openapi.json", "/redoc"}

# Initialized during startup; routes read them at request time
cache: SentenceCache = None
sentence_service: SentenceService = None
rate_limiter: FixedWindowRateLimiter = None
engine = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: connect Redis and the database, build the service. Shutdown: release both."""
    global cache, sentence_service, rate_limiter, engine

    try:
        ttl_minutes = int(os.getenv("CACHE_DURATION_MINUTES", str(int(Threshold.CACHE_DURATION_MINUTE))))
        cache = SentenceCache(redis_url=None, ttl_minutes=ttl_minutes)
        try:
            await cache.connect()
        except (RedisError, OSError) as e:
            # The client stays in place and reconnects on its own once Redis is back
            logger.warning(f"Redis unavailable at startup, serving from the database: {e}")

        engine = create_engine()
        session_factory = create_session_factory(engine)
        sentence_repository = SentenceRepository(session_factory)
        category_repository = CategoryRepository(session_factory)

        max_id = await sentence_repository.find_max_id()
        logger.info(f"Database reachable, highest sentence id {max_id}")

        sentence_service = SentenceService(
            cache=cache,
            sentence_repository=sentence_repository,
            category_repository=category_repository,
            random_id_generator=RandomIdGenerator(sentence_repository.find_max_id),
        )

        rate_limiter = FixedWindowRateLimiter(
            redis_client=cache.client,
            max_requests=int(os.getenv("RATE_LIMIT_REQUESTS", "100")),
            window_seconds=int(os.getenv("RATE_LIMIT_WINDOW", "60"))
        )

        logger.info(f"Sentence API started (cache TTL {ttl_minutes}m)")
    except (OSError, ValueError, SentenceApiError) as e:
        logger.error(f"Startup failed: {e}")
        raise

    yield

    logger.info("Shutting down...")
    if engine is not None:
        await engine.dispose()
    await cache.disconnect()
    logger.info("Sentence API shut down")


app = FastAPI(
    title="Sentence API",
    description="Random sentences by language or category, cached in Redis",
    version=VERSION,
    lifespan=lifespan,
)


def error_response(error_code: ErrorCode, headers: dict | None = None) -> JSONResponse:
    body = ErrorResponse(http_status=error_code.http_status, error_msg=error_code.error_msg)
    return JSONResponse(status_code=error_code.http_status, content=body.model_dump(), headers=headers)


@app.middleware("http")
async def rate_limit_requests(request: Request, call_next):
    """Enforce the per-client request window on every non-public path."""
    if rate_limiter is None or request.url.path in PUBLIC_PATHS:
        return await call_next(request)

    client_key = request.client.host if request.client else "anonymous"
    allowed, info = await rate_limiter.check_rate_limit(client_key)
    if not allowed:
        metrics.record_rate_limited()
        exc = RateLimitExceededError()
        logger.warning(f"Rate limit exceeded for {client_key}: {exc}")
        retry_after = max(0, info["reset_at"] - int(time.time()))
        return error_response(exc.error_code, headers={"Retry-After": str(retry_after)})

    response = await call_next(request)
    response.headers["X-RateLimit-Limit"] = str(info["limit"])
    response.headers["X-RateLimit-Remaining"] = str(info["remaining"])
    return response


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log request method, path, and response latency; record request metrics."""
    start_time = time.time()
    endpoint = request.url.path

    logger.info(f"→ {request.method} {endpoint}")
    # Unhandled exceptions propagate through call_next and become a 500 outside this middleware
    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
        return response
    finally:
        latency_seconds = time.time() - start_time
        logger.info(f"← {status_code} | {latency_seconds * 1000:.1f}ms")

        # Label by route template (/api/v1/sentences/{sentence_id}), not raw path
        route = request.scope.get("route")
        metrics.record_request(
            endpoint=getattr(route, "path", endpoint),
            status=status_code,
            duration_seconds=latency_seconds
        )


# EXCEPTION HANDLERS: Map service exceptions to HTTP status codes

@app.exception_handler(SentenceApiError)
async def sentence_api_error_handler(request: Request, exc: SentenceApiError):
    """Domain errors carry their own ErrorCode."""
    if exc.error_code.http_status >= 500:
        logger.error(f"{type(exc).__name__}: {exc}", exc_info=exc)
    else:
        logger.info(f"{type(exc).__name__}: {exc}")
    return error_response(exc.error_code)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed path or query parameters (e.g. count=abc)."""
    logger.info(f"Request validation failed: {exc.errors()}")
    return error_response(ErrorCode.METHOD_ARGUMENT_NOT_VALID)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404:
        return error_response(ErrorCode.NOT_FOUND)
    if exc.status_code == 405:
        return error_response(ErrorCode.METHOD_NOT_ALLOWED)
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(http_status=exc.status_code, error_msg=str(exc.detail)).model_dump()
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Unhandled exceptions (last resort). If these show up in logs, it's a bug."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return error_response(ErrorCode.INTERNAL_SERVER_ERROR)


@app.get("/", tags=["health"])
async def root() -> dict:
    """Connectivity check."""
    return {"message": "Sentence API is running", "timestamp": datetime.now(timezone.utc).isoformat()}


@app.get("/health", response_model=HealthResponse, tags=["health"])
async def health_check() -> HealthResponse:
    """Health check for load balancers."""
    return HealthResponse(status="healthy", version=VERSION)


# Random routes are registered before /{sentence_id} so "random" is not parsed as an id

@app.get("/api/v1/sentences/random", response_model=list[SentenceDto], tags=["sentences"])
async def random_sentences(count: int = Query(default=1)) -> list[SentenceDto]:
    """Random sentences from the whole collection."""
    return await sentence_service.get_random_sentences(count)


@app.get("/api/v1/sentences/random/language/{language}", response_model=list[SentenceDto], tags=["sentences"])
async def random_sentences_by_language(language: str, count: int = Query(default=1)) -> list[SentenceDto]:
    """Random sentences in one language. May return fewer than count."""
    return await sentence_service.get_random_sentences_by_language(language, count)


@app.get("/api/v1/sentences/random/sort/{sort}", response_model=list[SentenceDto], tags=["sentences"])
async def random_sentences_by_sort(sort: str, count: int = Query(default=1)) -> list[SentenceDto]:
    """Random sentences from one category sort. May return fewer than count."""
    return await sentence_service.get_random_sentences_by_category_sort(sort, count)


@app.get("/api/v1/sentences/{sentence_id}", response_model=SentenceDto, tags=["sentences"])
async def sentence_by_id(sentence_id: int) -> SentenceDto:
    return await sentence_service.get_sentence_by_id(sentence_id)


@app.get("/metrics", tags=["monitoring"])
async def prometheus_metrics() -> Response:
    """Prometheus metrics endpoint (text format, Prometheus scraping standard)."""
    return Response(
        content=generate_latest(metrics.REGISTRY),
        media_type=CONTENT_TYPE_LATEST
    )


@app.get("/v1/metrics", response_model=MetricsResponse, tags=["monitoring"])
async def metrics_json() -> MetricsResponse:
    """Cache statistics as JSON, for quick debugging."""
    stored_items = await cache.count_entries() if cache else 0
    return MetricsResponse(stored_items=stored_items, **metrics.cache_summary())


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000, log_level="info")
