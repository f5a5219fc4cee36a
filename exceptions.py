"""
Domain exceptions for the Sentence API service layer.

WHY THIS FILE EXISTS:
    Service layer is transport-agnostic (doesn't know about HTTP).
    API layer owns HTTP semantics (status codes, response body).

    Exceptions define the SERVICE/API BOUNDARY:
    - Service raises domain exceptions carrying an ErrorCode
    - API catches them and renders ErrorResponse with the code's status

CACHE FAULTS ARE NOT HERE:
    Redis errors never leave cache_redis.py. They are logged and turned into
    cache misses, so there is no exception type for them.
"""

from enum import Enum


class ErrorCode(Enum):
    """HTTP status and client-facing message for every error the API can return."""

    SENTENCE_NOT_FOUND = (404, "Sentence not found.")
    SORT_NOT_FOUND = (404, "Category sort not found.")
    LANGUAGE_NOT_FOUND = (404, "Language not found.")
    RANGE_OUT_OF_BOUND = (400, "Value is out of the allowed range.")

    SC_TOO_MANY_REQUESTS = (429, "Too many requests..")

    # 4xx: Client Errors
    NOT_FOUND = (404, "Not Found")
    METHOD_NOT_ALLOWED = (405, "Method Not Allowed")
    CONFLICT = (409, "Conflict")

    # 5xx: Server Errors
    INTERNAL_SERVER_ERROR = (500, "Internal Server Error")
    NOT_IMPLEMENTED = (501, "Not Implemented")
    BAD_GATEWAY = (502, "Bad Gateway")
    SERVICE_UNAVAILABLE = (503, "Service Unavailable")
    GATEWAY_TIMEOUT = (504, "Gateway Timeout")
    HTTP_VERSION_NOT_SUPPORTED = (505, "HTTP Version Not Supported")

    # validation Errors
    METHOD_ARGUMENT_NOT_VALID = (400, "Validation failed")

    def __init__(self, http_status: int, error_msg: str) -> None:
        self.http_status = http_status
        self.error_msg = error_msg


class SentenceApiError(Exception):
    """Base exception for all Sentence API domain errors."""

    error_code: ErrorCode = ErrorCode.INTERNAL_SERVER_ERROR

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.error_code.error_msg)


class SentenceNotFoundError(SentenceApiError):
    """
    Single-id lookup found nothing in cache or database.

    Maps to: 404 Not Found
    Batch lookups never raise this; unknown ids are dropped from the result.
    """

    error_code = ErrorCode.SENTENCE_NOT_FOUND


class LanguageNotFoundError(SentenceApiError):
    """Language filter is not one of the supported languages. Maps to: 404."""

    error_code = ErrorCode.LANGUAGE_NOT_FOUND


class SortNotFoundError(SentenceApiError):
    """Category sort filter is not recognized. Maps to: 404."""

    error_code = ErrorCode.SORT_NOT_FOUND


class RangeOutOfBoundError(SentenceApiError):
    """Requested count is outside [MIN_COUNT, MAX_COUNT]. Maps to: 400 Bad Request."""

    error_code = ErrorCode.RANGE_OUT_OF_BOUND


class StoreUnavailableError(SentenceApiError):
    """
    Database query failed (connection refused, timeout, SQL error).

    Maps to: 500 Internal Server Error
    Fatal for the request. Not retried.
    """

    error_code = ErrorCode.INTERNAL_SERVER_ERROR


class RateLimitExceededError(SentenceApiError):
    """
    Client exhausted its token bucket.

    Maps to: 429 Too Many Requests
    NOTE: Raised by the rate limiting middleware (API layer), not the service layer.
    """

    error_code = ErrorCode.SC_TOO_MANY_REQUESTS
