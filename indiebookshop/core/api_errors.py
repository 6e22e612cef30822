"""
Errors raised by clients of the directory read API.

The API answers failures in two shapes: FastAPI's {"detail": ...} (a
string, or a list of field errors for 422) and the rate limiter's
{"message": ...} with Retry-After / X-RateLimit-* headers. A 404 means
the bookshop is absent or not live; the two are indistinguishable.

`retryable` drives BaseAPIClient's retry loop. Anything that escapes the
loop is caught by the directory controller and becomes an Error state.
"""
import json
from typing import Any, Mapping, Optional


class APIError(Exception):
    """
    Base exception for directory API failures.

    Attributes:
        message: Human-readable description (shown in logs, not to users)
        status_code: HTTP status, None for transport or payload failures
        retryable: Whether BaseAPIClient should try again
    """

    retryable = False

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    def __str__(self) -> str:
        if self.status_code:
            return f"{self.message} (HTTP {self.status_code})"
        return self.message


class RetryableError(APIError):
    """5xx, timeout or dropped connection."""
    retryable = True


class RateLimitError(APIError):
    """
    429 from the API's per-client rate limiter.

    retry_after comes from the Retry-After header (seconds); limit is the
    window's request budget from X-RateLimit-Limit when sent.
    """

    retryable = True
    DEFAULT_RETRY_AFTER = 60

    def __init__(self, message: str, retry_after: Optional[int] = None, limit: Optional[int] = None):
        super().__init__(message, status_code=429)
        self.retry_after = retry_after if retry_after is not None else self.DEFAULT_RETRY_AFTER
        self.limit = limit


class FatalError(APIError):
    """Any failure that another attempt will not fix."""


class AuthenticationError(FatalError):
    """401/403: a proxy in front of the API refused the request."""


class NotFoundError(FatalError):
    """The bookshop (or its events) is absent or not live."""

    def __init__(self, message: str = "Not listed", resource: Optional[str] = None):
        if resource:
            message = f"{resource}: {message}"
        super().__init__(message, status_code=404)
        self.resource = resource


class ValidationError(FatalError):
    """
    Rejected parameters (400/422), or a 2xx payload that does not match
    the expected view model.
    """


class ConfigurationError(FatalError):
    """The client itself is misconfigured (e.g. no base URL)."""


def _header_int(headers: Optional[Mapping[str, str]], name: str) -> Optional[int]:
    value = (headers or {}).get(name)
    if value is None:
        return None
    value = str(value).strip()
    return int(value) if value.isascii() and value.isdigit() else None


def error_message(body: str) -> str:
    """
    Pull the human-readable part out of an error body.

    422 field errors are joined as "loc: msg"; non-JSON bodies are
    returned trimmed.
    """
    try:
        data: Any = json.loads(body) if body else None
    except ValueError:
        return body.strip()[:200]

    if isinstance(data, dict):
        detail = data.get("detail", data.get("message"))
        if isinstance(detail, list):
            parts = []
            for item in detail:
                if isinstance(item, dict):
                    loc = ".".join(str(p) for p in item.get("loc", []) if p != "query")
                    parts.append(f"{loc}: {item.get('msg', '')}" if loc else str(item.get("msg", "")))
                else:
                    parts.append(str(item))
            return "; ".join(parts)
        if detail is not None:
            return str(detail)
    return body.strip()[:200]


def classify_http_error(
    status_code: int,
    body: str = "",
    headers: Optional[Mapping[str, str]] = None,
    resource: Optional[str] = None,
) -> APIError:
    """
    Map a non-2xx directory API response onto the error hierarchy.

    Args:
        status_code: HTTP status code
        body: Response body text
        headers: Response headers (Retry-After and X-RateLimit-Limit are read for 429)
        resource: What was being fetched, e.g. "bookshop 42"

    Returns:
        APIError subclass instance
    """
    message = error_message(body)
    if status_code == 429:
        return RateLimitError(
            message or "Too many requests",
            retry_after=_header_int(headers, "Retry-After"),
            limit=_header_int(headers, "X-RateLimit-Limit"),
        )
    if status_code == 404:
        return NotFoundError(message or "Not listed", resource=resource)
    if status_code in (401, 403):
        return AuthenticationError(message or "Access denied", status_code=status_code)
    if status_code in (400, 422):
        return ValidationError(message or "Invalid parameters", status_code=status_code)
    if 500 <= status_code < 600:
        return RetryableError(message or "Server error", status_code=status_code)
    return FatalError(message or f"Unexpected status {status_code}", status_code=status_code)
