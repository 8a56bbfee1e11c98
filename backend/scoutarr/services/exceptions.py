"""
Typed Exception Hierarchy for Scoutarr

This module defines the errors raised by the search pipeline. Every error
carries a stable ``error_type`` code so callers (the multi-indexer
orchestrator, a UI, a job runner) can branch on the failure kind without
parsing messages.

Exception Hierarchy:
    IndexerError (base)
    ├── ConfigurationError                    configuration_error
    │   └── DefinitionValidationError
    ├── NetworkRetryableError (retryable)     network_error
    │   ├── ConnectionFailedError             connection_failed
    │   └── RequestTimeoutError               timeout
    ├── AuthenticationFailedError             authentication_failed
    ├── RateLimitedError (retryable)          rate_limited
    │   └── RateLimitExceeded                 (local rate limiter timeout)
    ├── SearchFailedError                     search_failed
    │   ├── PathNotFoundError                 path_not_found
    │   └── InvalidPathError                  invalid_path
    └── InvalidRegexError                     invalid_regex

The pipeline itself never retries. The @retry_on_network_error decorator is
offered to callers that want exponential backoff over retryable errors.
"""

import asyncio
import functools
import inspect
import logging
import time
from typing import Callable, Optional, Tuple, TypeVar, ParamSpec

from scoutarr.config import config

logger = logging.getLogger(__name__)

# Type variables for generic decorator typing
P = ParamSpec('P')
T = TypeVar('T')


# ============================================================================
# Exception Hierarchy
# ============================================================================

class IndexerError(Exception):
    """
    Base exception for all search pipeline errors.

    Attributes:
        message: Human-readable error description
        status_code: HTTP status code if the error came from a response
        response_data: Raw response excerpt for debugging
    """

    error_type = "indexer_error"

    def __init__(self, message: str, status_code: Optional[int] = None, response_data: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.response_data = response_data

    def __str__(self) -> str:
        if self.status_code:
            return f"{self.__class__.__name__} (HTTP {self.status_code}): {self.message}"
        return f"{self.__class__.__name__}: {self.message}"


class ConfigurationError(IndexerError):
    """
    The indexer definition cannot drive a search (missing base URL, no search
    path, no row selector). Fatal to the call and never worth retrying.
    """

    error_type = "configuration_error"


class DefinitionValidationError(ConfigurationError):
    """Raised when a definition file or dictionary fails validation."""

    def __init__(self, message: str, errors: Optional[list] = None):
        super().__init__(message)
        self.errors = errors or []

    def __str__(self) -> str:
        if self.errors:
            return f"{super().__str__()} ({'; '.join(self.errors)})"
        return super().__str__()


class NetworkRetryableError(IndexerError):
    """
    Transport-level failure that may succeed if retried with backoff.
    """

    error_type = "network_error"

    def __init__(self, message: str, original_exception: Optional[Exception] = None):
        super().__init__(message)
        self.original_exception = original_exception


class ConnectionFailedError(NetworkRetryableError):
    """The indexer could not be reached (DNS, refused, reset, TLS...)."""

    error_type = "connection_failed"


class RequestTimeoutError(NetworkRetryableError):
    """The indexer did not answer within the request timeout."""

    error_type = "timeout"


class AuthenticationFailedError(IndexerError):
    """The indexer rejected our credentials or cookies (HTTP 401/403)."""

    error_type = "authentication_failed"


class RateLimitedError(IndexerError):
    """
    The indexer (HTTP 429) or the local rate limiter refused the request.
    Callers should back off this indexer specifically.

    Attributes:
        retry_after: Suggested delay in seconds, when known
    """

    error_type = "rate_limited"

    def __init__(self, message: str, retry_after: Optional[float] = None, status_code: Optional[int] = None):
        super().__init__(message, status_code=status_code)
        self.retry_after = retry_after


class RateLimitExceeded(RateLimitedError):
    """
    Raised when the local rate limiter could not hand out a token in time.

    Attributes:
        service: The limiter key (indexer id) that was saturated
    """

    def __init__(self, service: str, retry_after: float, message: Optional[str] = None):
        msg = message or f"Rate limit exceeded for {service}. Retry after {retry_after:.1f}s"
        super().__init__(msg, retry_after=retry_after)
        self.service = service


class SearchFailedError(IndexerError):
    """
    Whole-response failure: server error, unexpected status, undecodable or
    unparsable body.
    """

    error_type = "search_failed"


class PathNotFoundError(SearchFailedError):
    """A JSON row path segment does not exist in the response."""

    error_type = "path_not_found"


class InvalidPathError(SearchFailedError):
    """A JSON row path traverses through a value that is not an object."""

    error_type = "invalid_path"


class InvalidRegexError(IndexerError):
    """A re_replace filter carries a pattern that does not compile."""

    error_type = "invalid_regex"

    def __init__(self, pattern: str, reason: str):
        super().__init__(f"Invalid regex {pattern!r}: {reason}")
        self.pattern = pattern


# ============================================================================
# Retry Decorator
# ============================================================================

RETRYABLE_EXCEPTIONS = (NetworkRetryableError, RateLimitedError)


def retry_on_network_error(
    max_retries: Optional[int] = None,
    base_delay: Optional[float] = None,
    max_delay: float = 60.0,
    exponential_base: Optional[float] = None,
    retryable_exceptions: tuple = RETRYABLE_EXCEPTIONS
) -> Callable[[Callable[P, T]], Callable[P, T]]:
    """
    Decorator for automatic retry with exponential backoff on retryable errors.

    delay = min(base_delay * (exponential_base ^ attempt), max_delay), or the
    error's retry_after when a RateLimitedError provides one.

    Args:
        max_retries: Maximum number of retry attempts (default: Config.MAX_RETRIES)
        base_delay: Initial delay in seconds (default: Config.RETRY_BASE_DELAY)
        max_delay: Maximum delay in seconds (default: 60.0)
        exponential_base: Base for exponential calculation
            (default: Config.RETRY_EXPONENTIAL_BASE)
        retryable_exceptions: Tuple of exception types to retry

    Returns:
        Decorated function with retry logic

    Example:
        @retry_on_network_error(max_retries=3)
        def search_1337x(options):
            return search(definition, options)
    """

    def _settings() -> Tuple[int, float, float]:
        # Unset arguments follow Config at call time
        return (
            config.MAX_RETRIES if max_retries is None else max_retries,
            config.RETRY_BASE_DELAY if base_delay is None else base_delay,
            config.RETRY_EXPONENTIAL_BASE if exponential_base is None else exponential_base,
        )

    def _delay_for(attempt: int, error: Exception, base: float, factor: float) -> float:
        delay = min(base * (factor ** attempt), max_delay)
        if isinstance(error, RateLimitedError) and error.retry_after:
            delay = min(error.retry_after, max_delay)
        return delay

    def decorator(func: Callable[P, T]) -> Callable[P, T]:
        if inspect.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
                retries, base, factor = _settings()
                for attempt in range(retries + 1):
                    try:
                        return await func(*args, **kwargs)
                    except retryable_exceptions as e:
                        if attempt >= retries:
                            logger.error(
                                f"Max retries ({retries}) exceeded for {func.__name__}. "
                                f"Final error: {e}"
                            )
                            raise

                        delay = _delay_for(attempt, e, base, factor)
                        logger.warning(
                            f"Attempt {attempt + 1}/{retries} failed for {func.__name__}: {e}. "
                            f"Retrying in {delay}s..."
                        )
                        await asyncio.sleep(delay)

            return async_wrapper

        @functools.wraps(func)
        def sync_wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            retries, base, factor = _settings()
            for attempt in range(retries + 1):
                try:
                    return func(*args, **kwargs)
                except retryable_exceptions as e:
                    if attempt >= retries:
                        logger.error(
                            f"Max retries ({retries}) exceeded for {func.__name__}. "
                            f"Final error: {e}"
                        )
                        raise

                    delay = _delay_for(attempt, e, base, factor)
                    logger.warning(
                        f"Attempt {attempt + 1}/{retries} failed for {func.__name__}: {e}. "
                        f"Retrying in {delay}s..."
                    )
                    time.sleep(delay)

        return sync_wrapper

    return decorator


# ============================================================================
# Convenience Functions
# ============================================================================

def is_retryable_error(exception: Exception) -> bool:
    """
    Check if an exception is worth retrying.

    Args:
        exception: Exception to check

    Returns:
        True if exception should be retried, False otherwise
    """
    return isinstance(exception, RETRYABLE_EXCEPTIONS)


def classify_http_status(
    status_code: int,
    response_data: Optional[str] = None,
    retry_after: Optional[float] = None
) -> Optional[IndexerError]:
    """
    Map an HTTP status code onto the error taxonomy.

    Args:
        status_code: HTTP status code
        response_data: Optional body excerpt for debugging
        retry_after: Parsed Retry-After header, if any

    Returns:
        None for 200, otherwise the exception instance to raise
    """
    if status_code == 200:
        return None

    if status_code in (401, 403):
        return AuthenticationFailedError(
            "Authentication failed",
            status_code=status_code,
            response_data=response_data
        )

    if status_code == 429:
        return RateLimitedError(
            "Rate limit exceeded",
            retry_after=retry_after,
            status_code=status_code
        )

    if status_code >= 500:
        return SearchFailedError(
            f"Server error: HTTP {status_code}",
            status_code=status_code,
            response_data=response_data
        )

    if status_code >= 400:
        return SearchFailedError(
            f"HTTP {status_code}",
            status_code=status_code,
            response_data=response_data
        )

    return SearchFailedError(
        f"Unexpected status: {status_code}",
        status_code=status_code,
        response_data=response_data
    )
