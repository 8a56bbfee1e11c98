"""
Rate Limiter Service

Provides token bucket rate limiting for indexer requests.

Features:
- Token bucket algorithm with configurable rates
- Thread-safe, one bucket per indexer id shared by every caller
- Definition-driven configuration from request_delay
- Configurable acquisition timeout
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Dict, Optional

from scoutarr.config import config as app_config
from scoutarr.services.exceptions import RateLimitExceeded

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitConfig:
    """Configuration for a rate limiter."""
    tokens_per_second: float  # Refill rate
    max_tokens: int  # Maximum bucket capacity (burst allowance)
    name: str = ""  # Indexer id for logging

    @classmethod
    def from_delay(cls, name: str, delay_seconds: float) -> "RateLimitConfig":
        """One request every delay_seconds, no burst."""
        return cls(tokens_per_second=1.0 / delay_seconds, max_tokens=1, name=name)


class TokenBucket:
    """
    Token bucket rate limiter.

    Implements the token bucket algorithm for rate limiting:
    - Bucket has a maximum capacity (burst allowance) and starts full
    - Tokens refill at a constant rate
    - Each request consumes one or more tokens
    - Requests block while the bucket is empty
    """

    def __init__(self, config: RateLimitConfig):
        """
        Initialize token bucket.

        Args:
            config: Rate limit configuration
        """
        self.config = config
        self._tokens = float(config.max_tokens)
        self._last_refill = time.monotonic()
        self._lock = threading.Lock()

    def _refill(self) -> None:
        """Refill tokens based on elapsed time. Caller holds the lock."""
        now = time.monotonic()
        elapsed = now - self._last_refill
        tokens_to_add = elapsed * self.config.tokens_per_second
        self._tokens = min(self.config.max_tokens, self._tokens + tokens_to_add)
        self._last_refill = now

    def acquire(self, tokens: int = 1, wait: bool = True, timeout: float = 30.0) -> bool:
        """
        Acquire tokens from the bucket.

        Args:
            tokens: Number of tokens to acquire
            wait: If True, wait for tokens. If False, return immediately.
            timeout: Maximum time to wait for tokens (seconds)

        Returns:
            True if tokens were acquired, False if not (only when wait=False)

        Raises:
            RateLimitExceeded: When wait=True and timeout is exceeded
        """
        start_time = time.monotonic()

        while True:
            with self._lock:
                self._refill()

                if self._tokens >= tokens:
                    self._tokens -= tokens
                    return True

                if not wait:
                    return False

                tokens_needed = tokens - self._tokens
                wait_time = tokens_needed / self.config.tokens_per_second

            elapsed = time.monotonic() - start_time
            if elapsed + wait_time > timeout:
                raise RateLimitExceeded(
                    service=self.config.name,
                    retry_after=wait_time
                )

            # Lock released while sleeping
            logger.debug(f"Rate limiter '{self.config.name}' waiting {wait_time:.2f}s")
            time.sleep(wait_time)


class RateLimiter:
    """
    Per-indexer rate limiter registry.

    Buckets are keyed by indexer id, so every search against the same indexer
    draws from the same bucket regardless of the call site or thread.
    """

    DEFAULT_CONFIG = RateLimitConfig(tokens_per_second=1.0, max_tokens=5)

    def __init__(self):
        """Initialize an empty registry."""
        self._buckets: Dict[str, TokenBucket] = {}
        self._registry_lock = threading.Lock()

    def get_bucket(self, service: str) -> TokenBucket:
        """
        Get or create token bucket for an indexer.

        An indexer that was never configured gets DEFAULT_CONFIG.

        Args:
            service: Indexer id

        Returns:
            TokenBucket for the indexer
        """
        with self._registry_lock:
            if service not in self._buckets:
                config = RateLimitConfig(
                    tokens_per_second=self.DEFAULT_CONFIG.tokens_per_second,
                    max_tokens=self.DEFAULT_CONFIG.max_tokens,
                    name=service
                )
                self._buckets[service] = TokenBucket(config)
            return self._buckets[service]

    def ensure_configured(self, service: str, delay_seconds: float) -> TokenBucket:
        """
        Make sure the indexer's bucket spaces requests delay_seconds apart.

        Idempotent: an existing bucket with the same configuration keeps its
        state, so concurrent searches share it instead of resetting it.
        """
        wanted = RateLimitConfig.from_delay(service, delay_seconds)
        with self._registry_lock:
            bucket = self._buckets.get(service)
            if bucket is not None and bucket.config == wanted:
                return bucket

            bucket = TokenBucket(wanted)
            self._buckets[service] = bucket

        logger.info(f"Rate limit configured for {service}: one request every {delay_seconds}s")
        return bucket

    def acquire(
        self,
        service: str,
        tokens: int = 1,
        wait: bool = True,
        timeout: Optional[float] = None
    ) -> bool:
        """
        Acquire tokens for an indexer.

        Args:
            service: Indexer id
            tokens: Number of tokens to acquire
            wait: If True, wait for tokens
            timeout: Maximum wait time (defaults to RATE_LIMIT_ACQUIRE_TIMEOUT)

        Returns:
            True if acquired, False otherwise
        """
        if timeout is None:
            timeout = app_config.RATE_LIMIT_ACQUIRE_TIMEOUT
        bucket = self.get_bucket(service)
        return bucket.acquire(tokens, wait, timeout)


# Global rate limiter instance
_rate_limiter: Optional[RateLimiter] = None
_rate_limiter_lock = threading.Lock()


def get_rate_limiter() -> RateLimiter:
    """Get the global rate limiter instance."""
    global _rate_limiter
    with _rate_limiter_lock:
        if _rate_limiter is None:
            _rate_limiter = RateLimiter()
        return _rate_limiter


def acquire_for_indexer(
    indexer_id: str,
    request_delay: Optional[float],
    rate_limiter: Optional[RateLimiter] = None,
    timeout: Optional[float] = None
) -> None:
    """
    Wait for the indexer's turn before sending a request.

    Indexers without a positive request_delay are not limited.

    Raises:
        RateLimitExceeded: If no token became available within the timeout
    """
    if not request_delay or request_delay <= 0:
        return

    limiter = rate_limiter or get_rate_limiter()
    limiter.ensure_configured(indexer_id, request_delay)
    limiter.acquire(indexer_id, timeout=timeout)
