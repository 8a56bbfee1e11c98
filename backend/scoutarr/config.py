"""
Configuration Management for Scoutarr

This module centralizes all engine configuration, making it easy to manage
timeouts, rate limiting, retry logic and logging through environment variables.

All configuration values have sensible defaults and can be overridden via
environment variables for production deployment.
"""

import os
from pathlib import Path


class Config:
    """
    Centralized configuration management using environment variables.

    All settings have sensible defaults and can be overridden via environment
    variables. Values are read once, at import time.
    """

    # =============================================================================
    # APPLICATION SETTINGS
    # =============================================================================
    APP_VERSION = "1.0.0"
    APP_TITLE = "Scoutarr"
    APP_DESCRIPTION = "Definition-driven indexer search and release ranking"

    DEBUG = os.getenv("DEBUG", "false").lower() == "true"

    # =============================================================================
    # LOGGING
    # =============================================================================
    LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG" if DEBUG else "INFO").upper()
    # Emit JSON records (see services/structured_logging.py) instead of plain text
    LOG_JSON = os.getenv("LOG_JSON", "false").lower() == "true"

    # =============================================================================
    # INDEXER DEFINITIONS
    # =============================================================================
    DEFINITIONS_DIR = Path(
        os.getenv(
            "DEFINITIONS_DIR",
            str(Path(__file__).parent / "adapters" / "definitions")
        )
    )

    # =============================================================================
    # REQUEST SETTINGS (seconds)
    # =============================================================================
    SEARCH_REQUEST_TIMEOUT = float(os.getenv("SEARCH_REQUEST_TIMEOUT", "30"))

    DEFAULT_USER_AGENT = os.getenv(
        "DEFAULT_USER_AGENT",
        "Mozilla/5.0 (X11; Linux x86_64; rv:128.0) Gecko/20100101 Firefox/128.0"
    )

    # =============================================================================
    # RATE LIMITING
    # =============================================================================
    # Maximum time a search waits on an indexer's rate limiter before failing
    RATE_LIMIT_ACQUIRE_TIMEOUT = float(os.getenv("RATE_LIMIT_ACQUIRE_TIMEOUT", "60"))

    # =============================================================================
    # RETRY CONFIGURATION (defaults for retry_on_network_error)
    # =============================================================================
    MAX_RETRIES = int(os.getenv("MAX_RETRIES", "5"))
    RETRY_BASE_DELAY = float(os.getenv("RETRY_BASE_DELAY", "1.0"))
    RETRY_EXPONENTIAL_BASE = float(os.getenv("RETRY_EXPONENTIAL_BASE", "2"))

    @classmethod
    def validate(cls) -> bool:
        """
        Validate critical configuration values.

        Returns:
            True if configuration is valid, False otherwise
        """
        if cls.SEARCH_REQUEST_TIMEOUT <= 0:
            return False

        if cls.RATE_LIMIT_ACQUIRE_TIMEOUT < 0:
            return False

        if cls.MAX_RETRIES < 0:
            return False

        return True

    @classmethod
    def get_summary(cls) -> dict:
        """
        Get configuration summary for logging/debugging.

        Returns:
            Dictionary with configuration values
        """
        return {
            "app_version": cls.APP_VERSION,
            "debug": cls.DEBUG,
            "log_level": cls.LOG_LEVEL,
            "log_json": cls.LOG_JSON,
            "definitions_dir": str(cls.DEFINITIONS_DIR),
            "search_request_timeout": cls.SEARCH_REQUEST_TIMEOUT,
            "rate_limit_acquire_timeout": cls.RATE_LIMIT_ACQUIRE_TIMEOUT,
            "max_retries": cls.MAX_RETRIES,
            "retry_base_delay": cls.RETRY_BASE_DELAY,
            "retry_exponential_base": cls.RETRY_EXPONENTIAL_BASE,
        }


# Singleton instance
config = Config()
