"""
Structured Logging Service

Correlation context for the search pipeline, plus JSON or plain-text output.

Every search() call runs inside a CorrelationContext carrying a short search
id and the indexer id. CorrelationFilter stamps both onto each LogRecord that
reaches a handler installed by setup_json_logging(), so call sites never pass
them explicitly.

Usage:
    configure_logging()     # handler from Config.LOG_LEVEL / Config.LOG_JSON

    with CorrelationContext(search_id=generate_search_id(), indexer="1337x"):
        logger.info("Searching")    # {"search_id": "...", "indexer": "1337x", ...}
"""

import json
import logging
import uuid
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from scoutarr.config import config


# Context variables for correlation
search_id_var: ContextVar[Optional[str]] = ContextVar('search_id', default=None)
indexer_var: ContextVar[Optional[str]] = ContextVar('indexer', default=None)
extra_context_var: ContextVar[Dict[str, Any]] = ContextVar('extra_context', default={})

PLAIN_FORMAT = '%(asctime)s [%(levelname)s] %(name)s [%(search_id)s/%(indexer)s] - %(message)s'

# Marks handlers installed here so a second setup call replaces them
_HANDLER_MARKER = '_scoutarr_handler'


def get_search_id() -> Optional[str]:
    return search_id_var.get()


def get_indexer() -> Optional[str]:
    return indexer_var.get()


def get_extra_context() -> Dict[str, Any]:
    return extra_context_var.get()


def add_extra_context(**kwargs) -> None:
    """Merge key-value pairs into the current extra context."""
    extra_context_var.set({**extra_context_var.get(), **kwargs})


def clear_context() -> None:
    """Reset every correlation variable."""
    search_id_var.set(None)
    indexer_var.set(None)
    extra_context_var.set({})


def generate_search_id() -> str:
    """Short random id, unique enough to tell concurrent searches apart in logs."""
    return uuid.uuid4().hex[:8]


def get_correlation(include_extra: bool = True) -> Dict[str, Any]:
    """
    Current correlation values, omitting those that are unset.

    Returns:
        Dict with any of "search_id", "indexer" and "context"
    """
    correlation: Dict[str, Any] = {}

    search_id = get_search_id()
    if search_id:
        correlation["search_id"] = search_id

    indexer = get_indexer()
    if indexer:
        correlation["indexer"] = indexer

    extra_context = get_extra_context()
    if include_extra and extra_context:
        correlation["context"] = extra_context

    return correlation


# ============================================================================
# Context
# ============================================================================

class CorrelationContext:
    """
    Set correlation values for the duration of a block.

    Only the values given are set; the others keep their outer value. On exit
    every variable is reset to exactly what it was on entry, also when the
    block raised.
    """

    def __init__(
        self,
        search_id: Optional[str] = None,
        indexer: Optional[str] = None,
        **extra_context
    ):
        self.search_id = search_id
        self.indexer = indexer
        self.extra_context = extra_context
        self._tokens: List[Tuple[ContextVar, Token]] = []

    def __enter__(self):
        assignments = (
            (search_id_var, self.search_id),
            (indexer_var, self.indexer),
            (extra_context_var, self.extra_context),
        )
        for var, value in assignments:
            if value:
                self._tokens.append((var, var.set(value)))
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        while self._tokens:
            var, token = self._tokens.pop()
            var.reset(token)
        return False


# ============================================================================
# Output
# ============================================================================

class CorrelationFilter(logging.Filter):
    """Copy search_id/indexer onto every record ("-" when unset)."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.search_id = get_search_id() or "-"
        record.indexer = get_indexer() or "-"
        return True


class JSONLogFormatter(logging.Formatter):
    """
    One JSON object per record.

    Keys: timestamp (UTC, Z suffix), level, logger, message, module, function,
    line, the correlation values in effect, "exception" when exc_info is set
    and "extra" for data passed through StructuredLogAdapter(extra_data=...).
    """

    def __init__(self, include_extra: bool = True):
        super().__init__()
        self.include_extra = include_extra

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        log_data.update(get_correlation(self.include_extra))

        if record.exc_info:
            exc_type, exc_value, _ = record.exc_info
            log_data["exception"] = {
                "type": exc_type.__name__ if exc_type else None,
                "message": str(exc_value) if exc_value else None,
            }

        extra_data = getattr(record, 'extra_data', None)
        if extra_data:
            log_data["extra"] = extra_data

        return json.dumps(log_data, default=str)


class StructuredLogAdapter(logging.LoggerAdapter):
    """
    Logger adapter that attaches correlation values and an optional
    ``extra_data`` payload to each record.

    Usage:
        logger = get_structured_logger(__name__)
        logger.info("Parsed rows", extra_data={"rows": 42})
    """

    def process(self, msg, kwargs):
        extra = {**kwargs.get('extra', {}), **get_correlation()}
        if 'extra_data' in kwargs:
            extra['extra_data'] = kwargs.pop('extra_data')
        kwargs['extra'] = extra
        return msg, kwargs


def get_structured_logger(name: str) -> StructuredLogAdapter:
    """Correlation-aware logger for a module (pass __name__)."""
    return StructuredLogAdapter(logging.getLogger(name), {})


def setup_json_logging(
    logger_name: Optional[str] = None,
    level: int = logging.INFO,
    json_output: bool = True
) -> logging.Handler:
    """
    Install a stream handler on a logger.

    A handler installed by an earlier call on the same logger is replaced,
    so repeated setup does not duplicate output.

    Args:
        logger_name: Logger name (None for root logger)
        level: Minimum log level
        json_output: JSON records (True) or the plain PLAIN_FORMAT line (False)

    Returns:
        The installed handler
    """
    logger = logging.getLogger(logger_name) if logger_name else logging.getLogger()

    for existing in [h for h in logger.handlers if getattr(h, _HANDLER_MARKER, False)]:
        logger.removeHandler(existing)

    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.addFilter(CorrelationFilter())
    handler.setFormatter(JSONLogFormatter() if json_output else logging.Formatter(PLAIN_FORMAT))
    setattr(handler, _HANDLER_MARKER, True)

    logger.addHandler(handler)
    logger.setLevel(level)
    return handler


def configure_logging(logger_name: Optional[str] = "scoutarr") -> logging.Handler:
    """
    Set up package logging from Config.LOG_LEVEL and Config.LOG_JSON.

    An unknown level name falls back to INFO.
    """
    level = logging.getLevelName(config.LOG_LEVEL)
    if not isinstance(level, int):
        level = logging.INFO
    return setup_json_logging(logger_name, level=level, json_output=config.LOG_JSON)
