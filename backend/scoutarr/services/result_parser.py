"""
Result Parser Service

Turns an indexer's search response into Release objects using the
definition's row and field selectors.

Process:
    1. Detect the response type (HTML or JSON)
    2. Locate result rows (CSS selector for HTML, dotted path for JSON)
    3. Extract each configured field from every row
    4. Run the field's filter chain
    5. Keep rows that have both a title and a download link
    6. Normalize sizes, counts and dates into a Release

Field-level failures are soft: a field that matches nothing, or whose filter
chain fails, is simply absent. Whole-response failures raise
SearchFailedError (or one of its JSON path subclasses).
"""

import json
import logging
import re
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Union

from bs4 import BeautifulSoup
from pydantic import TypeAdapter, ValidationError

from scoutarr.schemas.definition import FieldSelector, IndexerDefinition, RowSelector
from scoutarr.schemas.release import Release
from scoutarr.services.exceptions import (
    ConfigurationError,
    IndexerError,
    InvalidPathError,
    InvalidRegexError,
    PathNotFoundError,
    SearchFailedError,
)
from scoutarr.services.filters import apply_filters
from scoutarr.services.quality_parser import QualityExtractor, extract_quality

logger = logging.getLogger(__name__)

RawRow = Dict[str, str]

REQUIRED_FIELDS = ("title", "download")

# Fields consumed by the Release model, everything else lands in metadata
MAPPED_FIELDS = frozenset({
    "title", "download", "size", "seeders", "leechers",
    "details", "date", "category", "imdbid", "tmdbid",
})

# Checked in this order, matched case-sensitively as substrings
SIZE_UNITS = (
    (("GB", "GiB"), 1024 ** 3),
    (("MB", "MiB"), 1024 ** 2),
    (("KB", "KiB"), 1024),
    (("TB", "TiB"), 1024 ** 4),
)

_NUMBER_RE = re.compile(r"\d+(?:\.\d+)?")
_NON_DIGIT_RE = re.compile(r"[^\d]")
_NON_NUMERIC_RE = re.compile(r"[^\d.]")

_datetime_adapter = TypeAdapter(datetime)


class ResponseType(str, Enum):
    HTML = "html"
    JSON = "json"


# ============================================================================
# Dispatch
# ============================================================================

def detect_response_type(body: Union[str, bytes, None]) -> ResponseType:
    """
    Guess whether a response body is JSON or HTML.

    A body that starts with '{' or '[' and decodes as JSON is JSON;
    everything else, including ambiguous bodies, is treated as HTML.
    """
    if body is None:
        return ResponseType.HTML
    if isinstance(body, bytes):
        body = body.decode("utf-8", errors="replace")

    trimmed = body.strip()
    if trimmed.startswith(("{", "[")):
        try:
            json.loads(trimmed)
            return ResponseType.JSON
        except ValueError:
            return ResponseType.HTML
    return ResponseType.HTML


def parse_results(
    definition: IndexerDefinition,
    body: Union[str, bytes],
    indexer_name: Optional[str] = None,
    quality_extractor: QualityExtractor = extract_quality,
) -> List[Release]:
    """
    Parse a search response body into Releases.

    Args:
        definition: Indexer definition holding the row/field selectors
        body: Response body
        indexer_name: Name to tag releases with (defaults to the definition's name)
        quality_extractor: Title -> QualityInfo callable

    Returns:
        Releases in document order
    """
    if detect_response_type(body) == ResponseType.JSON:
        return parse_json_results(definition, body, indexer_name, quality_extractor)
    return parse_html_results(definition, body, indexer_name, quality_extractor)


def _require_row_selector(definition: IndexerDefinition) -> RowSelector:
    if definition.row_selector is None:
        raise ConfigurationError(f"No row selector configured for indexer '{definition.id}'")
    return definition.row_selector


def _apply_field_filters(name: str, field: FieldSelector, value: str) -> Optional[str]:
    """Run the field's filters; a filter failure drops this field only."""
    try:
        return apply_filters(value, field.filters)
    except InvalidRegexError as e:
        logger.debug(f"Dropping field '{name}': {e}")
        return None


def _has_required_fields(row: RawRow) -> bool:
    return all(row.get(name) for name in REQUIRED_FIELDS)


# ============================================================================
# HTML
# ============================================================================

def _extract_html_value(row, field: FieldSelector) -> Optional[str]:
    elements = row.select(field.selector)
    if not elements:
        return None

    if field.attribute is None:
        return "".join(el.get_text() for el in elements).strip()

    for el in elements:
        value = el.get(field.attribute)
        if value is None:
            continue
        # Multi-valued attributes (class, rel) come back as lists
        if isinstance(value, list):
            value = " ".join(value)
        return value.strip()
    return None


def _parse_html_row(row, fields: Dict[str, FieldSelector]) -> RawRow:
    values: RawRow = {}
    for name, field in fields.items():
        raw = _extract_html_value(row, field)
        if raw is None:
            continue
        value = _apply_field_filters(name, field, raw)
        if value is not None:
            values[name] = value
    return values


def parse_html_results(
    definition: IndexerDefinition,
    body: Union[str, bytes],
    indexer_name: Optional[str] = None,
    quality_extractor: QualityExtractor = extract_quality,
) -> List[Release]:
    """
    Parse an HTML search page.

    Raises:
        ConfigurationError: If the definition has no row selector
        SearchFailedError: If the document could not be processed
    """
    row_selector = _require_row_selector(definition)
    indexer_name = indexer_name or definition.display_name

    try:
        soup = BeautifulSoup(body, "html.parser")
        rows = soup.select(row_selector.selector)[row_selector.skip_count:]

        raw_rows = []
        for row in rows:
            values = _parse_html_row(row, definition.field_selectors)
            if _has_required_fields(values):
                raw_rows.append(values)
            else:
                logger.debug(f"Skipping row without title/download: {sorted(values)}")

        logger.debug(f"{indexer_name}: {len(raw_rows)}/{len(rows)} HTML rows kept")
        return transform_to_releases(raw_rows, indexer_name, quality_extractor)
    except IndexerError:
        raise
    except Exception as e:
        logger.error(f"HTML parsing error for {indexer_name}: {e}")
        raise SearchFailedError(f"Failed to parse HTML response: {e}") from e


# ============================================================================
# JSON
# ============================================================================

def navigate_json_path(data: Any, path: str) -> Any:
    """
    Resolve a dotted property path.

    Supported forms: "$" and "$." (root), "$.a.b.c", or a bare property
    name. There is no array indexing or wildcard support.

    Raises:
        PathNotFoundError: If a key is missing or null
        InvalidPathError: If a non-object value is traversed
    """
    if path in ("$", "$."):
        return data

    if path.startswith("$."):
        keys = path[2:].split(".")
    else:
        keys = [path]

    value = data
    for key in keys:
        if not isinstance(value, dict):
            raise InvalidPathError(f"Cannot read '{key}' of a non-object value in path '{path}'")
        value = value.get(key)
        if value is None:
            raise PathNotFoundError(f"Path '{path}' not found (missing '{key}')")
    return value


def _json_field_value(value: Any) -> Optional[str]:
    """Strings pass through, numbers are stringified, anything else is absent."""
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)):
        return str(value)
    return None


def _parse_json_row(row: Dict[str, Any], fields: Dict[str, FieldSelector]) -> RawRow:
    values: RawRow = {}
    for name, field in fields.items():
        raw = _json_field_value(row.get(field.selector))
        if raw is None:
            continue
        value = _apply_field_filters(name, field, raw)
        if value is not None:
            values[name] = value
    return values


def parse_json_results(
    definition: IndexerDefinition,
    body: Union[str, bytes],
    indexer_name: Optional[str] = None,
    quality_extractor: QualityExtractor = extract_quality,
) -> List[Release]:
    """
    Parse a JSON API response.

    Raises:
        ConfigurationError: If the definition has no row selector
        SearchFailedError: If the body is not valid JSON
        PathNotFoundError / InvalidPathError: If the row path does not resolve
    """
    row_selector = _require_row_selector(definition)
    indexer_name = indexer_name or definition.display_name

    try:
        data = json.loads(body)
    except ValueError as e:
        raise SearchFailedError(f"Invalid JSON: {e}") from e

    rows = navigate_json_path(data, row_selector.selector)
    if not isinstance(rows, list):
        rows = [rows]

    try:
        raw_rows = []
        for row in rows:
            if not isinstance(row, dict):
                logger.debug(f"Skipping non-object JSON row: {type(row).__name__}")
                continue
            values = _parse_json_row(row, definition.field_selectors)
            if _has_required_fields(values):
                raw_rows.append(values)

        logger.debug(f"{indexer_name}: {len(raw_rows)}/{len(rows)} JSON rows kept")
        return transform_to_releases(raw_rows, indexer_name, quality_extractor)
    except IndexerError:
        raise
    except Exception as e:
        logger.error(f"JSON parsing error for {indexer_name}: {e}")
        raise SearchFailedError(f"Failed to parse JSON response: {e}") from e


# ============================================================================
# Normalization
# ============================================================================

def parse_size(value: Optional[str]) -> int:
    """
    Convert a human-readable size into bytes.

    Examples:
        >>> parse_size("1.5 GB")
        1610612736
        >>> parse_size("500 MB")
        524288000
        >>> parse_size("1024")
        1024
    """
    if not value:
        return 0
    value = value.strip()

    for suffixes, multiplier in SIZE_UNITS:
        if any(suffix in value for suffix in suffixes):
            match = _NUMBER_RE.match(_NON_NUMERIC_RE.sub("", value))
            if not match:
                return 0
            try:
                return int(float(match.group()) * multiplier)
            except (OverflowError, ValueError):
                logger.debug(f"Unparsable size: {value[:40]!r}")
                return 0

    return parse_integer(value)


def parse_integer(value: Optional[str]) -> int:
    """Strip everything but digits and parse; 0 when nothing is left or the number is absurdly long."""
    if value is None:
        return 0
    digits = _NON_DIGIT_RE.sub("", str(value))
    if not digits:
        return 0
    try:
        return int(digits)
    except ValueError:
        # int() refuses strings past sys.get_int_max_str_digits()
        logger.debug(f"Unparsable integer: {digits[:40]}...")
        return 0


def parse_date(value: Optional[str]) -> Optional[datetime]:
    """
    Parse a date string, returning None instead of raising.

    Strict ISO-8601 is tried first, then pydantic's datetime parsing (which
    also accepts unix timestamps). Naive results are taken as UTC.
    """
    if not value:
        return None
    value = value.strip()

    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        try:
            parsed = _datetime_adapter.validate_python(value)
        except ValidationError:
            logger.debug(f"Unparsable date: {value!r}")
            return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _optional_integer(row: RawRow, name: str) -> Optional[int]:
    return parse_integer(row[name]) if name in row else None


def transform_to_release(
    row: RawRow,
    indexer_name: str,
    quality_extractor: QualityExtractor = extract_quality,
) -> Optional[Release]:
    """Build a Release from an extracted row, or None if it lacks title/download."""
    if not _has_required_fields(row):
        return None

    title = row["title"]
    extra = {k: v for k, v in row.items() if k not in MAPPED_FIELDS}

    return Release(
        title=title,
        indexer=indexer_name,
        size=parse_size(row.get("size")),
        seeders=parse_integer(row.get("seeders")),
        leechers=parse_integer(row.get("leechers")),
        download_url=row["download"],
        info_url=row.get("details") or None,
        published_at=parse_date(row.get("date")),
        category=_optional_integer(row, "category"),
        imdb_id=row.get("imdbid") or None,
        tmdb_id=_optional_integer(row, "tmdbid"),
        quality=quality_extractor(title),
        metadata=extra or None,
    )


def transform_to_releases(
    rows: Iterable[RawRow],
    indexer_name: str,
    quality_extractor: QualityExtractor = extract_quality,
) -> List[Release]:
    releases = []
    for row in rows:
        release = transform_to_release(row, indexer_name, quality_extractor)
        if release is not None:
            releases.append(release)
    return releases
