"""
Indexer Definition Loader for Scoutarr

This module handles loading and validating Cardigann-style indexer definition
files (YAML/JSON) and turning them into immutable IndexerDefinition objects.

Usage:
    loader = DefinitionLoader()

    # Load from file
    definition = loader.load("1337x")  # Loads from definitions/1337x.yml

    # Load from a dictionary (e.g. fetched from a definitions repository)
    definition = loader.load_from_dict(raw)

    # Validate a raw definition
    is_valid, errors = loader.validate(raw)

Definition file shape:
    id: 1337x
    name: 1337x
    links: [https://1337x.to/]
    request_delay: 2
    request_delay_unit: seconds      # or milliseconds; optional
    follow_redirect: false
    search:
      paths:
        - path: "/search/{{ .Keywords }}/1/"
          method: get
          categories: [2000]
      inputs: {}
      headers: {}
      rows: {selector: "table tbody tr", after: 0}
      fields:
        title: "td.name a"
        download: {selector: "td.name a", attribute: href, filters: [{name: prepend, args: ["https://1337x.to"]}]}
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml
from pydantic import ValidationError

from scoutarr.config import config as app_config
from scoutarr.schemas.definition import IndexerDefinition
from scoutarr.services.exceptions import DefinitionValidationError
from scoutarr.services.filters import validate_filter_spec

logger = logging.getLogger(__name__)

SECONDS_UNITS = ("seconds", "second", "s", "sec")
MILLISECONDS_UNITS = ("milliseconds", "millisecond", "ms")

# Delays below this are read as seconds when no unit is given
LEGACY_SECONDS_THRESHOLD = 10


# ============================================================================
# Normalization helpers
# ============================================================================

def normalize_request_delay(
    value: Any,
    unit: Optional[str] = None,
    definition_id: str = "<unknown>"
) -> Optional[float]:
    """
    Convert a definition's request_delay into seconds.

    Args:
        value: Raw request_delay
        unit: Optional request_delay_unit (seconds/s or milliseconds/ms)
        definition_id: Used in log messages

    Returns:
        Delay in seconds, or None when no delay is configured

    Raises:
        ValueError: On a non-numeric value or unknown unit
    """
    if value is None:
        return None

    delay = float(value)
    if delay <= 0:
        return None

    if unit is not None:
        unit = str(unit).strip().lower()
        if unit in SECONDS_UNITS:
            return delay
        if unit in MILLISECONDS_UNITS:
            return delay / 1000
        raise ValueError(f"Unknown request_delay_unit '{unit}'")

    seconds = delay if delay < LEGACY_SECONDS_THRESHOLD else delay / 1000
    logger.warning(
        f"Definition '{definition_id}' sets request_delay={value} without request_delay_unit, "
        f"assuming {seconds}s"
    )
    return seconds


def _normalize_headers(raw: Any) -> List[Tuple[str, str]]:
    """Headers may be a mapping (values may be lists) or a list of pairs."""
    headers: List[Tuple[str, str]] = []
    if isinstance(raw, dict):
        for name, value in raw.items():
            values = value if isinstance(value, list) else [value]
            headers.extend((str(name), str(v)) for v in values)
    elif raw:
        for item in raw:
            if isinstance(item, dict):
                headers.append((str(item["name"]), str(item["value"])))
            else:
                name, value = item
                headers.append((str(name), str(value)))

    if not any(name.lower() == "user-agent" for name, _ in headers):
        headers.append(("User-Agent", app_config.DEFAULT_USER_AGENT))
    return headers


def _raw_paths(search: Dict[str, Any]) -> List[Any]:
    paths = search.get("paths")
    if paths is None and search.get("path"):
        paths = [search["path"]]
    return paths or []


def _normalize_path(raw: Any) -> Dict[str, Any]:
    if isinstance(raw, str):
        return {"template": raw}
    return {
        "template": raw.get("path", ""),
        "method": raw.get("method") or "get",
        "categories": raw.get("categories") or [],
    }


def _normalize_field(name: str, raw: Any) -> Optional[Dict[str, Any]]:
    if isinstance(raw, str):
        return {"selector": raw}
    if not raw.get("selector"):
        logger.warning(f"Field '{name}' has no selector and will be ignored")
        return None
    return {
        "selector": raw["selector"],
        "attribute": raw.get("attribute"),
        "filters": raw.get("filters") or [],
    }


def parse_definition(raw: Dict[str, Any]) -> IndexerDefinition:
    """
    Build an IndexerDefinition from a raw (already validated) definition dict.

    Raises:
        DefinitionValidationError: If the values do not fit the model
    """
    definition_id = str(raw.get("id", ""))
    search = raw.get("search") or {}
    rows = search.get("rows") or {}

    fields = {}
    for name, field in (search.get("fields") or {}).items():
        normalized = _normalize_field(name, field)
        if normalized is not None:
            fields[name] = normalized

    follow_redirect = raw.get("follow_redirect", raw.get("followredirect", False))

    try:
        return IndexerDefinition(
            id=definition_id,
            name=raw.get("name") or definition_id,
            base_urls=tuple(raw.get("links") or ()),
            search_paths=tuple(_normalize_path(p) for p in _raw_paths(search)),
            row_selector={
                "selector": rows["selector"],
                "skip_count": rows.get("after") or 0,
            } if rows.get("selector") else None,
            field_selectors=fields,
            headers=tuple(_normalize_headers(search.get("headers"))),
            inputs=dict(search.get("inputs") or {}),
            request_delay=normalize_request_delay(
                raw.get("request_delay"),
                raw.get("request_delay_unit"),
                definition_id
            ),
            follow_redirect=bool(follow_redirect),
        )
    except (ValidationError, ValueError) as e:
        raise DefinitionValidationError(
            f"Invalid definition for indexer '{definition_id}'",
            errors=[str(e)]
        ) from e


# ============================================================================
# Loader
# ============================================================================

class DefinitionLoader:
    """
    Loads and validates indexer definition files.

    Supports both YAML and JSON formats. Parsed definitions are cached by id;
    they are immutable, so a cached instance can be shared by every search.
    """

    # Required top-level fields
    REQUIRED_FIELDS = ["id", "links", "search"]

    # Fields every release needs
    REQUIRED_RESULT_FIELDS = ["title", "download"]

    # Valid search path methods
    VALID_METHODS = ["get", "post"]

    VALID_DELAY_UNITS = list(SECONDS_UNITS + MILLISECONDS_UNITS)

    def __init__(self, definitions_dir: Optional[Path] = None):
        """
        Initialize DefinitionLoader.

        Args:
            definitions_dir: Directory containing definition files.
                             Defaults to Config.DEFINITIONS_DIR.
        """
        self.definitions_dir = Path(definitions_dir) if definitions_dir else app_config.DEFINITIONS_DIR
        self._cache: Dict[str, IndexerDefinition] = {}

        logger.debug(f"DefinitionLoader initialized with definitions_dir: {self.definitions_dir}")

    def get_available_definitions(self) -> List[str]:
        """
        Get list of available indexer definitions.

        Returns:
            List of definition ids (filenames without extension)
        """
        definitions = []

        if not self.definitions_dir.exists():
            logger.warning(f"Definitions directory does not exist: {self.definitions_dir}")
            return definitions

        for file_path in self.definitions_dir.iterdir():
            if file_path.suffix in ('.yaml', '.yml', '.json'):
                definitions.append(file_path.stem)

        return sorted(definitions)

    def load(self, definition_id: str, use_cache: bool = True) -> IndexerDefinition:
        """
        Load an indexer definition by id.

        Args:
            definition_id: Indexer id (e.g., "1337x")
            use_cache: Whether to use a cached definition if available

        Returns:
            Parsed IndexerDefinition

        Raises:
            FileNotFoundError: If no definition file exists
            DefinitionValidationError: If the definition is invalid
        """
        if use_cache and definition_id in self._cache:
            logger.debug(f"Returning cached definition for {definition_id}")
            return self._cache[definition_id]

        path = self._find_definition_file(definition_id)
        if not path:
            raise FileNotFoundError(
                f"No definition file found for indexer '{definition_id}'. "
                f"Looked in: {self.definitions_dir}"
            )

        raw = self._load_file(path)
        definition = self.load_from_dict(raw)

        self._cache[definition_id] = definition
        logger.info(f"Loaded and validated definition for indexer: {definition_id}")

        return definition

    def load_from_dict(self, raw: Dict[str, Any], validate: bool = True) -> IndexerDefinition:
        """
        Build a definition from a dictionary.

        Args:
            raw: Raw definition dictionary
            validate: Whether to validate the structure first

        Returns:
            Parsed IndexerDefinition

        Raises:
            DefinitionValidationError: If the definition is invalid
        """
        if validate:
            is_valid, errors = self.validate(raw)
            if not is_valid:
                definition_id = raw.get("id") if isinstance(raw, dict) else None
                raise DefinitionValidationError(
                    f"Invalid definition for indexer '{definition_id or '<unknown>'}'",
                    errors=errors
                )

        return parse_definition(raw)

    def validate(self, raw: Any) -> Tuple[bool, List[str]]:
        """
        Validate a raw definition.

        Args:
            raw: Definition dictionary to validate

        Returns:
            Tuple of (is_valid, list_of_errors)
        """
        if not isinstance(raw, dict):
            return False, ["Definition must be a mapping"]

        errors = []

        for field in self.REQUIRED_FIELDS:
            if not raw.get(field):
                errors.append(f"Missing required field: '{field}'")

        if errors:
            return False, errors

        links = raw["links"]
        if not isinstance(links, list) or not all(isinstance(link, str) and link for link in links):
            errors.append("'links' must be a list of URLs")

        errors.extend(self._validate_request_delay(raw))

        search = raw["search"]
        if not isinstance(search, dict):
            errors.append("'search' must be a mapping")
            return False, errors

        errors.extend(self._validate_paths(search))

        rows = search.get("rows")
        if not isinstance(rows, dict) or not rows.get("selector"):
            errors.append("Missing required search field: 'rows.selector'")
        elif rows.get("after") is not None and (
            not isinstance(rows["after"], int) or isinstance(rows["after"], bool) or rows["after"] < 0
        ):
            errors.append("'rows.after' must be a non-negative integer")

        errors.extend(self._validate_fields(search.get("fields")))

        return len(errors) == 0, errors

    def _validate_request_delay(self, raw: Dict[str, Any]) -> List[str]:
        errors = []
        delay = raw.get("request_delay")
        if delay is not None and (isinstance(delay, bool) or not isinstance(delay, (int, float)) or delay < 0):
            errors.append("'request_delay' must be a non-negative number")

        unit = raw.get("request_delay_unit")
        if unit is not None and str(unit).strip().lower() not in self.VALID_DELAY_UNITS:
            errors.append(
                f"Invalid request_delay_unit: '{unit}'. Valid units: {self.VALID_DELAY_UNITS}"
            )
        return errors

    def _validate_paths(self, search: Dict[str, Any]) -> List[str]:
        paths = _raw_paths(search)
        if not paths:
            return ["Missing required search field: 'paths'"]

        errors = []
        for index, path in enumerate(paths):
            if isinstance(path, str):
                continue
            if not isinstance(path, dict) or not path.get("path"):
                errors.append(f"Search path #{index} is missing 'path'")
                continue

            method = path.get("method")
            if method and str(method).lower() not in self.VALID_METHODS:
                errors.append(
                    f"Invalid method for search path #{index}: '{method}'. "
                    f"Valid methods: {self.VALID_METHODS}"
                )
        return errors

    def _validate_fields(self, fields: Any) -> List[str]:
        if not isinstance(fields, dict):
            return ["Missing required search field: 'fields'"]

        errors = []
        for name in self.REQUIRED_RESULT_FIELDS:
            field = fields.get(name)
            if not field or (isinstance(field, dict) and not field.get("selector")):
                errors.append(f"Missing required result field: '{name}'")

        for name, field in fields.items():
            if isinstance(field, str):
                continue
            if not isinstance(field, dict):
                errors.append(f"Field '{name}' must be a selector string or a mapping")
                continue

            filters = field.get("filters") or []
            if not isinstance(filters, list):
                errors.append(f"Field '{name}': 'filters' must be a list")
                continue
            for spec in filters:
                errors.extend(f"Field '{name}': {problem}" for problem in validate_filter_spec(spec))
        return errors

    def _find_definition_file(self, definition_id: str) -> Optional[Path]:
        """Find definition file by id."""
        if not self.definitions_dir.exists():
            return None

        for ext in ('.yml', '.yaml', '.json'):
            path = self.definitions_dir / f"{definition_id}{ext}"
            if path.exists():
                return path

        return None

    def _load_file(self, path: Path) -> Dict[str, Any]:
        """Load a raw definition from file."""
        logger.debug(f"Loading definition from: {path}")

        with open(path, 'r', encoding='utf-8') as f:
            content = f.read()

        try:
            if path.suffix in ('.yaml', '.yml'):
                return yaml.safe_load(content)
            if path.suffix == '.json':
                return json.loads(content)
        except (yaml.YAMLError, ValueError) as e:
            raise DefinitionValidationError(
                f"Could not parse definition file {path.name}",
                errors=[str(e)]
            ) from e

        raise ValueError(f"Unsupported definition file format: {path.suffix}")

    def clear_cache(self, definition_id: Optional[str] = None):
        """
        Clear definition cache.

        Args:
            definition_id: Specific id to clear, or None to clear all
        """
        if definition_id:
            self._cache.pop(definition_id, None)
            logger.debug(f"Cleared cache for: {definition_id}")
        else:
            self._cache.clear()
            logger.debug("Cleared all definition cache")

    def reload(self, definition_id: str) -> IndexerDefinition:
        """
        Reload a definition (bypassing cache).

        Args:
            definition_id: Indexer id to reload

        Returns:
            Freshly parsed definition
        """
        self.clear_cache(definition_id)
        return self.load(definition_id, use_cache=False)


# Singleton instance
_loader_instance: Optional[DefinitionLoader] = None


def get_definition_loader(definitions_dir: Optional[Path] = None) -> DefinitionLoader:
    """
    Get or create the singleton DefinitionLoader instance.

    Args:
        definitions_dir: Optional definitions directory (only used on first call)

    Returns:
        DefinitionLoader instance
    """
    global _loader_instance

    if _loader_instance is None:
        _loader_instance = DefinitionLoader(definitions_dir)

    return _loader_instance


def load_definition(definition_id: str) -> IndexerDefinition:
    """
    Convenience function to load an indexer definition.

    Args:
        definition_id: Indexer id

    Returns:
        Parsed IndexerDefinition
    """
    return get_definition_loader().load(definition_id)
