"""
Indexer Definition Schemas

Immutable, typed description of one indexer: where to send the search, how to
build the request, and how to pull rows and fields out of the response.

Definitions are normally produced by DefinitionLoader from Cardigann-style
YAML/JSON files, but can be built directly for tests or programmatic use.
Every selector/attribute/filter setting is normalised here into a single
FieldSelector shape, so the parser never has to guess at the config layout.
"""

from enum import Enum
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from scoutarr.services.filters import Filter, build_filters


class HttpMethod(str, Enum):
    """HTTP verbs a search path may use."""
    GET = "GET"
    POST = "POST"

    @classmethod
    def parse(cls, value: Any) -> "HttpMethod":
        """Case-insensitive; anything other than 'post' means GET."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str) and value.strip().lower() == "post":
            return cls.POST
        return cls.GET


class PathSpec(BaseModel):
    """One search path template and the categories it serves."""
    model_config = ConfigDict(frozen=True)

    template: str = Field(..., description="Path template, e.g. /search/{{ .Keywords }}/1/")
    method: HttpMethod = Field(HttpMethod.GET, description="Request method")
    categories: Tuple[int, ...] = Field((), description="Category ids this path serves")

    @field_validator("method", mode="before")
    @classmethod
    def _parse_method(cls, value: Any) -> HttpMethod:
        return HttpMethod.parse(value)


class RowSelector(BaseModel):
    """Where the result rows live, and how many leading rows are headers."""
    model_config = ConfigDict(frozen=True)

    selector: str = Field(..., min_length=1, description="CSS selector (HTML) or dotted path (JSON)")
    skip_count: int = Field(0, ge=0, description="Leading rows to drop")


class FieldSelector(BaseModel):
    """How to extract one field from a row."""
    model_config = ConfigDict(frozen=True)

    selector: str = Field(..., description="CSS selector (HTML) or property key (JSON)")
    attribute: Optional[str] = Field(None, description="Read this attribute instead of the text")
    filters: Tuple[Filter, ...] = Field((), description="Filter chain applied to the value")

    @field_validator("filters", mode="before")
    @classmethod
    def _build_filters(cls, value: Any) -> Tuple[Filter, ...]:
        return build_filters(value)


class IndexerDefinition(BaseModel):
    """
    Parsed description of one indexer.

    Shared read-only between any number of concurrent searches.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Stable indexer identifier (rate limiter key)")
    name: str = Field("", description="Display name, used to tag releases")
    base_urls: Tuple[str, ...] = Field((), description="Site URLs, the first is canonical")
    search_paths: Tuple[PathSpec, ...] = Field((), description="Search path templates")
    row_selector: Optional[RowSelector] = Field(None, description="Row locator")
    field_selectors: Dict[str, FieldSelector] = Field(default_factory=dict, description="Field locators")
    headers: Tuple[Tuple[str, str], ...] = Field((), description="Extra request headers")
    inputs: Dict[str, Any] = Field(default_factory=dict, description="Query/form parameters")
    request_delay: Optional[float] = Field(None, ge=0, description="Minimum seconds between requests")
    follow_redirect: bool = Field(False, description="Follow HTTP redirects")

    @field_validator("field_selectors", mode="before")
    @classmethod
    def _normalize_fields(cls, value: Any) -> Dict[str, Any]:
        if not value:
            return {}
        return {
            name: {"selector": spec} if isinstance(spec, str) else spec
            for name, spec in value.items()
        }

    @property
    def display_name(self) -> str:
        return self.name or self.id

    @property
    def canonical_url(self) -> Optional[str]:
        return self.base_urls[0] if self.base_urls else None


__all__ = [
    "HttpMethod",
    "PathSpec",
    "RowSelector",
    "FieldSelector",
    "IndexerDefinition",
]
