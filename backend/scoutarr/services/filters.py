"""
Field Filter Pipeline

Indexer definitions transform extracted field values with a small filter DSL.
In definition files a filter is a record ``{name: str, args: [str]}``; at load
time each record is turned into one of the typed variants below, each of which
knows how to ``apply`` itself to a string.

Supported filters:
    - replace(old, new)             literal substring replace, all occurrences
    - re_replace(pattern, repl)     regex replace
    - append(suffix)                value + suffix
    - prepend(prefix)               prefix + value
    - trim([chars])                 strip surrounding whitespace (or chars)
    - dateparse(layout)             identity, dates are parsed downstream
    - anything else                 identity, logged as a likely misconfiguration

Filters are applied as a strict left fold: ``apply_filters(v, [f1, f2])`` is
``f2.apply(f1.apply(v))``. An invalid regex raises InvalidRegexError and
aborts the chain.
"""

import logging
import re
from typing import Any, Dict, List, Literal, Optional, Sequence, Tuple, Union

from pydantic import BaseModel, ConfigDict

from scoutarr.services.exceptions import InvalidRegexError

logger = logging.getLogger(__name__)

# Cardigann definitions come from Go/.NET where groups are written $1 or ${1}
_DOLLAR_GROUP = re.compile(r"\$\{(\d+)\}|\$(\d+)")


class _Filter(BaseModel):
    model_config = ConfigDict(frozen=True)

    def apply(self, value: str) -> str:
        raise NotImplementedError


class ReplaceFilter(_Filter):
    name: Literal["replace"] = "replace"
    old: str
    new: str

    def apply(self, value: str) -> str:
        return value.replace(self.old, self.new)


class RegexReplaceFilter(_Filter):
    name: Literal["re_replace"] = "re_replace"
    pattern: str
    replacement: str

    def apply(self, value: str) -> str:
        try:
            regex = re.compile(self.pattern)
        except re.error as e:
            raise InvalidRegexError(self.pattern, str(e)) from e

        replacement = _DOLLAR_GROUP.sub(
            lambda m: f"\\g<{m.group(1) or m.group(2)}>",
            self.replacement
        )
        try:
            return regex.sub(replacement, value)
        except (re.error, IndexError) as e:
            raise InvalidRegexError(self.pattern, f"bad replacement {self.replacement!r}: {e}") from e


class AppendFilter(_Filter):
    name: Literal["append"] = "append"
    suffix: str

    def apply(self, value: str) -> str:
        return value + self.suffix


class PrependFilter(_Filter):
    name: Literal["prepend"] = "prepend"
    prefix: str

    def apply(self, value: str) -> str:
        return self.prefix + value


class TrimFilter(_Filter):
    name: Literal["trim"] = "trim"
    chars: Optional[str] = None

    def apply(self, value: str) -> str:
        return value.strip(self.chars)


class DateParseFilter(_Filter):
    """Kept for definition compatibility; the date field is parsed when the Release is built."""

    name: Literal["dateparse"] = "dateparse"
    layout: Optional[str] = None

    def apply(self, value: str) -> str:
        return value


class UnknownFilter(_Filter):
    name: str
    args: Tuple[str, ...] = ()

    def apply(self, value: str) -> str:
        logger.debug(f"Unknown filter '{self.name}' passed value through unchanged")
        return value


Filter = Union[
    ReplaceFilter,
    RegexReplaceFilter,
    AppendFilter,
    PrependFilter,
    TrimFilter,
    DateParseFilter,
    UnknownFilter,
]

# name -> (variant, argument field names, required argument count)
_FILTER_SIGNATURES: Dict[str, Tuple[type, Tuple[str, ...], int]] = {
    "replace": (ReplaceFilter, ("old", "new"), 2),
    "re_replace": (RegexReplaceFilter, ("pattern", "replacement"), 2),
    "append": (AppendFilter, ("suffix",), 1),
    "prepend": (PrependFilter, ("prefix",), 1),
    "trim": (TrimFilter, ("chars",), 0),
    "dateparse": (DateParseFilter, ("layout",), 0),
}

KNOWN_FILTERS = tuple(_FILTER_SIGNATURES)


def normalize_args(args: Any) -> List[str]:
    """Definition files may give a single scalar instead of a list."""
    if args is None:
        return []
    if isinstance(args, (list, tuple)):
        return ["" if a is None else str(a) for a in args]
    return [str(args)]


def validate_filter_spec(spec: Any) -> List[str]:
    """
    Check the shape of a raw ``{name, args}`` record.

    Returns:
        List of human-readable problems (empty if the record is usable)
    """
    if isinstance(spec, str):
        return []
    if not isinstance(spec, dict):
        return [f"filter must be a mapping or a name, got {type(spec).__name__}"]

    name = spec.get("name")
    if not name or not isinstance(name, str):
        return ["filter is missing a 'name'"]

    signature = _FILTER_SIGNATURES.get(name)
    if signature is None:
        return []

    _, _, required = signature
    args = normalize_args(spec.get("args"))
    if len(args) < required:
        return [f"filter '{name}' needs {required} argument(s), got {len(args)}"]
    return []


def build_filter(spec: Any) -> Filter:
    """
    Turn a raw ``{name, args}`` record (or a bare name) into a typed filter.

    Raises:
        ValueError: If a known filter lacks required arguments
    """
    if isinstance(spec, _Filter):
        return spec

    if isinstance(spec, str):
        spec = {"name": spec}

    problems = validate_filter_spec(spec)
    if problems:
        raise ValueError(problems[0])

    name = spec["name"]
    args = normalize_args(spec.get("args"))

    signature = _FILTER_SIGNATURES.get(name)
    if signature is None:
        logger.warning(
            f"Unsupported filter '{name}' will pass values through unchanged"
        )
        return UnknownFilter(name=name, args=tuple(args))

    variant, fields, _ = signature
    return variant(**dict(zip(fields, args)))


def build_filters(specs: Optional[Sequence[Any]]) -> Tuple[Filter, ...]:
    """Build a filter chain from raw definition records."""
    return tuple(build_filter(spec) for spec in (specs or ()))


def apply_filters(value: str, filters: Sequence[Filter]) -> str:
    """
    Apply filters left-to-right.

    Args:
        value: Extracted field value
        filters: Typed filter chain

    Returns:
        Transformed value

    Raises:
        InvalidRegexError: If a re_replace pattern does not compile
    """
    for f in filters:
        value = f.apply(value)
    return value
