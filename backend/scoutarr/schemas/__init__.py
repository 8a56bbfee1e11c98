"""
Schemas Package

Pydantic models shared across the search pipeline: indexer definitions,
per-call search inputs, releases and quality profiles.
"""

from scoutarr.schemas.definition import (
    HttpMethod,
    PathSpec,
    RowSelector,
    FieldSelector,
    IndexerDefinition,
)

from scoutarr.schemas.search import (
    SearchOptions,
    UserConfig,
    RequestParams,
)

from scoutarr.schemas.release import (
    QualityInfo,
    Release,
)

from scoutarr.schemas.quality import (
    QualityRules,
    QualityProfile,
    RejectionReason,
    MatchResult,
)

__all__ = [
    # Definition
    'HttpMethod',
    'PathSpec',
    'RowSelector',
    'FieldSelector',
    'IndexerDefinition',
    # Search
    'SearchOptions',
    'UserConfig',
    'RequestParams',
    # Release
    'QualityInfo',
    'Release',
    # Quality
    'QualityRules',
    'QualityProfile',
    'RejectionReason',
    'MatchResult',
]
