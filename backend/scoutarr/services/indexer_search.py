"""
Indexer Search Service

Entry points used by the multi-indexer orchestrator:

    search(definition, options, user_config)   -> [Release]
    rank(release, profile)                     -> MatchResult
    is_upgrade(release, profile, current)      -> bool
    rank_releases(releases, profile)           -> [(Release, score)]
    select_best(releases, profile)             -> Release | None

search() runs the whole pipeline (build request, execute, validate, parse)
inside a CorrelationContext so every log record it emits carries the search
id and indexer. Failures are raised as IndexerError subclasses; anything
unexpected is wrapped in SearchFailedError.

Usage Example:
    >>> definition = load_definition("1337x")
    >>> releases = search(definition, SearchOptions(query="Ubuntu 22.04"))
    >>> best = select_best(releases, profile)
"""

from typing import List, Optional

import httpx

from scoutarr.schemas.definition import IndexerDefinition
from scoutarr.schemas.quality import MatchResult, QualityProfile
from scoutarr.schemas.release import Release
from scoutarr.schemas.search import SearchOptions, UserConfig
from scoutarr.services import quality_matcher
from scoutarr.services.exceptions import IndexerError, SearchFailedError
from scoutarr.services.quality_parser import QualityExtractor, extract_quality
from scoutarr.services.rate_limiter import RateLimiter
from scoutarr.services.result_parser import parse_results
from scoutarr.services.search_engine import execute_search
from scoutarr.services.structured_logging import (
    CorrelationContext,
    generate_search_id,
    get_structured_logger,
)

logger = get_structured_logger(__name__)

# Re-exported ranking operations
is_upgrade = quality_matcher.is_upgrade
rank_releases = quality_matcher.rank_releases
select_best = quality_matcher.select_best


def search(
    definition: IndexerDefinition,
    options: SearchOptions,
    user_config: Optional[UserConfig] = None,
    client: Optional[httpx.Client] = None,
    rate_limiter: Optional[RateLimiter] = None,
    quality_extractor: QualityExtractor = extract_quality,
) -> List[Release]:
    """
    Search one indexer and return its normalized releases.

    Args:
        definition: Indexer definition
        options: Query, categories, season/episode and ids
        user_config: Per-user cookies
        client: Optional httpx.Client to reuse
        rate_limiter: Optional limiter instance (the process-wide one by default)
        quality_extractor: Title -> QualityInfo callable

    Returns:
        Releases in the order the indexer listed them

    Raises:
        IndexerError: Any pipeline failure, see services/exceptions.py
    """
    with CorrelationContext(search_id=generate_search_id(), indexer=definition.id):
        logger.info(f"Searching {definition.display_name} for '{options.query}'")

        try:
            response = execute_search(definition, options, user_config, client, rate_limiter)
            releases = parse_results(
                definition,
                response.text,
                definition.display_name,
                quality_extractor
            )
        except IndexerError as e:
            logger.warning(f"Search on {definition.display_name} failed ({e.error_type}): {e.message}")
            raise
        except Exception as e:
            logger.error(f"Unexpected error searching {definition.display_name}: {e}", exc_info=True)
            raise SearchFailedError(f"Unexpected error: {e}") from e

        logger.info(
            f"{definition.display_name} returned {len(releases)} releases",
            extra_data={"releases": len(releases)}
        )
        return releases


def rank(release: Release, profile: QualityProfile) -> MatchResult:
    """Accept or reject a release for a profile, with its score."""
    return quality_matcher.matches(release, profile)
