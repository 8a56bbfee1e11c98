"""
Quality Matcher Service

Matches and scores releases against a user's quality profile.

This module provides functionality to:
    - Check if a release meets a quality profile's requirements
    - Calculate quality scores for ranking multiple matches
    - Determine if a release would be an upgrade for existing media
    - Rank a result list and pick the best candidate

Score Composition (0-100):
    - Quality match   40%   exact match to the preferred resolution
    - Source match    30%   match to preferred sources
    - Size            20%   closer to the middle of the size range
    - Seeder health   10%   more seeders is better
"""

import logging
import math
from typing import List, Optional, Sequence, Tuple

from scoutarr.schemas.quality import MatchResult, QualityProfile, RejectionReason
from scoutarr.schemas.release import Release

logger = logging.getLogger(__name__)

BYTES_PER_MB = 1024 * 1024

QUALITY_LEVELS = {
    "360p": 1,
    "480p": 2,
    "576p": 3,
    "720p": 4,
    "1080p": 5,
    "2160p": 6,
}


def round_half_up(value: float) -> int:
    """Round to the nearest integer, .5 going up."""
    return int(math.floor(value + 0.5))


def quality_level(resolution: Optional[str]) -> int:
    """Numeric rank of a resolution label, 0 when unknown."""
    return QUALITY_LEVELS.get(resolution, 0) if resolution else 0


def _size_bounds(profile: QualityProfile) -> Tuple[float, float]:
    rules = profile.rules
    min_bytes = (rules.min_size_mb or 0) * BYTES_PER_MB
    max_bytes = (rules.max_size_mb or 0) * BYTES_PER_MB
    return min_bytes, max_bytes


def _preferred_quality(profile: QualityProfile) -> Optional[str]:
    if profile.upgrade_until_quality:
        return profile.upgrade_until_quality
    return profile.qualities[-1] if profile.qualities else None


# ============================================================================
# Acceptance
# ============================================================================

def _check_quality_allowed(release: Release, profile: QualityProfile) -> Optional[RejectionReason]:
    if release.quality is None:
        return RejectionReason.QUALITY_UNKNOWN
    if release.quality.resolution not in profile.qualities:
        return RejectionReason.QUALITY_NOT_ALLOWED
    return None


def _check_size_constraints(release: Release, profile: QualityProfile) -> Optional[RejectionReason]:
    min_bytes, max_bytes = _size_bounds(profile)
    if min_bytes > 0 and release.size < min_bytes:
        return RejectionReason.TOO_SMALL
    if max_bytes > 0 and release.size > max_bytes:
        return RejectionReason.TOO_LARGE
    return None


def _check_source_allowed(release: Release, profile: QualityProfile) -> Optional[RejectionReason]:
    # No source is blocked yet; blocked_sources would be checked here
    return None


def matches(release: Release, profile: QualityProfile) -> MatchResult:
    """
    Check a release against a profile.

    Checks run in order (quality, size, source) and the first failure wins.

    Returns:
        MatchResult accepted with a 0-100 score, or rejected with a reason
    """
    for check in (_check_quality_allowed, _check_size_constraints, _check_source_allowed):
        reason = check(release, profile)
        if reason is not None:
            logger.debug(f"Rejected '{release.title}': {reason.value}")
            return MatchResult.reject(reason)

    return MatchResult.accept(calculate_score(release, profile))


# ============================================================================
# Scoring
# ============================================================================

def _score_quality_match(release: Release, profile: QualityProfile) -> int:
    if release.quality is None:
        return 0

    resolution = release.quality.resolution
    preferred = _preferred_quality(profile)

    if preferred is not None and resolution == preferred:
        return 100

    if resolution in profile.qualities:
        result_level = quality_level(resolution)
        preferred_level = quality_level(preferred)
        if preferred_level == 0:
            return 50
        if result_level <= preferred_level:
            return 50 + round_half_up(result_level / preferred_level * 49)
        return 50

    return 0


def _score_source_match(release: Release, profile: QualityProfile) -> int:
    if release.quality is None:
        return 50

    preferred_sources = profile.rules.preferred_sources
    if not preferred_sources:
        return 50

    source = release.quality.source or ""
    if any(preferred in source for preferred in preferred_sources):
        return 100
    return 25


def _score_size(release: Release, profile: QualityProfile) -> int:
    min_bytes, max_bytes = _size_bounds(profile)
    if min_bytes == 0 and max_bytes == 0:
        return 50

    mid_size = (min_bytes + max_bytes) / 2
    size_range = max_bytes - min_bytes
    if size_range <= 0:
        return 50

    distance_from_mid = abs(release.size - mid_size)
    return max(0, 100 - round_half_up(distance_from_mid / size_range * 100))


def _score_seeder_health(release: Release) -> int:
    seeders = release.seeders
    if seeders == 0:
        return 0
    if seeders < 5:
        return 30
    if seeders < 20:
        return 60
    if seeders < 50:
        return 80
    return 100


def calculate_score(release: Release, profile: QualityProfile) -> int:
    """
    Weighted 0-100 score of a release for a profile.

    Does not check acceptance; use matches() for that.
    """
    return round_half_up(
        _score_quality_match(release, profile) * 0.4
        + _score_source_match(release, profile) * 0.3
        + _score_size(release, profile) * 0.2
        + _score_seeder_health(release) * 0.1
    )


# ============================================================================
# Upgrades & Ranking
# ============================================================================

def is_upgrade(release: Release, profile: QualityProfile, current_quality: Optional[str]) -> bool:
    """
    Would grabbing this release improve on what is already in the library?

    Args:
        release: Candidate release
        profile: Quality profile
        current_quality: Resolution currently owned (None if nothing is owned)
    """
    if not profile.upgrades_allowed:
        return False
    if release.quality is None:
        return False
    if current_quality is None:
        return True

    resolution = release.quality.resolution
    if resolution not in profile.qualities:
        return False
    if profile.upgrade_until_quality and current_quality == profile.upgrade_until_quality:
        return False
    return quality_level(resolution) > quality_level(current_quality)


def rank_releases(releases: Sequence[Release], profile: QualityProfile) -> List[Tuple[Release, int]]:
    """
    Accepted releases with their scores, best first.

    Ties are broken by seeders (descending), then by original order.
    """
    accepted = []
    for index, release in enumerate(releases):
        result = matches(release, profile)
        if result.accepted:
            accepted.append((index, release, result.score))

    accepted.sort(key=lambda item: (-item[2], -item[1].seeders, item[0]))
    logger.debug(f"Ranked {len(accepted)}/{len(releases)} releases for profile {profile.name or '<unnamed>'}")
    return [(release, score) for _, release, score in accepted]


def select_best(releases: Sequence[Release], profile: QualityProfile) -> Optional[Release]:
    """Highest-ranked accepted release, or None."""
    ranked = rank_releases(releases, profile)
    return ranked[0][0] if ranked else None
