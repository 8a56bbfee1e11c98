"""
Quality Profile Schemas

A QualityProfile is the user's acceptance and ranking criteria; a
MatchResult is the verdict for one release against it.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class QualityRules(BaseModel):
    """Size bounds and source preferences. Zero or missing bound means unbounded."""
    model_config = ConfigDict(frozen=True)

    min_size_mb: Optional[float] = Field(None, ge=0)
    max_size_mb: Optional[float] = Field(None, ge=0)
    preferred_sources: List[str] = Field(default_factory=list, examples=[["BluRay", "WEB-DL"]])


class QualityProfile(BaseModel):
    """User quality preferences."""
    model_config = ConfigDict(frozen=True)

    name: Optional[str] = None
    qualities: List[str] = Field(
        default_factory=list,
        description="Allowed resolutions, lowest to highest",
        examples=[["720p", "1080p", "2160p"]]
    )
    upgrades_allowed: bool = False
    upgrade_until_quality: Optional[str] = Field(None, examples=["1080p"])
    rules: QualityRules = Field(default_factory=QualityRules)


class RejectionReason(str, Enum):
    """Why a release was rejected."""
    QUALITY_UNKNOWN = "quality_unknown"
    QUALITY_NOT_ALLOWED = "quality_not_allowed"
    TOO_SMALL = "too_small"
    TOO_LARGE = "too_large"


@dataclass(frozen=True)
class MatchResult:
    """Outcome of matching a release against a profile."""
    accepted: bool
    score: int = 0
    reason: Optional[RejectionReason] = None

    @classmethod
    def accept(cls, score: int) -> "MatchResult":
        return cls(accepted=True, score=score)

    @classmethod
    def reject(cls, reason: RejectionReason) -> "MatchResult":
        return cls(accepted=False, reason=reason)

    def __bool__(self) -> bool:
        return self.accepted
