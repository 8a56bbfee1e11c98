"""
Release Schemas

A Release is one normalized, rankable search result. Releases are only built
by the result parser and never mutated afterwards.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class QualityInfo(BaseModel):
    """Quality signals extracted from a release title."""
    model_config = ConfigDict(frozen=True)

    resolution: Optional[str] = Field(None, examples=["1080p"])
    source: Optional[str] = Field(None, examples=["BluRay"])
    codec: Optional[str] = Field(None, examples=["x264"])
    audio: Optional[str] = Field(None, examples=["DTS-HD MA"])
    hdr: bool = False
    proper: bool = False
    repack: bool = False

    def description(self) -> str:
        parts = [self.resolution, self.source, self.codec, self.audio]
        if self.hdr:
            parts.append("HDR")
        if self.proper:
            parts.append("PROPER")
        if self.repack:
            parts.append("REPACK")
        return " ".join(p for p in parts if p)


class Release(BaseModel):
    """Normalized search result from one indexer."""
    model_config = ConfigDict(frozen=True)

    title: str = Field(..., min_length=1)
    indexer: str = Field(..., description="Display name of the indexer that returned it")
    size: int = Field(0, ge=0, description="Size in bytes")
    seeders: int = Field(0, ge=0)
    leechers: int = Field(0, ge=0)
    download_url: str = Field(..., min_length=1, description="Magnet link or .torrent/.nzb URL")
    info_url: Optional[str] = Field(None, description="Details page")
    published_at: Optional[datetime] = None
    category: Optional[int] = None
    imdb_id: Optional[str] = None
    tmdb_id: Optional[int] = None
    quality: Optional[QualityInfo] = None
    metadata: Optional[Dict[str, Any]] = Field(None, description="Extra indexer fields")

    # ============================================================================
    # Metrics
    # ============================================================================

    def health_score(self) -> float:
        """
        Estimate how likely the download is to complete, from 0.0 to 1.0.

        Weighted towards the seeder ratio with a bonus for absolute seeder
        count. A release nobody seeds scores 0.1 if it has peers at all.
        """
        total = self.seeders + self.leechers
        if total == 0:
            return 0.0
        if self.seeders == 0:
            return 0.1
        return min(1.0, self.seeders / total + self.seeders / 100)

    def format_size(self) -> str:
        """Human-readable size, e.g. '1.5 GB'."""
        size = self.size
        if size < 1024:
            return f"{size} B"
        if size < 1024 ** 2:
            return f"{size / 1024:.1f} KB"
        if size < 1024 ** 3:
            return f"{size / 1024 ** 2:.1f} MB"
        return f"{size / 1024 ** 3:.1f} GB"

    def quality_description(self) -> str:
        """Short quality summary such as '1080p BluRay x264 HDR'."""
        if self.quality is None:
            return "Unknown"
        return self.quality.description() or "Unknown"
