"""
Quality Parser Service

Extracts quality signals (resolution, source, codec, audio, HDR and the
PROPER/REPACK flags) from a release title using ordered regex tables.

The search pipeline calls ``extract_quality`` for every release it builds.
Any callable with the same signature can be injected instead.

Usage Example:
    >>> from scoutarr.services.quality_parser import extract_quality
    >>> info = extract_quality("Movie.2024.2160p.UHD.BluRay.REMUX.HDR.TrueHD.Atmos-GRP")
    >>> info.resolution, info.source, info.hdr
    ('2160p', 'REMUX', True)
"""

import logging
import re
from typing import Callable, Dict, List, Optional

from scoutarr.schemas.release import QualityInfo

logger = logging.getLogger(__name__)

QualityExtractor = Callable[[str], Optional[QualityInfo]]


# ============================================================================
# Regex patterns for title parsing (first label whose pattern matches wins)
# ============================================================================

# Resolution patterns, interlaced and marketing names map to the progressive label
RESOLUTION_PATTERNS: Dict[str, List[str]] = {
    '2160p': [r'2160[pi]', r'\b4k\b', r'\buhd\b'],
    '1080p': [r'1080[pi]'],
    '720p': [r'720[pi]'],
    '576p': [r'576[pi]'],
    '480p': [r'480[pi]'],
    '360p': [r'360[pi]'],
}

# Source patterns (order matters - check more specific first)
SOURCE_PATTERNS: Dict[str, List[str]] = {
    'REMUX': [r'remux', r'bdremux'],
    'BluRay': [r'blu[\-\.\s]?ray', r'bdrip', r'brrip', r'\bbd\d{2}\b'],
    'WEB-DL': [r'web[\-\.\s]?dl', r'webdl'],
    'WEBRip': [r'webrip', r'web[\-\.]rip'],
    'HDTV': [r'hdtv'],
    'DVDRip': [r'dvdrip', r'dvd[\-\.]rip'],
    'DVD': [r'\bdvd(?:r|5|9)?\b'],
    'HDRip': [r'hdrip', r'hd[\-\.]rip'],
    'CAM': [r'\bcam\b', r'camrip', r'hdcam'],
    'TS': [r'telesync', r'hdts', r'\bts\b'],
}

# Video codec patterns
CODEC_PATTERNS: Dict[str, List[str]] = {
    'x265': [r'x265', r'hevc', r'h\.?265'],
    'x264': [r'x264', r'\bavc\b', r'h\.?264'],
    'AV1': [r'\bav1\b'],
    'VP9': [r'\bvp9\b'],
    'XviD': [r'xvid', r'divx'],
    'MPEG-2': [r'mpeg[\-\.]?2'],
}

# Audio codec patterns
AUDIO_PATTERNS: Dict[str, List[str]] = {
    'TrueHD': [r'truehd', r'true[\-\.]hd'],
    'Atmos': [r'atmos'],
    'DTS-HD MA': [r'dts[\-\.]?hd[\-\.]?ma', r'dts[\-\.]?hdma'],
    'DTS-HD': [r'dts[\-\.]?hd'],
    'DTS': [r'\bdts\b'],
    'DD+': [r'\bdd\+', r'\bddp', r'e[\-\.]?ac[\-\.]?3'],
    'DD5.1': [r'\bdd5[\.\s]?1', r'\bac[\-\.]?3'],
    'AAC': [r'\baac'],
    'FLAC': [r'\bflac\b'],
    'Opus': [r'\bopus\b'],
    'MP3': [r'\bmp3\b'],
}

# HDR patterns
HDR_PATTERNS: List[str] = [
    r'dolby[\-\.\s]?vision', r'\bdv\b', r'dovi',
    r'hdr10[\+p]', r'hdr10plus', r'hdr[\-\.]?10', r'\bhdr\b',
]

PROPER_PATTERNS: List[str] = [r'\bproper\b']

# REPACK detection
REPACK_PATTERNS: List[str] = [r'\brepack\d?\b', r'\brerip\b']


def _match_pattern(text: str, patterns: Dict[str, List[str]]) -> Optional[str]:
    """
    Match text against pattern dictionary.

    Args:
        text: Text to search in (usually a release title)
        patterns: Dict of label -> list of regex patterns

    Returns:
        Matched label if found, None otherwise
    """
    for label, pattern_list in patterns.items():
        for pattern in pattern_list:
            if re.search(pattern, text, re.IGNORECASE):
                return label
    return None


def _match_any(text: str, patterns: List[str]) -> bool:
    return any(re.search(p, text, re.IGNORECASE) for p in patterns)


def extract_quality(title: Optional[str]) -> Optional[QualityInfo]:
    """
    Parse a release title into QualityInfo.

    Args:
        title: Release title, e.g. "Show.S01E02.1080p.WEB-DL.DDP5.1.H.264-GRP"

    Returns:
        QualityInfo, or None when the title carries no recognisable signal
    """
    if not title:
        return None

    info = QualityInfo(
        resolution=_match_pattern(title, RESOLUTION_PATTERNS),
        source=_match_pattern(title, SOURCE_PATTERNS),
        codec=_match_pattern(title, CODEC_PATTERNS),
        audio=_match_pattern(title, AUDIO_PATTERNS),
        hdr=_match_any(title, HDR_PATTERNS),
        proper=_match_any(title, PROPER_PATTERNS),
        repack=_match_any(title, REPACK_PATTERNS),
    )

    if info == QualityInfo():
        logger.debug(f"No quality signal found in title: {title}")
        return None
    return info
