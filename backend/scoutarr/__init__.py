"""
Scoutarr

Definition-driven indexer search and release ranking.
"""

__version__ = "1.0.0"
