"""
Indexer Adapters for Scoutarr

This package turns declarative indexer definitions into IndexerDefinition
objects the search pipeline can drive.

Available Components:
    - DefinitionLoader: Loads and validates definition YAML/JSON files
    - get_definition_loader / load_definition: singleton helpers

Bundled definitions live in adapters/definitions/ (see Config.DEFINITIONS_DIR):
    - 1337x.yml: HTML results table
    - apibay.yml: JSON search API
"""

from scoutarr.adapters.definition_loader import (
    DefinitionLoader,
    get_definition_loader,
    load_definition,
    normalize_request_delay,
    parse_definition,
)

__all__ = [
    'DefinitionLoader',
    'get_definition_loader',
    'load_definition',
    'normalize_request_delay',
    'parse_definition',
]
