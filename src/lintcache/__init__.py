# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Incremental analysis cache with cross-document invalidation."""

from .cached_analysis import (
    AnalysisOutcome,
    Analyzer,
    CachedAnalysisRunner,
    Document,
    FunctionAnalyzer,
    run_cached_analysis,
)
from .config import Config, ConfigurationError
from .dependency_graph import (
    build_dependency_graph,
    collect_transitive_dependents,
    find_reference_cycles,
)
from .errors import CacheWriteError, InvalidInputError, LintCacheError
from .hashing import hash_analyzer_version, hash_config, hash_content, hash_file
from .logging_setup import StructuredFormatter, setup_logging
from .locking import ReadWriteLock
from .models import CacheEntry, CacheStatistics, DocumentId, Finding
from .references import extract_references, normalize_document_id
from .store import CACHE_VERSION, CacheStore

__version__ = "0.1.0"

__all__ = [
    "AnalysisOutcome",
    "Analyzer",
    "CachedAnalysisRunner",
    "Document",
    "FunctionAnalyzer",
    "run_cached_analysis",
    "Config",
    "ConfigurationError",
    "build_dependency_graph",
    "collect_transitive_dependents",
    "find_reference_cycles",
    "CacheWriteError",
    "InvalidInputError",
    "LintCacheError",
    "hash_analyzer_version",
    "hash_config",
    "hash_content",
    "hash_file",
    "StructuredFormatter",
    "setup_logging",
    "ReadWriteLock",
    "CacheEntry",
    "CacheStatistics",
    "DocumentId",
    "Finding",
    "extract_references",
    "normalize_document_id",
    "CACHE_VERSION",
    "CacheStore",
]
