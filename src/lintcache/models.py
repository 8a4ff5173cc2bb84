# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Core data models for the analysis cache.

This module defines the structures persisted by CacheStore:
- DocumentId: canonical identifier of one document in the corpus
- Finding: opaque analyzer output, stored and replayed verbatim
- CacheEntry: analysis results plus the identity that validates them
- CacheStatistics: counters describing cache effectiveness for one run

All models use JSON-compatible primitives for serialization.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

# Canonical absolute POSIX path, see references.normalize_document_id()
DocumentId = str

# Analyzer-defined, JSON-shaped record (dicts with str keys, lists, scalars);
# the cache never inspects it. Tuples are stored as lists.
Finding = Any


@dataclass(frozen=True)
class CacheEntry:
    """Cached analysis result for a single document.

    An entry is replaced wholesale on re-analysis and never partially
    mutated. It is reusable only while content_hash, analyzer_version_hash
    and config_hash all equal the current values.

    results keeps the analyzer's ordering exactly. references holds the
    documents this document links to; it is kept sorted and de-duplicated
    so serialized caches are stable across runs.
    """

    content_hash: str
    analyzer_version_hash: str
    config_hash: str
    results: Tuple[Finding, ...] = ()
    references: Tuple[DocumentId, ...] = ()
    timestamp: float = field(default_factory=time.time)

    @classmethod
    def create(
        cls,
        content_hash: str,
        analyzer_version_hash: str,
        config_hash: str,
        results: Optional[Iterable[Finding]] = None,
        references: Optional[Iterable[DocumentId]] = None,
        timestamp: Optional[float] = None,
    ) -> "CacheEntry":
        """Build an entry from arbitrary iterables.

        Args:
            content_hash: Digest of the document content.
            analyzer_version_hash: Digest of the analyzer identity.
            config_hash: Digest of the resolved configuration.
            results: Findings in analyzer order. Tuples inside findings are
                     converted to lists, matching what a reload produces.
            references: Documents referenced by this document.
            timestamp: Creation time (default: now).

        Returns:
            New CacheEntry.
        """
        return cls(
            content_hash=content_hash,
            analyzer_version_hash=analyzer_version_hash,
            config_hash=config_hash,
            results=tuple(_json_shape(finding) for finding in results or ()),
            references=tuple(sorted(set(references or ()))),
            timestamp=time.time() if timestamp is None else timestamp,
        )

    def without_reference(self, document_id: DocumentId) -> "CacheEntry":
        """Return a copy whose references exclude document_id."""
        if document_id not in self.references:
            return self
        return CacheEntry(
            content_hash=self.content_hash,
            analyzer_version_hash=self.analyzer_version_hash,
            config_hash=self.config_hash,
            results=self.results,
            references=tuple(ref for ref in self.references if ref != document_id),
            timestamp=self.timestamp,
        )

    def matches(self, content_hash: str, analyzer_version_hash: str, config_hash: str) -> bool:
        """Exact comparison of all three identity hashes."""
        return (
            self.content_hash == content_hash
            and self.analyzer_version_hash == analyzer_version_hash
            and self.config_hash == config_hash
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return {
            "content_hash": self.content_hash,
            "analyzer_version_hash": self.analyzer_version_hash,
            "config_hash": self.config_hash,
            "results": list(self.results),
            "references": list(self.references),
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CacheEntry":
        """Deserialize from JSON-compatible dict.

        Args:
            data: Dictionary produced by to_dict().

        Returns:
            CacheEntry instance.

        Raises:
            KeyError: If required fields are missing from data dict.
            TypeError: If fields have the wrong type.
        """
        hashes = [data["content_hash"], data["analyzer_version_hash"], data["config_hash"]]
        if not all(isinstance(h, str) for h in hashes):
            raise TypeError("Cache entry hashes must be strings")

        results = data.get("results", [])
        references = data.get("references", [])
        if not isinstance(results, list) or not isinstance(references, list):
            raise TypeError("Cache entry results and references must be lists")
        if not all(isinstance(ref, str) for ref in references):
            raise TypeError("Cache entry references must be strings")

        timestamp = data.get("timestamp", 0.0)
        if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
            raise TypeError("Cache entry timestamp must be a number")

        return cls(
            content_hash=hashes[0],
            analyzer_version_hash=hashes[1],
            config_hash=hashes[2],
            results=tuple(results),
            references=tuple(references),
            timestamp=float(timestamp),
        )


@dataclass
class CacheStatistics:
    """Cache performance metrics for one run."""

    hits: int = 0
    misses: int = 0
    invalidations: int = 0
    entry_count: int = 0

    @property
    def hit_rate(self) -> float:
        """Fraction of validity checks that were hits (0.0 when unused)."""
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return {
            "hits": self.hits,
            "misses": self.misses,
            "invalidations": self.invalidations,
            "entry_count": self.entry_count,
            "hit_rate": self.hit_rate,
        }


def _json_shape(value: Any) -> Any:
    """Copy value with every tuple turned into a list, as JSON would."""
    if isinstance(value, dict):
        return {key: _json_shape(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_shape(item) for item in value]
    return value


def entries_to_forward_map(
    entries: Iterable[Tuple[DocumentId, CacheEntry]],
) -> Dict[DocumentId, List[DocumentId]]:
    """Project stored entries onto their forward reference lists."""
    return {document_id: list(entry.references) for document_id, entry in entries}
