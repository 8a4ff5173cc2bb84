# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Persistent cache store for incremental analysis results.

This module implements the on-disk store that decides whether a document's
previous analysis may be reused. One store holds every entry for one corpus
and configuration, persisted as a single JSON file:

    {"version": 1, "entries": {"<document id>": {<CacheEntry.to_dict()>}}}

Key Features:
- Exact validity check on content, analyzer version and config hashes
- Transitive invalidation through the reverse reference graph, cycle safe
- Corruption tolerant loading: a damaged or outdated file yields an empty store
- Atomic saving: a crash mid-save leaves the previous file intact
- Statistics tracking for cache effectiveness

Error Handling:
- Missing cache file: empty store, logged at INFO
- Corrupt JSON, wrong schema version, malformed entry: empty store, WARNING
- Write failures: CacheWriteError raised to the caller
- Invalid identifiers or entries: InvalidInputError raised immediately

Thread Safety:
- ReadWriteLock protects _entries: get/has/is_valid/entries share access,
  set/delete/clear/invalidate_dependents/load are exclusive
- save() snapshots under the read lock, so no writer is in flight while the
  snapshot is taken; _save_lock serializes concurrent saves
- _stats_lock protects _stats, which readers also update
"""

import json
import logging
import os
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from lintcache.dependency_graph import (
    ReferenceGraph,
    build_dependency_graph,
    collect_transitive_dependents,
)
from lintcache.errors import CacheWriteError, InvalidInputError
from lintcache.locking import ReadWriteLock
from lintcache.models import CacheEntry, CacheStatistics, DocumentId, entries_to_forward_map

logger = logging.getLogger(__name__)

# Current cache format version. Bump when the format changes incompatibly.
CACHE_VERSION = 1

# Default cache file name within the cache directory
CACHE_FILENAME = "cache.json"


class CacheStore:
    """Document id -> CacheEntry mapping with persistence and invalidation.

    The store is an explicit object owned by the driver and shared by
    reference with worker threads; there is no module-level instance.

    Usage:
        store = CacheStore(Path(".lintcache") / "cache.json")
        store.load()
        if store.is_valid(doc_id, content_hash, version_hash, config_hash):
            results = store.get(doc_id).results
        else:
            store.invalidate_dependents(doc_id)
            store.set(doc_id, CacheEntry.create(...))
        store.save()
    """

    def __init__(self, cache_path: Union[str, Path]) -> None:
        """Initialize an empty store backed by cache_path.

        Nothing is read until load() is called.

        Args:
            cache_path: Path of the JSON cache file. Parent directories need
                        not exist; save() creates them.
        """
        self._cache_path = Path(cache_path)
        self._entries: Dict[DocumentId, CacheEntry] = {}

        self._lock = ReadWriteLock()
        self._save_lock = threading.Lock()
        self._stats_lock = threading.Lock()
        self._stats = CacheStatistics()

        logger.debug(f"CacheStore initialized with cache_path={self._cache_path}")

    @property
    def cache_path(self) -> Path:
        """Path of the backing cache file."""
        return self._cache_path

    @property
    def size(self) -> int:
        """Number of cached entries."""
        with self._lock.read():
            return len(self._entries)

    def __len__(self) -> int:
        return self.size

    def __contains__(self, document_id: object) -> bool:
        return isinstance(document_id, str) and self.has(document_id)

    def load(self) -> None:
        """Replace the in-memory entries with the contents of the cache file.

        Never raises for a missing, unreadable, corrupt or outdated file;
        each of those yields an empty store. A partially valid file is
        discarded entirely rather than trusted entry by entry.
        """
        entries = self._read_cache_file()
        with self._lock.write():
            self._entries = entries
        with self._stats_lock:
            self._stats.entry_count = len(entries)

    def save(self) -> None:
        """Persist all entries to the cache file.

        Writes to a sibling temporary file, flushes it to disk, then renames
        it over the cache file so readers never observe a torn write.

        Raises:
            CacheWriteError: If directories cannot be created, an entry
                             holds findings that are not JSON-serializable,
                             or the file cannot be written.
        """
        with self._save_lock:
            with self._lock.read():
                payload: Dict[str, Any] = {
                    "version": CACHE_VERSION,
                    "entries": {
                        document_id: entry.to_dict()
                        for document_id, entry in sorted(self._entries.items())
                    },
                }
                entry_count = len(self._entries)

            try:
                serialized = json.dumps(payload, indent=2, allow_nan=False)
            except (TypeError, ValueError) as e:
                logger.error(f"Cache entries are not JSON-serializable: {e}")
                raise CacheWriteError(f"Cannot serialize cache for {self._cache_path}: {e}") from e

            tmp_path = self._cache_path.with_name(self._cache_path.name + ".tmp")
            try:
                self._cache_path.parent.mkdir(parents=True, exist_ok=True)
                with open(tmp_path, "w", encoding="utf-8") as f:
                    f.write(serialized)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp_path, self._cache_path)
            except OSError as e:
                logger.error(f"Failed to write cache file {self._cache_path}: {e}")
                self._remove_temp_file(tmp_path)
                raise CacheWriteError(f"Cannot write cache file {self._cache_path}: {e}") from e

        logger.debug(f"Saved {entry_count} cache entries to {self._cache_path}")

    def get(self, document_id: DocumentId) -> Optional[CacheEntry]:
        """Get the cached entry for a document.

        Args:
            document_id: Document to look up.

        Returns:
            The stored CacheEntry, or None if absent.
        """
        with self._lock.read():
            return self._entries.get(document_id)

    def set(self, document_id: DocumentId, entry: CacheEntry) -> None:
        """Store an entry, fully replacing any previous one.

        A reference from the document to itself is dropped.

        Args:
            document_id: Document the entry belongs to.
            entry: Analysis result and identity hashes.

        Raises:
            InvalidInputError: If document_id is empty or entry is not a
                               CacheEntry.
        """
        self._validate_document_id(document_id)
        if not isinstance(entry, CacheEntry):
            raise InvalidInputError(f"Expected CacheEntry, got {type(entry).__name__}")

        entry = entry.without_reference(document_id)
        with self._lock.write():
            self._entries[document_id] = entry
            count = len(self._entries)
        with self._stats_lock:
            self._stats.entry_count = count

    def has(self, document_id: DocumentId) -> bool:
        """Check if an entry exists for a document."""
        with self._lock.read():
            return document_id in self._entries

    def delete(self, document_id: DocumentId) -> bool:
        """Remove the entry for a document.

        Idempotent: deleting an absent document is not an error.

        Args:
            document_id: Document to remove.

        Returns:
            True if an entry was removed.
        """
        with self._lock.write():
            removed = self._entries.pop(document_id, None) is not None
            count = len(self._entries)
        with self._stats_lock:
            self._stats.entry_count = count
        return removed

    def clear(self) -> None:
        """Remove all entries. The cache file is untouched until save()."""
        with self._lock.write():
            self._entries.clear()
        with self._stats_lock:
            self._stats.entry_count = 0
        logger.debug("Cache store cleared")

    def entries(self) -> List[Tuple[DocumentId, CacheEntry]]:
        """Snapshot of all (document id, entry) pairs, order unspecified."""
        with self._lock.read():
            return list(self._entries.items())

    def is_valid(
        self,
        document_id: DocumentId,
        content_hash: str,
        analyzer_version_hash: str,
        config_hash: str,
    ) -> bool:
        """Check whether the stored entry may be reused.

        Valid only when an entry exists and all three hashes equal the stored
        ones exactly; a single mismatch invalidates it.

        Args:
            document_id: Document to check.
            content_hash: Current content digest.
            analyzer_version_hash: Current analyzer identity digest.
            config_hash: Current configuration digest.

        Returns:
            True on a cache hit.
        """
        with self._lock.read():
            entry = self._entries.get(document_id)
            valid = entry is not None and entry.matches(
                content_hash, analyzer_version_hash, config_hash
            )

        with self._stats_lock:
            if valid:
                self._stats.hits += 1
            else:
                self._stats.misses += 1
        return valid

    def invalidate_dependents(self, document_id: DocumentId) -> List[DocumentId]:
        """Delete every entry that transitively references a changed document.

        The reverse graph is rebuilt from all stored references at call time.
        The changed document's own entry is left in place; removing or
        replacing it is the caller's decision.

        Args:
            document_id: Document whose content changed.

        Returns:
            Removed document ids, direct dependents first, each once.
        """
        with self._lock.write():
            reverse = build_dependency_graph(entries_to_forward_map(self._entries.items()))
            dependents = collect_transitive_dependents(reverse, document_id)
            for dependent in dependents:
                self._entries.pop(dependent, None)
            count = len(self._entries)

        with self._stats_lock:
            self._stats.invalidations += len(dependents)
            self._stats.entry_count = count

        if dependents:
            logger.info(f"Invalidated {len(dependents)} dependents of {document_id}")
        return dependents

    def dependency_graph(self) -> ReferenceGraph:
        """Reverse reference graph derived from the stored entries."""
        with self._lock.read():
            return build_dependency_graph(entries_to_forward_map(self._entries.items()))

    def get_statistics(self) -> CacheStatistics:
        """Get a copy of the cache statistics."""
        with self._stats_lock:
            return CacheStatistics(
                hits=self._stats.hits,
                misses=self._stats.misses,
                invalidations=self._stats.invalidations,
                entry_count=self._stats.entry_count,
            )

    def _read_cache_file(self) -> Dict[DocumentId, CacheEntry]:
        """Read and validate the cache file, returning {} on any problem."""
        try:
            with open(self._cache_path, encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            logger.info(f"Cache file not found at {self._cache_path}, starting empty")
            return {}
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning(f"Cache file {self._cache_path} is unreadable: {e}, starting empty")
            return {}

        if not isinstance(data, dict):
            logger.warning(
                f"Cache file {self._cache_path} must contain a JSON object, "
                f"got {type(data).__name__}, starting empty"
            )
            return {}

        version = data.get("version")
        if type(version) is not int or version != CACHE_VERSION:
            logger.warning(
                f"Cache version mismatch in {self._cache_path} "
                f"(found {version!r}, expected {CACHE_VERSION}), starting empty"
            )
            return {}

        raw_entries = data.get("entries", {})
        if not isinstance(raw_entries, dict):
            logger.warning(f"Cache file {self._cache_path} has malformed entries, starting empty")
            return {}

        entries: Dict[DocumentId, CacheEntry] = {}
        for document_id, raw_entry in raw_entries.items():
            try:
                if not document_id or not isinstance(raw_entry, dict):
                    raise TypeError("entry must be a JSON object keyed by a non-empty id")
                entry = CacheEntry.from_dict(raw_entry)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(
                    f"Malformed cache entry {document_id!r} in {self._cache_path}: {e}, "
                    f"starting empty"
                )
                return {}
            entries[document_id] = entry.without_reference(document_id)

        logger.debug(f"Loaded {len(entries)} entries from {self._cache_path}")
        return entries

    @staticmethod
    def _validate_document_id(document_id: DocumentId) -> None:
        """Reject identifiers that cannot key the store."""
        if not isinstance(document_id, str):
            raise InvalidInputError(
                f"Document id must be a string, got {type(document_id).__name__}"
            )
        if not document_id:
            raise InvalidInputError("Document id cannot be empty")

    @staticmethod
    def _remove_temp_file(tmp_path: Path) -> None:
        """Best-effort cleanup of a partially written temporary file."""
        try:
            tmp_path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Could not remove temporary cache file {tmp_path}: {e}")
