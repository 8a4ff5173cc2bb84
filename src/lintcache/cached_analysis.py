# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Cached analysis driver.

Wraps an opaque, versioned Analyzer with the cache store so that only
documents whose content, configuration, or analyzer changed are re-analyzed,
together with every document that transitively references a changed one.

Algorithm Overview:
1. Check phase (parallel, read-only): hash each document and ask the store
   whether its entry is still valid.
2. Invalidation phase (sequential): for every miss, delete the transitive
   dependents from the store. A dependent that was a hit in this run is
   demoted to a miss.
3. Analysis phase (parallel): analyze every miss, extract its references and
   replace its entry wholesale.

Saving is left to the caller and must happen after run() returns, when no
writer is in flight. run_cached_analysis() does load -> run -> save.

Error Handling:
- Missing document: outcome carries an error, its stale entry is deleted and
  its dependents are invalidated (their links may now be dead)
- Analyzer exception: logged, outcome carries an error, no entry written
- Invalid configuration value: InvalidInputError at construction
- Save failure: CacheWriteError propagates from run_cached_analysis()
"""

import concurrent.futures
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from lintcache.config import Config
from lintcache.dependency_graph import find_reference_cycles
from lintcache.hashing import hash_analyzer_version, hash_config, hash_content
from lintcache.logging_setup import setup_logging
from lintcache.models import CacheEntry, DocumentId, Finding, entries_to_forward_map
from lintcache.references import extract_references, normalize_document_id
from lintcache.store import CacheStore

logger = logging.getLogger(__name__)


class Analyzer(ABC):
    """Abstract base class for document analyzers.

    The cache never interprets findings; it only needs a stable version
    identity so that upgrading the analyzer invalidates every cached result.
    """

    @property
    @abstractmethod
    def version(self) -> Any:
        """Analyzer identity: a version string or a list of rule descriptors."""
        pass

    @abstractmethod
    def analyze(self, document_id: DocumentId, content: str) -> List[Finding]:
        """Analyze one document.

        Called concurrently from worker threads, so implementations must not
        share mutable state between calls.

        Args:
            document_id: Normalized identifier of the document.
            content: Document text.

        Returns:
            Findings in the order they should be reported. Must be
            JSON-serializable for the cache to persist them.
        """
        pass


class FunctionAnalyzer(Analyzer):
    """Adapter turning a plain function into an Analyzer."""

    def __init__(self, func: Callable[[DocumentId, str], Iterable[Finding]], version: Any):
        self._func = func
        self._version = version

    @property
    def version(self) -> Any:
        return self._version

    def analyze(self, document_id: DocumentId, content: str) -> List[Finding]:
        return list(self._func(document_id, content))


@dataclass
class Document:
    """One document submitted for analysis.

    When content is None the document is read from disk at document_id.
    """

    document_id: Union[str, Path]
    content: Optional[Union[str, bytes]] = None


@dataclass
class AnalysisOutcome:
    """Result of analyzing (or replaying) one document."""

    document_id: DocumentId
    results: List[Finding] = field(default_factory=list)
    from_cache: bool = False
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class _CheckedDocument:
    """Intermediate state between the check and analysis phases."""

    document_id: DocumentId
    text: Optional[str] = None
    content_hash: Optional[str] = None
    hit: bool = False
    error: Optional[str] = None


class CachedAnalysisRunner:
    """Runs an Analyzer over documents, reusing valid cached results.

    The store is owned by the caller and passed in; the runner holds no
    global state, so several runners may exist for different corpora.

    Usage:
        store = CacheStore(config.cache_path)
        store.load()
        runner = CachedAnalysisRunner(store, analyzer, lint_config)
        outcomes = runner.run(documents)
        store.save()
    """

    def __init__(
        self,
        store: CacheStore,
        analyzer: Analyzer,
        config_value: Any = None,
        max_workers: int = 4,
        corpus_root: Optional[Union[str, Path]] = None,
    ):
        """Initialize the runner.

        Args:
            store: Cache store, already loaded.
            analyzer: Analyzer producing findings.
            config_value: Resolved analyzer configuration, any JSON shape.
            max_workers: Worker threads for the check and analysis phases.
            corpus_root: Root directory bounding reference extraction.

        Raises:
            InvalidInputError: If config_value or the analyzer version
                               cannot be hashed.
            ValueError: If max_workers is not positive.
        """
        if max_workers <= 0:
            raise ValueError(f"max_workers must be positive: {max_workers}")

        self.store = store
        self.analyzer = analyzer
        self.max_workers = max_workers
        self.corpus_root = corpus_root
        self.analyzer_version_hash = hash_analyzer_version(analyzer.version)
        self.config_hash = hash_config(config_value if config_value is not None else {})

    def run(self, documents: Iterable[Document]) -> Dict[DocumentId, AnalysisOutcome]:
        """Analyze documents, replaying cached results where valid.

        Args:
            documents: Documents to analyze. Duplicate ids (after
                       normalization) are analyzed once.

        Returns:
            Mapping of normalized document id -> AnalysisOutcome.

        Raises:
            InvalidInputError: If a document id is empty.
        """
        unique: Dict[DocumentId, Document] = {}
        for document in documents:
            document_id = normalize_document_id(document.document_id)
            if document_id in unique:
                logger.warning(f"Duplicate document {document_id}, analyzing once")
                continue
            unique[document_id] = document

        if not unique:
            return {}

        checked = self._map_parallel(
            lambda item: self._check(item[0], item[1]), list(unique.items())
        )
        by_id: Dict[DocumentId, _CheckedDocument] = {c.document_id: c for c in checked}

        self._invalidate_changed(by_id)

        to_analyze = [c for c in checked if not c.hit and c.error is None]
        analyzed = self._map_parallel(self._analyze, to_analyze)
        fresh: Dict[DocumentId, AnalysisOutcome] = {o.document_id: o for o in analyzed}

        outcomes: Dict[DocumentId, AnalysisOutcome] = {}
        for document_id, item in by_id.items():
            if item.error is not None:
                outcomes[document_id] = AnalysisOutcome(document_id, error=item.error)
            elif item.hit:
                outcomes[document_id] = self._replay(item)
            else:
                outcomes[document_id] = fresh[document_id]

        hits = sum(1 for o in outcomes.values() if o.from_cache)
        failed = sum(1 for o in outcomes.values() if not o.ok)
        logger.info(
            f"Analyzed {len(fresh)} documents, reused {hits} cached results "
            f"({len(outcomes)} total, {failed} failed)",
            extra={
                "extra_fields": {
                    "analyzed": len(fresh),
                    "reused": hits,
                    "failed": failed,
                    "total": len(outcomes),
                }
            },
        )
        self._log_cycles()
        return outcomes

    def _check(self, document_id: DocumentId, document: Document) -> _CheckedDocument:
        """Hash one document and test its cache entry."""
        content = document.content
        if content is None:
            try:
                with open(document_id, "rb") as f:
                    content = f.read()
            except FileNotFoundError:
                logger.warning(f"Document not found: {document_id}")
                return _CheckedDocument(document_id, error=f"Document not found: {document_id}")
            except OSError as e:
                logger.warning(f"Cannot read document {document_id}: {e}")
                return _CheckedDocument(document_id, error=f"Cannot read document: {e}")

        content_hash = hash_content(content)
        text = content.decode("utf-8", errors="replace") if isinstance(content, bytes) else content
        hit = self.store.is_valid(
            document_id, content_hash, self.analyzer_version_hash, self.config_hash
        )
        return _CheckedDocument(document_id, text=text, content_hash=content_hash, hit=hit)

    def _invalidate_changed(self, by_id: Dict[DocumentId, _CheckedDocument]) -> None:
        """Delete dependents of every changed document from the store.

        Runs on the calling thread; each invalidation is a store write.
        """
        changed = sorted(document_id for document_id, c in by_id.items() if not c.hit)
        for document_id in changed:
            if by_id[document_id].error is not None:
                self.store.delete(document_id)
            for dependent in self.store.invalidate_dependents(document_id):
                item = by_id.get(dependent)
                if item is not None and item.hit:
                    logger.debug(f"Re-analyzing {dependent}: depends on changed {document_id}")
                    item.hit = False

    def _analyze(self, item: _CheckedDocument) -> AnalysisOutcome:
        """Run the analyzer on one document and store the fresh entry."""
        assert item.text is not None and item.content_hash is not None
        try:
            results = list(self.analyzer.analyze(item.document_id, item.text))
        except Exception as e:
            logger.warning(f"Analyzer failed on {item.document_id}: {e}", exc_info=True)
            self.store.delete(item.document_id)
            return AnalysisOutcome(item.document_id, error=f"Analyzer failed: {e}")

        references = extract_references(item.text, item.document_id, self.corpus_root)
        entry = CacheEntry.create(
            content_hash=item.content_hash,
            analyzer_version_hash=self.analyzer_version_hash,
            config_hash=self.config_hash,
            results=results,
            references=references,
        )
        self.store.set(item.document_id, entry)
        return AnalysisOutcome(item.document_id, results=list(entry.results), from_cache=False)

    def _replay(self, item: _CheckedDocument) -> AnalysisOutcome:
        """Build an outcome from the stored entry of a cache hit."""
        entry = self.store.get(item.document_id)
        assert entry is not None
        return AnalysisOutcome(item.document_id, results=list(entry.results), from_cache=True)

    def _map_parallel(self, func: Callable[[Any], Any], items: List[Any]) -> List[Any]:
        """Apply func to items on the worker pool, preserving input order."""
        if not items:
            return []
        if self.max_workers == 1 or len(items) == 1:
            return [func(item) for item in items]
        with concurrent.futures.ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            return list(executor.map(func, items))

    def _log_cycles(self) -> None:
        if not logger.isEnabledFor(logging.DEBUG):
            return
        for cycle in find_reference_cycles(entries_to_forward_map(self.store.entries())):
            logger.debug(f"Reference cycle: {' -> '.join(cycle)}")


def run_cached_analysis(
    documents: Iterable[Document],
    analyzer: Analyzer,
    config_value: Any = None,
    config: Optional[Config] = None,
    corpus_root: Optional[Union[str, Path]] = None,
    log_dir: Optional[Union[str, Path]] = None,
) -> Dict[DocumentId, AnalysisOutcome]:
    """Load the cache, analyze documents, and save the cache.

    With caching disabled every document is analyzed and nothing is read from
    or written to disk.

    Args:
        documents: Documents to analyze.
        analyzer: Analyzer producing findings.
        config_value: Resolved analyzer configuration, any JSON shape.
        config: Cache configuration (default: loaded from .lintcache.yml).
        corpus_root: Root directory bounding reference extraction.
        log_dir: When given, JSON logs for the run are written there at
                 config.log_level (see setup_logging()).

    Returns:
        Mapping of normalized document id -> AnalysisOutcome.

    Raises:
        CacheWriteError: If the cache cannot be saved.
        InvalidInputError: If config_value cannot be hashed.
    """
    if config is None:
        config = Config()

    if log_dir is not None:
        setup_logging(Path(log_dir), log_level=config.log_level, console_output=False)

    store = CacheStore(config.cache_path)
    runner = CachedAnalysisRunner(
        store,
        analyzer,
        config_value=config_value,
        max_workers=config.max_workers,
        corpus_root=corpus_root,
    )

    if not config.enabled:
        logger.debug("Caching disabled, analyzing all documents")
        return runner.run(documents)

    store.load()
    outcomes = runner.run(documents)
    store.save()
    return outcomes