# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Shared fixtures for lintcache tests."""

import logging
from pathlib import Path
from typing import Callable, Iterable, Optional

import pytest

from lintcache.hashing import hash_analyzer_version, hash_config, hash_content
from lintcache.models import CacheEntry
from lintcache.store import CacheStore

VERSION_HASH = hash_analyzer_version("analyzer-1.0")
CONFIG_HASH = hash_config({"rules": {"line-length": 80}})


@pytest.fixture
def cache_path(tmp_path: Path) -> Path:
    """Cache file path inside a directory that does not exist yet."""
    return tmp_path / "cache_dir" / "cache.json"


@pytest.fixture
def store(cache_path: Path) -> CacheStore:
    """Empty, unloaded store."""
    return CacheStore(cache_path)


@pytest.fixture
def make_entry() -> Callable[..., CacheEntry]:
    """Factory building entries with default identity hashes."""

    def _make(
        content: str = "content",
        references: Optional[Iterable[str]] = None,
        results: Optional[Iterable[object]] = None,
    ) -> CacheEntry:
        return CacheEntry.create(
            content_hash=hash_content(content),
            analyzer_version_hash=VERSION_HASH,
            config_hash=CONFIG_HASH,
            results=results,
            references=references,
            timestamp=1700000000.0,
        )

    return _make


@pytest.fixture
def close_log_handlers():
    """Close handlers that setup_logging() adds to the root logger."""
    root_logger = logging.getLogger()
    before = set(root_logger.handlers)
    level = root_logger.level
    yield
    for handler in list(root_logger.handlers):
        if handler not in before:
            root_logger.removeHandler(handler)
            handler.close()
    root_logger.setLevel(level)
