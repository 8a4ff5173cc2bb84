# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Exception types raised by the caching layer.

Only conditions the caller must act on surface as exceptions:
- InvalidInputError: malformed configuration values or identifiers
- CacheWriteError: the cache could not be persisted

Missing documents surface as the built-in FileNotFoundError. Corrupted or
stale cache files never raise; CacheStore.load() falls back to an empty store.
"""


class LintCacheError(Exception):
    """Base class for all lintcache errors."""

    pass


class InvalidInputError(LintCacheError, ValueError):
    """Raised when an argument cannot be hashed or used as an identifier."""

    pass


class CacheWriteError(LintCacheError, OSError):
    """Raised when the cache file cannot be written."""

    pass
