# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Hashing primitives for cache identity.

A cached result may be reused only when three digests match the stored entry:
- content hash: the document bytes
- config hash: the resolved configuration, any shape
- analyzer version hash: the analyzer's declared identity

All functions are pure (no I/O except hash_file, no hidden randomness) and
return lowercase hex SHA-256 digests.

Configuration hashing is structural and order-independent for mappings:
keys are sorted recursively before serialization, sequences are hashed
positionally. Callers never write per-shape hashing code.
"""

import hashlib
import json
import math
from collections.abc import Mapping
from pathlib import Path
from typing import Any, List, Union

from lintcache.errors import InvalidInputError

# Digest used when an analyzer declares no identity at all
NO_RULES_SENTINEL = "no-rules"

_CHUNK_SIZE = 8192


def hash_content(data: Union[bytes, str]) -> str:
    """Compute the SHA-256 digest of document content.

    Args:
        data: Raw bytes, or text which is encoded as UTF-8.

    Returns:
        Hex-encoded SHA-256 digest.

    Raises:
        InvalidInputError: If data is neither bytes nor str.
    """
    if isinstance(data, str):
        data = data.encode("utf-8")
    elif isinstance(data, (bytearray, memoryview)):
        data = bytes(data)
    elif not isinstance(data, bytes):
        raise InvalidInputError(f"Cannot hash content of type {type(data).__name__}")
    return hashlib.sha256(data).hexdigest()


def hash_file(path: Union[str, Path]) -> str:
    """Compute the SHA-256 digest of a file's contents.

    Produces the same digest as hash_content() on the file's bytes.

    Args:
        path: Path to the file.

    Returns:
        Hex-encoded SHA-256 digest.

    Raises:
        FileNotFoundError: If the file does not exist.
        OSError: If the file cannot be read.
    """
    hasher = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(_CHUNK_SIZE), b""):
            hasher.update(chunk)
    return hasher.hexdigest()


def hash_config(value: Any) -> str:
    """Compute an order-independent digest of a configuration value.

    Two mappings that differ only in key order hash identically, at any
    nesting depth. Lists and tuples are hashed positionally and are
    interchangeable. Scalars keep their JSON type, so 1, "1" and True differ.

    Args:
        value: JSON-compatible value (dict or other Mapping with str keys,
               list, tuple, str, int, float, bool, None).

    Returns:
        Hex-encoded SHA-256 digest.

    Raises:
        InvalidInputError: If value contains non-string keys, non-finite
                           floats, or types with no JSON representation.
    """
    _validate_config_value(value, path="$")
    canonical = json.dumps(
        value,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
        default=_mapping_to_dict,
    )
    return hash_content(canonical)


def hash_analyzer_version(identity: Any) -> str:
    """Compute the digest identifying an analyzer build.

    Changing the identity invalidates every cached result without special
    casing, so upgrades are detected automatically.

    Args:
        identity: A declared version string, or a sequence of rule
                  descriptors (strings or mappings such as
                  {"names": [...], "description": ..., "source": ...}).
                  None or an empty value means "no rules".

    Returns:
        Hex-encoded SHA-256 digest.

    Raises:
        InvalidInputError: If identity contains unhashable values.
    """
    if identity is None or (isinstance(identity, (str, list, tuple, Mapping)) and not identity):
        return hash_content(NO_RULES_SENTINEL)
    if isinstance(identity, str):
        return hash_content(identity)
    return hash_config(identity)


def _mapping_to_dict(value: Any) -> Any:
    """json.dumps hook: serialize read-only and custom mappings like dicts."""
    if isinstance(value, Mapping):
        return dict(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")

def _validate_config_value(value: Any, path: str) -> None:
    """Reject values that would hash ambiguously or not at all.

    Error messages carry a JSONPath-like location ($.rules[2].name).
    """
    stack: List[tuple] = [(value, path)]
    while stack:
        current, current_path = stack.pop()
        if current is None or isinstance(current, (str, bool, int)):
            continue
        if isinstance(current, float):
            if not math.isfinite(current):
                raise InvalidInputError(f"Non-finite number at {current_path}: {current!r}")
            continue
        if isinstance(current, Mapping):
            for key, item in current.items():
                if not isinstance(key, str):
                    raise InvalidInputError(
                        f"Configuration keys must be strings, got {type(key).__name__} "
                        f"{key!r} at {current_path}"
                    )
                stack.append((item, f"{current_path}.{key}"))
            continue
        if isinstance(current, (list, tuple)):
            for index, item in enumerate(current):
                stack.append((item, f"{current_path}[{index}]"))
            continue
        raise InvalidInputError(
            f"Unsupported configuration value of type {type(current).__name__} at {current_path}"
        )
