# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Unit tests for hashing primitives.

Tests cover:
- Content hashing determinism and str/bytes equivalence
- File hashing and missing-file propagation
- Order-independent configuration hashing at any depth
- Rejection of values that cannot be hashed unambiguously
- Analyzer version identity hashing
"""

import hashlib
from pathlib import Path
from types import MappingProxyType

import pytest

from lintcache.errors import InvalidInputError
from lintcache.hashing import (
    NO_RULES_SENTINEL,
    hash_analyzer_version,
    hash_config,
    hash_content,
    hash_file,
)


class TestHashContent:
    """Tests for hash_content()."""

    def test_matches_sha256(self):
        """Test digest is the hex SHA-256 of the bytes."""
        assert hash_content(b"hello") == hashlib.sha256(b"hello").hexdigest()

    def test_stable_across_calls(self):
        """Test repeated calls yield the same digest."""
        data = b"# Title\n\nSome [link](other.md).\n"
        assert hash_content(data) == hash_content(data)

    def test_str_is_utf8_encoded(self):
        """Test text hashes like its UTF-8 encoding."""
        assert hash_content("café") == hash_content("café".encode("utf-8"))

    def test_different_content_differs(self):
        """Test a one-byte change changes the digest."""
        assert hash_content(b"a") != hash_content(b"b")

    def test_empty_content(self):
        """Test empty content has a well-defined digest."""
        assert hash_content(b"") == hashlib.sha256(b"").hexdigest()

    def test_rejects_non_bytes(self):
        """Test unsupported types raise InvalidInputError."""
        with pytest.raises(InvalidInputError):
            hash_content(None)  # type: ignore[arg-type]
        with pytest.raises(InvalidInputError):
            hash_content(42)  # type: ignore[arg-type]


class TestHashFile:
    """Tests for hash_file()."""

    def test_matches_content_hash(self, tmp_path: Path):
        """Test file digest equals the digest of its bytes."""
        doc = tmp_path / "doc.md"
        doc.write_bytes(b"line 1\nline 2\n")
        assert hash_file(doc) == hash_content(b"line 1\nline 2\n")

    def test_large_file_streamed(self, tmp_path: Path):
        """Test files larger than one chunk hash correctly."""
        data = b"x" * 50000
        doc = tmp_path / "big.md"
        doc.write_bytes(data)
        assert hash_file(str(doc)) == hashlib.sha256(data).hexdigest()

    def test_missing_file_raises(self, tmp_path: Path):
        """Test a missing file propagates FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            hash_file(tmp_path / "missing.md")


class TestHashConfig:
    """Tests for hash_config()."""

    def test_key_order_independent(self):
        """Test mappings differing only in key order hash identically."""
        a = {"alpha": 1, "beta": 2, "gamma": 3}
        b = {"gamma": 3, "alpha": 1, "beta": 2}
        assert hash_config(a) == hash_config(b)

    def test_nested_key_order_independent(self):
        """Test key order is irrelevant at every nesting level."""
        a = {"rules": {"md013": {"line_length": 80, "tables": False}, "md001": True}}
        b = {"rules": {"md001": True, "md013": {"tables": False, "line_length": 80}}}
        assert hash_config(a) == hash_config(b)

    def test_mappings_inside_lists(self):
        """Test mappings nested in lists are also order independent."""
        a = [{"x": 1, "y": 2}, {"z": 3}]
        b = [{"y": 2, "x": 1}, {"z": 3}]
        assert hash_config(a) == hash_config(b)

    def test_read_only_mappings(self):
        """Test non-dict mappings hash like the equivalent dict."""
        frozen = MappingProxyType({"b": 2, "a": MappingProxyType({"y": 1, "x": 0})})
        assert hash_config(frozen) == hash_config({"a": {"x": 0, "y": 1}, "b": 2})

    def test_read_only_mapping_keys_checked(self):
        """Test keys of non-dict mappings are validated too."""
        with pytest.raises(InvalidInputError, match="keys must be strings"):
            hash_config(MappingProxyType({1: "one"}))

    def test_list_order_matters(self):
        """Test sequences are hashed positionally."""
        assert hash_config([1, 2, 3]) != hash_config([3, 2, 1])

    def test_tuple_equals_list(self):
        """Test tuples and lists with the same items are interchangeable."""
        assert hash_config((1, "a")) == hash_config([1, "a"])

    def test_value_change_detected(self):
        """Test changing any value changes the digest."""
        assert hash_config({"a": {"b": 1}}) != hash_config({"a": {"b": 2}})

    def test_scalar_types_distinguished(self):
        """Test 1, "1", 1.5 and True produce different digests."""
        digests = {hash_config(1), hash_config("1"), hash_config(True), hash_config(1.5)}
        assert len(digests) == 4

    def test_none_and_empty(self):
        """Test None, {} and [] are distinct valid configurations."""
        digests = {hash_config(None), hash_config({}), hash_config([])}
        assert len(digests) == 3

    def test_rejects_non_string_keys(self):
        """Test non-string keys raise InvalidInputError."""
        with pytest.raises(InvalidInputError, match="keys must be strings"):
            hash_config({1: "one"})

    def test_rejects_nan(self):
        """Test non-finite numbers raise InvalidInputError."""
        with pytest.raises(InvalidInputError, match="Non-finite"):
            hash_config({"limit": float("nan")})
        with pytest.raises(InvalidInputError):
            hash_config([float("inf")])

    def test_rejects_unsupported_types(self):
        """Test sets, bytes and objects are rejected with their location."""
        with pytest.raises(InvalidInputError, match=r"\$\.rules"):
            hash_config({"rules": {"a", "b"}})
        with pytest.raises(InvalidInputError):
            hash_config(b"raw")
        with pytest.raises(InvalidInputError):
            hash_config({"obj": object()})


class TestHashAnalyzerVersion:
    """Tests for hash_analyzer_version()."""

    def test_version_string(self):
        """Test a version string hashes like its content."""
        assert hash_analyzer_version("2.3.1") == hash_content("2.3.1")

    def test_version_change_detected(self):
        """Test upgrading the analyzer changes the digest."""
        assert hash_analyzer_version("2.3.1") != hash_analyzer_version("2.3.2")

    def test_no_rules_sentinel(self):
        """Test missing identities share the no-rules digest."""
        expected = hash_content(NO_RULES_SENTINEL)
        assert hash_analyzer_version(None) == expected
        assert hash_analyzer_version([]) == expected
        assert hash_analyzer_version("") == expected

    def test_rule_descriptors(self):
        """Test rule descriptor lists hash structurally."""
        rules_a = [{"names": ["DL001"], "description": "dead links", "source": "v1"}]
        rules_b = [{"source": "v1", "description": "dead links", "names": ["DL001"]}]
        rules_c = [{"names": ["DL001"], "description": "dead links", "source": "v2"}]
        assert hash_analyzer_version(rules_a) == hash_analyzer_version(rules_b)
        assert hash_analyzer_version(rules_a) != hash_analyzer_version(rules_c)
