# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Unit tests for reference extraction and document id normalization."""

from pathlib import Path

import pytest

from lintcache.errors import InvalidInputError
from lintcache.references import extract_references, normalize_document_id


@pytest.fixture
def corpus(tmp_path: Path) -> Path:
    """Corpus root; files need not exist for extraction."""
    return tmp_path / "corpus"


def doc_id(corpus: Path, relative: str) -> str:
    return normalize_document_id(corpus / relative)


class TestNormalizeDocumentId:
    """Tests for normalize_document_id()."""

    def test_collapses_dot_segments(self, corpus: Path):
        """Test different spellings of one path collapse."""
        a = normalize_document_id(corpus / "docs" / "a.md")
        b = normalize_document_id(str(corpus) + "/docs/./sub/../a.md")
        assert a == b

    def test_relative_to_base(self, corpus: Path):
        """Test relative paths resolve against base."""
        assert normalize_document_id("a.md", corpus / "docs") == doc_id(corpus, "docs/a.md")

    def test_absolute_ignores_base(self, corpus: Path):
        """Test absolute paths are not joined to base."""
        absolute = str(corpus / "x.md")
        assert normalize_document_id(absolute, "/elsewhere") == doc_id(corpus, "x.md")

    def test_trailing_slash_stripped(self, corpus: Path):
        """Test directory ids have no trailing slash."""
        assert normalize_document_id(str(corpus / "guide") + "/") == doc_id(corpus, "guide")

    def test_result_is_absolute_posix(self):
        """Test relative ids become absolute."""
        result = normalize_document_id("docs/readme.md")
        assert result.startswith("/")
        assert result.endswith("docs/readme.md")

    def test_rejects_empty(self):
        """Test None, empty and blank identifiers are rejected."""
        with pytest.raises(InvalidInputError):
            normalize_document_id(None)  # type: ignore[arg-type]
        with pytest.raises(InvalidInputError):
            normalize_document_id("")
        with pytest.raises(InvalidInputError):
            normalize_document_id("   ")

    def test_rejects_null_bytes(self):
        """Test identifiers with null bytes are rejected."""
        with pytest.raises(InvalidInputError):
            normalize_document_id("a\0b.md")


class TestExtractReferences:
    """Tests for extract_references()."""

    def test_no_references_returns_empty_set(self, corpus: Path):
        """Test a body without links yields an empty set, not None."""
        result = extract_references("# Title\n\nJust text.\n", str(corpus / "a.md"))
        assert result == set()

    def test_empty_body(self, corpus: Path):
        """Test an empty body yields an empty set."""
        assert extract_references("", str(corpus / "a.md")) == set()

    def test_sibling_link(self, corpus: Path):
        """Test a sibling link resolves in the same directory."""
        body = "See [other](other.md)."
        result = extract_references(body, str(corpus / "docs" / "a.md"))
        assert result == {doc_id(corpus, "docs/other.md")}

    def test_parent_and_child_relative(self, corpus: Path):
        """Test parent-relative and child-relative targets resolve."""
        body = "[up](../README.md) and [down](sub/child.md) and [dot](./same.md)"
        result = extract_references(body, str(corpus / "docs" / "a.md"))
        assert result == {
            doc_id(corpus, "README.md"),
            doc_id(corpus, "docs/sub/child.md"),
            doc_id(corpus, "docs/same.md"),
        }

    def test_directory_target(self, corpus: Path):
        """Test directory-only targets are valid references."""
        body = "Browse the [guide](../guide/)."
        result = extract_references(body, str(corpus / "docs" / "a.md"))
        assert result == {doc_id(corpus, "guide")}

    def test_spellings_collapse(self, corpus: Path):
        """Test different spellings of the same target produce one entry."""
        body = (
            "[one](b.md) [two](./b.md) [three](sub/../b.md) "
            "[four](b.md#section) [five](b.md?plain=1)"
        )
        result = extract_references(body, str(corpus / "a.md"))
        assert result == {doc_id(corpus, "b.md")}

    def test_external_links_skipped(self, corpus: Path):
        """Test URLs, mail links and protocol-relative links are skipped."""
        body = (
            "[web](https://example.com/a.md) [mail](mailto:me@example.com) "
            "[ftp](ftp://host/file) [cdn](//cdn.example.com/x.md)"
        )
        assert extract_references(body, str(corpus / "a.md")) == set()

    def test_same_document_anchor_skipped(self, corpus: Path):
        """Test anchors within the same document are not references."""
        body = "Jump to [usage](#usage)."
        assert extract_references(body, str(corpus / "a.md")) == set()

    def test_self_reference_excluded(self, corpus: Path):
        """Test a link to the document itself is dropped."""
        body = "[me](a.md) [me again](./a.md#top) [other](b.md)"
        result = extract_references(body, str(corpus / "a.md"))
        assert result == {doc_id(corpus, "b.md")}

    def test_fenced_code_block_excluded(self, corpus: Path):
        """Test links inside fenced code blocks are ignored."""
        body = "\n".join(
            [
                "[real](real.md)",
                "```markdown",
                "[example](fake.md)",
                "```",
                "~~~",
                "[tilde](fake2.md)",
                "~~~",
                "[after](after.md)",
            ]
        )
        result = extract_references(body, str(corpus / "a.md"))
        assert result == {doc_id(corpus, "real.md"), doc_id(corpus, "after.md")}

    def test_fence_requires_matching_close(self, corpus: Path):
        """Test a shorter or different fence does not close the block."""
        body = "\n".join(
            [
                "````",
                "```",
                "[inside](fake.md)",
                "~~~~",
                "````",
                "[outside](real.md)",
            ]
        )
        result = extract_references(body, str(corpus / "a.md"))
        assert result == {doc_id(corpus, "real.md")}

    def test_indented_fence_excluded(self, corpus: Path):
        """Test fenced blocks nested in list items are ignored."""
        body = "\n".join(
            [
                "- step one",
                "",
                "    ```markdown",
                "    [example](fake.md)",
                "    ```",
                "",
                "- step two, see [real](real.md)",
            ]
        )
        result = extract_references(body, str(corpus / "a.md"))
        assert result == {doc_id(corpus, "real.md")}

    def test_inline_code_excluded(self, corpus: Path):
        """Test links inside inline code spans are ignored."""
        body = "Write `[text](fake.md)` or ``[x](fake2.md)`` to link, like [this](real.md)."
        result = extract_references(body, str(corpus / "a.md"))
        assert result == {doc_id(corpus, "real.md")}

    def test_wrapped_code_span_excluded(self, corpus: Path):
        """Test a code span continuing onto the next line hides its link."""
        body = "Write `foo\n[x](fake.md)` to link, like [this](real.md)."
        result = extract_references(body, str(corpus / "a.md"))
        assert result == {doc_id(corpus, "real.md")}

    def test_code_span_stops_at_blank_line(self, corpus: Path):
        """Test an unclosed backtick does not swallow the next paragraph."""
        body = "A stray ` backtick.\n\nSee [real](real.md) and `code`."
        result = extract_references(body, str(corpus / "a.md"))
        assert result == {doc_id(corpus, "real.md")}

    def test_image_and_title(self, corpus: Path):
        """Test image links and link titles are handled."""
        body = '![diagram](img/arch.png "Architecture") [doc](<my doc.md> \'Title\')'
        result = extract_references(body, str(corpus / "a.md"))
        assert result == {doc_id(corpus, "img/arch.png"), doc_id(corpus, "my doc.md")}

    def test_percent_encoding_decoded(self, corpus: Path):
        """Test percent-encoded targets match their decoded spelling."""
        body = "[a](my%20doc.md) [b](<my doc.md>)"
        result = extract_references(body, str(corpus / "a.md"))
        assert result == {doc_id(corpus, "my doc.md")}

    def test_reference_definitions(self, corpus: Path):
        """Test reference-style link definitions are extracted."""
        body = "See [the guide][g].\n\n[g]: ../guide.md\n[^1]: A footnote, not a link.\n"
        result = extract_references(body, str(corpus / "docs" / "a.md"))
        assert result == {doc_id(corpus, "guide.md")}

    def test_outside_corpus_skipped(self, corpus: Path):
        """Test targets escaping the corpus root are skipped."""
        body = "[inside](b.md) [outside](../../elsewhere.md)"
        result = extract_references(body, str(corpus / "a.md"), corpus_root=corpus)
        assert result == {doc_id(corpus, "b.md")}

    def test_root_relative_target(self, corpus: Path):
        """Test /-prefixed targets resolve against the corpus root."""
        body = "[top](/docs/index.md)"
        result = extract_references(body, str(corpus / "docs" / "deep" / "a.md"), corpus)
        assert result == {doc_id(corpus, "docs/index.md")}

    def test_multiple_links_per_line(self, corpus: Path):
        """Test every link on a line is found."""
        body = "[a](a1.md), [b](b1.md) and [c](c1.md)"
        result = extract_references(body, str(corpus / "x.md"))
        assert len(result) == 3

    def test_rejects_empty_document_id(self):
        """Test an empty document id is rejected."""
        with pytest.raises(InvalidInputError):
            extract_references("[a](b.md)", "")

    def test_rejects_non_string_body(self, corpus: Path):
        """Test a None body is rejected rather than treated as empty."""
        with pytest.raises(InvalidInputError):
            extract_references(None, str(corpus / "a.md"))  # type: ignore[arg-type]
