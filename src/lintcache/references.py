# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Reference extraction for cross-document invalidation.

Scans a Markdown document for links to other documents in the corpus and
returns their normalized identifiers. A document whose result depends on a
linked document (for example a dead-link check) must be re-analyzed when the
linked document changes; the extracted set feeds the reverse dependency graph.

Recognized constructs:
- Inline links and images: [text](target "title"), ![alt](<target>)
- Reference definitions: [label]: target

Skipped targets:
- Anything inside fenced code blocks (``` or ~~~, at any indentation) or
  inline code spans, including spans that wrap onto the next line
- External resources (scheme:..., //host/...)
- Same-document anchors (#section)
- Targets resolving outside the corpus root, when one is given
"""

import logging
import os
import re
from pathlib import Path
from typing import Iterator, List, Optional, Set, Union
from urllib.parse import unquote

from lintcache.errors import InvalidInputError
from lintcache.models import DocumentId

logger = logging.getLogger(__name__)

# Opening or closing code fence: 3+ backticks or tildes at any indentation
_FENCE_PATTERN = re.compile(r"^\s*(`{3,}|~{3,})(.*)$")

# Inline code span: a backtick run closed by a run of the same length
_CODE_SPAN_PATTERN = re.compile(r"(`+)(?!`).*?(?<!`)\1(?!`)", re.DOTALL)

# [text](target) or ![alt](target), with optional angle brackets and title
_INLINE_LINK_PATTERN = re.compile(
    r"!?\[[^\]]*\]\(\s*(<[^>]*>|[^)\s]+)(?:\s+(?:\"[^\"]*\"|'[^']*'|\([^)]*\)))?\s*\)"
)

# [label]: target
_REFERENCE_DEFINITION_PATTERN = re.compile(r"^ {0,3}\[(?!\^)[^\]]+\]:\s*(<[^>]*>|\S+)")

# scheme: prefix (http:, https:, mailto:, ftp:, data:, ...)
_SCHEME_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*:")


def normalize_document_id(
    path: Union[str, Path], base: Optional[Union[str, Path]] = None
) -> DocumentId:
    """Canonicalize a path into a DocumentId.

    Different spellings of the same path (./a.md, x/../a.md, a trailing
    slash on a directory) collapse to one identifier.

    Args:
        path: Absolute or relative path.
        base: Directory that relative paths are resolved against
              (default: current working directory).

    Returns:
        Absolute POSIX-style path with "." and ".." segments collapsed.

    Raises:
        InvalidInputError: If path is None or empty.
    """
    if path is None:
        raise InvalidInputError("Document identifier cannot be None")
    raw = os.fspath(path)
    if not isinstance(raw, str) or not raw.strip():
        raise InvalidInputError(f"Document identifier cannot be empty: {path!r}")
    if "\0" in raw:
        raise InvalidInputError(f"Document identifier contains null bytes: {raw!r}")

    if base is not None and not os.path.isabs(raw):
        raw = os.path.join(os.fspath(base), raw)
    return Path(os.path.abspath(raw)).as_posix()


def extract_references(
    body: str,
    document_id: DocumentId,
    corpus_root: Optional[Union[str, Path]] = None,
) -> Set[DocumentId]:
    """Extract the documents referenced by a Markdown body.

    Relative targets resolve against the directory of document_id. Absolute
    targets (/docs/a.md) resolve against corpus_root when given. Fragments
    and query strings are stripped; directory-only targets are kept.

    Args:
        body: Document text.
        document_id: Identifier (path) of the document being scanned.
        corpus_root: Optional root directory bounding the corpus.

    Returns:
        Set of normalized DocumentIds. Never contains document_id itself.
        Empty when the body has no qualifying references.

    Raises:
        InvalidInputError: If document_id is empty or body is not a string.
    """
    source_id = normalize_document_id(document_id)
    if body is None or not isinstance(body, str):
        raise InvalidInputError(f"Document body must be a string, got {type(body).__name__}")

    root_id = normalize_document_id(corpus_root) if corpus_root is not None else None
    source_dir = os.path.dirname(source_id)
    references: Set[DocumentId] = set()

    for target in _iter_link_targets(body):
        resolved = _resolve_target(target, source_dir, root_id)
        if resolved is None or resolved == source_id:
            continue
        references.add(resolved)

    logger.debug(f"Extracted {len(references)} references from {source_id}")
    return references


def _iter_link_targets(body: str) -> Iterator[str]:
    """Yield raw link targets outside code blocks and code spans."""
    for block in _iter_text_blocks(body):
        # Code spans may continue across lines within one block
        cleaned = _CODE_SPAN_PATTERN.sub("", block)

        for line in cleaned.split("\n"):
            definition = _REFERENCE_DEFINITION_PATTERN.match(line)
            if definition:
                yield definition.group(1)
                continue

            for match in _INLINE_LINK_PATTERN.finditer(line):
                yield match.group(1)


def _iter_text_blocks(body: str) -> Iterator[str]:
    """Yield runs of consecutive non-blank lines outside fenced code blocks.

    Fences are recognized at any indentation so blocks nested in list items
    are skipped too.
    """
    fence: Optional[str] = None
    block: List[str] = []

    for line in body.splitlines():
        fence_match = _FENCE_PATTERN.match(line)
        if fence is not None:
            # Closing fence: same character, at least as long, nothing after it
            if (
                fence_match
                and fence_match.group(1)[0] == fence[0]
                and len(fence_match.group(1)) >= len(fence)
                and not fence_match.group(2).strip()
            ):
                fence = None
            continue

        if fence_match or not line.strip():
            if block:
                yield "\n".join(block)
                block = []
            if fence_match:
                fence = fence_match.group(1)
            continue

        block.append(line)

    if block:
        yield "\n".join(block)


def _resolve_target(
    target: str, source_dir: str, root_id: Optional[DocumentId]
) -> Optional[DocumentId]:
    """Resolve one raw link target to a DocumentId, or None to skip it."""
    if target.startswith("<") and target.endswith(">"):
        target = target[1:-1].strip()

    if not target or target.startswith("#") or target.startswith("//"):
        return None
    if _SCHEME_PATTERN.match(target):
        return None

    # Drop fragment and query: a.md#intro and a.md?plain=1 both mean a.md
    target = re.split(r"[#?]", target, maxsplit=1)[0]
    target = unquote(target)
    if not target or "\0" in target:
        return None

    if target.startswith("/"):
        base = root_id if root_id is not None else "/"
        resolved = normalize_document_id(target.lstrip("/") or ".", base)
    else:
        resolved = normalize_document_id(target, source_dir)

    if root_id is not None and not _is_within(resolved, root_id):
        logger.debug(f"Skipping reference outside corpus: {target} -> {resolved}")
        return None
    return resolved


def _is_within(document_id: DocumentId, root_id: DocumentId) -> bool:
    """Check whether document_id lies inside root_id."""
    if document_id == root_id:
        return True
    prefix = root_id if root_id.endswith("/") else root_id + "/"
    return document_id.startswith(prefix)
