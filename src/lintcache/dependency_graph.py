# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Reverse dependency graph and transitive invalidation traversal.

The forward map records, per document, the documents it references
(A -> B means "A links to B"). Invalidation needs the opposite direction:
when B changes, every document that reaches B through a chain of references
must be re-analyzed.

Algorithm Overview:
1. build_dependency_graph() inverts the forward map (target -> sources),
   dropping self references.
2. collect_transitive_dependents() walks the reverse map breadth-first with
   an explicit work-list and visited set, so cycles (A -> B -> A) and
   diamonds (A -> B, A -> C, B -> D, C -> D) terminate and each document is
   reported exactly once.
3. find_reference_cycles() reports groups of mutually referencing documents
   for diagnostics (iterative Tarjan strongly-connected components).

No traversal here recurses, so graph depth is bounded only by memory.
"""

import logging
from collections import deque
from typing import Deque, Dict, Iterable, List, Mapping, Set, Tuple

from lintcache.models import DocumentId

logger = logging.getLogger(__name__)

ReferenceGraph = Dict[DocumentId, Set[DocumentId]]


def build_dependency_graph(
    forward: Mapping[DocumentId, Iterable[DocumentId]],
) -> ReferenceGraph:
    """Invert a forward reference map into target -> referencing documents.

    Only documents referenced by at least one other document appear as keys;
    absence and an empty set are equivalent for callers. A target that is not
    itself a key of forward (outside the known corpus) still gets an entry.

    Args:
        forward: Mapping of document -> documents it references.

    Returns:
        Reverse map of document -> set of documents that reference it.
    """
    reverse: ReferenceGraph = {}

    for source, targets in forward.items():
        for target in targets:
            # Skip self-references
            if target == source:
                continue
            if target not in reverse:
                reverse[target] = set()
            reverse[target].add(source)

    return reverse


def collect_transitive_dependents(
    reverse: Mapping[DocumentId, Iterable[DocumentId]],
    start: DocumentId,
) -> List[DocumentId]:
    """Find every document that transitively depends on start.

    Breadth-first: direct dependents come before indirect ones. Within one
    level the order is sorted so results are deterministic.

    Args:
        reverse: Reverse map from build_dependency_graph().
        start: Document whose dependents to collect.

    Returns:
        Dependents in discovery order, without start and without duplicates.

    Example:
        For A -> B -> C, collect_transitive_dependents(reverse, C) == [B, A].
        For A -> B -> A, collect_transitive_dependents(reverse, A) == [B].
    """
    visited: Set[DocumentId] = {start}
    result: List[DocumentId] = []
    queue: Deque[DocumentId] = deque([start])

    while queue:
        current = queue.popleft()
        for dependent in sorted(reverse.get(current, ())):
            if dependent in visited:
                continue
            visited.add(dependent)
            result.append(dependent)
            queue.append(dependent)

    return result


def find_reference_cycles(
    forward: Mapping[DocumentId, Iterable[DocumentId]],
) -> List[List[DocumentId]]:
    """Find groups of documents that reference each other in a cycle.

    Uses Tarjan's strongly connected components algorithm with an explicit
    call stack. Single documents only count as a cycle when they are part of
    a larger group; self references are ignored.

    Args:
        forward: Mapping of document -> documents it references.

    Returns:
        List of cycles, each a sorted list of DocumentIds. Cycles are ordered
        by their first member.
    """
    edges: Dict[DocumentId, List[DocumentId]] = {}
    for source, targets in forward.items():
        edges.setdefault(source, [])
        for target in sorted(set(targets)):
            if target == source:
                continue
            edges[source].append(target)
            edges.setdefault(target, [])

    index_of: Dict[DocumentId, int] = {}
    lowlink: Dict[DocumentId, int] = {}
    on_stack: Set[DocumentId] = set()
    component_stack: List[DocumentId] = []
    cycles: List[List[DocumentId]] = []
    counter = 0

    for root in sorted(edges):
        if root in index_of:
            continue

        # Each frame: (node, position of next edge to examine)
        call_stack: List[Tuple[DocumentId, int]] = [(root, 0)]
        index_of[root] = lowlink[root] = counter
        counter += 1
        component_stack.append(root)
        on_stack.add(root)

        while call_stack:
            node, position = call_stack[-1]
            neighbors = edges[node]

            if position < len(neighbors):
                call_stack[-1] = (node, position + 1)
                neighbor = neighbors[position]
                if neighbor not in index_of:
                    index_of[neighbor] = lowlink[neighbor] = counter
                    counter += 1
                    component_stack.append(neighbor)
                    on_stack.add(neighbor)
                    call_stack.append((neighbor, 0))
                elif neighbor in on_stack:
                    lowlink[node] = min(lowlink[node], index_of[neighbor])
                continue

            call_stack.pop()
            if call_stack:
                parent = call_stack[-1][0]
                lowlink[parent] = min(lowlink[parent], lowlink[node])

            if lowlink[node] == index_of[node]:
                component: List[DocumentId] = []
                while True:
                    member = component_stack.pop()
                    on_stack.discard(member)
                    component.append(member)
                    if member == node:
                        break
                if len(component) > 1:
                    cycles.append(sorted(component))

    cycles.sort(key=lambda cycle: cycle[0])
    if cycles:
        logger.debug(f"Found {len(cycles)} reference cycles")
    return cycles
