"""
graph.py

Responsibility: Build the workstream dependency graph and check it.

The graph is an immutable arena: node ids live in a tuple, edges are pairs of node
indices. Identity checks, dangling-dependency checks and cycle detection are
independent passes that each return issues.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence

from specgate.issues import IssueKind, ValidationIssue

WHITE, GRAY, BLACK = 0, 1, 2


@dataclass(frozen=True)
class GraphNode:
    id: str
    source: str
    dependencies: tuple[str, ...] = ()


@dataclass(frozen=True)
class DependencyGraph:
    nodes: tuple[str, ...]
    sources: tuple[str, ...]
    edges: tuple[tuple[int, int], ...]
    # (node index, dependency id) for dependencies not present in the batch
    dangling: tuple[tuple[int, str], ...] = ()

    def successors(self) -> list[list[int]]:
        adjacency: list[list[int]] = [[] for _ in self.nodes]
        for src, dst in self.edges:
            adjacency[src].append(dst)
        return adjacency


def find_duplicate_ids(nodes: Sequence[GraphNode]) -> tuple[list[ValidationIssue], frozenset[str]]:
    """
    Report every occurrence of an id declared by more than one document.
    """
    sources: dict[str, list[str]] = {}
    for node in nodes:
        sources.setdefault(node.id, []).append(node.source)

    issues: list[ValidationIssue] = []
    duplicated = {node_id for node_id, files in sources.items() if len(files) > 1}
    for node in nodes:
        if node.id not in duplicated:
            continue
        others = [f for f in sources[node.id] if f != node.source] or [node.source]
        issues.append(
            ValidationIssue(
                node.source,
                f"duplicate document id `{node.id}` (also declared in {', '.join(others)})",
                IssueKind.IDENTITY,
            )
        )
    return issues, frozenset(duplicated)


def build_graph(nodes: Iterable[GraphNode], excluded_ids: Iterable[str] = ()) -> DependencyGraph:
    excluded = set(excluded_ids)
    kept = [n for n in nodes if n.id not in excluded]
    index = {n.id: i for i, n in enumerate(kept)}

    edges: list[tuple[int, int]] = []
    dangling: list[tuple[int, str]] = []
    for i, node in enumerate(kept):
        seen: set[str] = set()
        for dep in node.dependencies:
            if dep in seen:
                continue
            seen.add(dep)
            if dep in index:
                edges.append((i, index[dep]))
            elif dep not in excluded:
                dangling.append((i, dep))

    return DependencyGraph(
        nodes=tuple(n.id for n in kept),
        sources=tuple(n.source for n in kept),
        edges=tuple(edges),
        dangling=tuple(dangling),
    )


def find_dangling(graph: DependencyGraph) -> list[ValidationIssue]:
    return [
        ValidationIssue(
            graph.sources[i],
            f"dependency `{dep}` of `{graph.nodes[i]}` is not in this batch",
            IssueKind.GRAPH,
        )
        for i, dep in graph.dangling
    ]


def find_cycles(graph: DependencyGraph) -> list[list[str]]:
    """
    Iterative three-colour DFS. Each back edge yields one cycle path, e.g.
    ["a", "b", "c", "a"], read off the in-progress stack.
    """
    adjacency = graph.successors()
    color = [WHITE] * len(graph.nodes)
    cycles: list[list[str]] = []

    for start in range(len(graph.nodes)):
        if color[start] != WHITE:
            continue
        color[start] = GRAY
        path = [start]
        # Each frame is (node, index of the next successor to visit).
        stack: list[tuple[int, int]] = [(start, 0)]
        while stack:
            node, next_edge = stack[-1]
            if next_edge >= len(adjacency[node]):
                stack.pop()
                path.pop()
                color[node] = BLACK
                continue
            stack[-1] = (node, next_edge + 1)
            succ = adjacency[node][next_edge]
            if color[succ] == GRAY:
                cycle = path[path.index(succ):] + [succ]
                cycles.append([graph.nodes[i] for i in cycle])
            elif color[succ] == WHITE:
                color[succ] = GRAY
                path.append(succ)
                stack.append((succ, 0))
    return cycles


def cycle_issues(graph: DependencyGraph) -> list[ValidationIssue]:
    index = {node_id: i for i, node_id in enumerate(graph.nodes)}
    return [
        ValidationIssue(
            graph.sources[index[cycle[0]]],
            f"dependency cycle detected: {' -> '.join(cycle)}",
            IssueKind.GRAPH,
        )
        for cycle in find_cycles(graph)
    ]
