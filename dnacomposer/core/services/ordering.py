"""
Build ordering (pure).

Topological sort of a resolved module set with Kahn's algorithm, plus
an auxiliary depth-first search that names the modules forming a
cycle when the sort comes up short.
No I/O.
"""

from __future__ import annotations

from collections import deque
from typing import Sequence

from dnacomposer.core.models.module import DNAModule


class CircularDependencyError(Exception):
    """Raised when the resolved set contains a dependency cycle."""

    def __init__(self, cycle: list[str]):
        path = " -> ".join(cycle) if cycle else "unknown"
        super().__init__(f"Circular dependency detected in module composition: {path}")
        self.cycle = cycle


def _build_graph(modules: Sequence[DNAModule]) -> dict[str, list[str]]:
    """Adjacency: dependency id → dependents, restricted to the set.

    Every declared dependency counts, optional ones included, as long
    as the dependency is present.
    """
    adj: dict[str, list[str]] = {m.id: [] for m in modules}
    for m in modules:
        for dep in m.dependencies:
            if dep.module_id in adj:
                adj[dep.module_id].append(m.id)
    return adj


def dependency_order(modules: Sequence[DNAModule]) -> list[str]:
    """Order module ids so every dependency precedes its dependents.

    Zero in-degree nodes are queued first-come-first-served, so the
    output is deterministic for a fixed input order.

    Raises:
        CircularDependencyError: Not every module could be ordered.
    """
    adj = _build_graph(modules)

    in_degree: dict[str, int] = {mid: 0 for mid in adj}
    for dependents in adj.values():
        for dependent in dependents:
            in_degree[dependent] += 1

    queue = deque(mid for mid, deg in in_degree.items() if deg == 0)
    result: list[str] = []

    while queue:
        node = queue.popleft()
        result.append(node)
        for successor in adj[node]:
            in_degree[successor] -= 1
            if in_degree[successor] == 0:
                queue.append(successor)

    if len(result) < len(adj):
        raise CircularDependencyError(find_cycle(modules))

    return result


def find_cycle(modules: Sequence[DNAModule]) -> list[str]:
    """Return one dependency cycle as ``[a, b, ..., a]``, or ``[]``.

    Iterative three-colour DFS along dependent → dependency edges.
    """
    present = {m.id for m in modules}
    deps: dict[str, list[str]] = {
        m.id: [d.module_id for d in m.dependencies if d.module_id in present]
        for m in modules
    }

    state: dict[str, int] = {}  # 1 = on the current path, 2 = finished
    for root in deps:
        if root in state:
            continue
        path: list[str] = [root]
        state[root] = 1
        iters = [iter(deps[root])]
        while iters:
            child = next(iters[-1], None)
            if child is None:
                state[path.pop()] = 2
                iters.pop()
                continue
            if state.get(child) == 1:
                return path[path.index(child):] + [child]
            if child not in state:
                state[child] = 1
                path.append(child)
                iters.append(iter(deps[child]))
    return []
