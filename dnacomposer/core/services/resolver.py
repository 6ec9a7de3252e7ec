"""
Dependency resolution — transitive closure of required modules.

Collects every module a requested set needs. The walk is iterative
(explicit work-list) so large graphs never hit the recursion limit.
"""

from __future__ import annotations

import logging
from typing import Iterable

from dnacomposer.core.models.module import DNAModule
from dnacomposer.core.services.catalog import ModuleCatalog

logger = logging.getLogger(__name__)


class MissingDependencyError(Exception):
    """Raised when a required dependency is not in the catalog."""

    def __init__(self, dependency_id: str, required_by: str):
        super().__init__(
            f"Required dependency {dependency_id} not found for module {required_by}"
        )
        self.dependency_id = dependency_id
        self.required_by = required_by


def _lookup(catalog: ModuleCatalog, module_id: str, version: str) -> DNAModule | None:
    """Exact version when one is pinned and registered, else latest."""
    if version:
        pinned = catalog.get_version(module_id, version)
        if pinned is not None:
            return pinned
    return catalog.get(module_id)


def resolve_dependencies(
    requested: Iterable[DNAModule],
    catalog: ModuleCatalog,
) -> list[DNAModule]:
    """Compute the resolved set for ``requested``.

    Seeds a work-list with the requested modules and pops until it is
    empty. Each non-optional dependency is looked up in the catalog and
    added (once per module id) when new. Optional dependencies are never
    pulled in.

    Args:
        requested: Modules accepted from the composition request.
        catalog: Where dependencies are looked up.

    Returns:
        Resolved modules in insertion order: requested first, then
        dependencies in discovery order.

    Raises:
        MissingDependencyError: A required dependency is absent.
    """
    resolved: dict[str, DNAModule] = {}
    for module in requested:
        resolved.setdefault(module.id, module)

    to_process = list(resolved.values())
    while to_process:
        module = to_process.pop()
        for dep in module.required_dependencies:
            if dep.module_id in resolved:
                continue
            dep_module = _lookup(catalog, dep.module_id, dep.version)
            if dep_module is None:
                raise MissingDependencyError(dep.module_id, module.id)
            logger.debug("Pulled %s@%s in for %s", dep_module.id, dep_module.version, module.id)
            resolved[dep_module.id] = dep_module
            to_process.append(dep_module)

    return list(resolved.values())


def max_dependency_depth(modules: Iterable[DNAModule]) -> int:
    """Length of the longest required-dependency chain inside ``modules``.

    Dependencies outside the set are ignored and back edges of a cycle
    contribute nothing. Iterative post-order walk with memoised depths.
    """
    by_id = {m.id: m for m in modules}
    depth: dict[str, int] = {}

    for root in by_id:
        if root in depth:
            continue
        on_path: set[str] = set()
        stack: list[tuple[str, bool]] = [(root, False)]
        while stack:
            node, expanded = stack.pop()
            deps = [
                d.module_id for d in by_id[node].required_dependencies
                if d.module_id in by_id
            ]
            if expanded:
                on_path.discard(node)
                depth[node] = max(
                    (depth.get(d, 0) + 1 for d in deps if d not in on_path),
                    default=0,
                )
                continue
            if node in depth or node in on_path:
                continue
            on_path.add(node)
            stack.append((node, True))
            for d in deps:
                if d not in depth and d not in on_path:
                    stack.append((d, False))

    return max(depth.values(), default=0)
