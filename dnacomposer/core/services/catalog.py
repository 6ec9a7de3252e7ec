"""
Module catalog — the in-memory store of every registered DNA module.

The catalog is the single point of module management. It handles
registration, lookup by id or by exact version, search, and the
"latest" pointer used when a request omits a version. Compositions
never read module definitions from anywhere else.

Storage:
    _modules   (id, version) → DNAModule     every registered record
    _latest    id → DNAModule                 pointer per LatestPolicy
    _order     [id, ...]                      first-registration order

Thread safety: readers–writer discipline. Any number of compositions
may read concurrently; ``register`` and ``clear`` wait for exclusive
access.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from enum import StrEnum
from typing import Any, Iterator

from pydantic import ValidationError

from dnacomposer.core.models.module import DNAModule
from dnacomposer.core.services.event_bus import EventBus, bus as default_bus
from dnacomposer.core.services.versioning import compare_versions, version_key

logger = logging.getLogger(__name__)


class CatalogError(Exception):
    """Base class for registration failures."""


class DuplicateModuleError(CatalogError):
    """Raised when an (id, version) pair is already registered."""

    def __init__(self, module_id: str, version: str):
        super().__init__(f"Module {module_id}@{version} is already registered")
        self.module_id = module_id
        self.version = version


class SelfDependencyError(CatalogError):
    """Raised when a module lists itself as a dependency."""

    def __init__(self, module_id: str):
        super().__init__(f"Module {module_id} declares a dependency on itself")
        self.module_id = module_id


class InvalidMetadataError(CatalogError):
    """Raised when a module definition fails schema validation."""

    def __init__(self, module_id: str, problems: list[str]):
        detail = "; ".join(problems)
        super().__init__(f"Invalid module metadata for {module_id}: {detail}")
        self.module_id = module_id
        self.problems = problems


class LatestPolicy(StrEnum):
    """Which record ``get(id)`` returns when several versions exist."""

    LAST_REGISTERED = "last_registered"
    HIGHEST_VERSION = "highest_version"


class ReadWriteLock:
    """Readers–writer lock without writer preference.

    Read sections may nest; a writer waits until no reader or writer
    is active.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writing = False

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writing:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            while self._writing or self._readers:
                self._cond.wait()
            self._writing = True
        try:
            yield
        finally:
            with self._cond:
                self._writing = False
                self._cond.notify_all()


def _format_validation_error(exc: ValidationError) -> list[str]:
    """Flatten a pydantic error into ``field: message`` strings."""
    problems = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "<root>"
        problems.append(f"{loc}: {err.get('msg', 'invalid')}")
    return problems


class ModuleCatalog:
    """Registry of DNA modules keyed by id and by (id, version).

    Args:
        latest_policy: How the "latest" pointer moves on registration.
        event_bus: Where lifecycle notifications go (default: global bus).
    """

    def __init__(
        self,
        latest_policy: LatestPolicy = LatestPolicy.LAST_REGISTERED,
        event_bus: EventBus | None = None,
    ):
        self._modules: dict[tuple[str, str], DNAModule] = {}
        self._latest: dict[str, DNAModule] = {}
        self._order: list[str] = []
        self._latest_policy = LatestPolicy(latest_policy)
        self._bus = event_bus or default_bus
        self._lock = ReadWriteLock()

    @property
    def latest_policy(self) -> LatestPolicy:
        return self._latest_policy

    @contextmanager
    def read_lock(self) -> Iterator[None]:
        """Hold the catalog stable for a multi-step read (a composition)."""
        with self._lock.read():
            yield

    # ── Registration ────────────────────────────────────────────

    def register(self, module: DNAModule) -> None:
        """Register a module record.

        Raises:
            SelfDependencyError: The module depends on itself.
            DuplicateModuleError: ``(id, version)`` is already registered.
        """
        if module.depends_on(module.id):
            raise SelfDependencyError(module.id)

        with self._lock.write():
            if module.key in self._modules:
                raise DuplicateModuleError(module.id, module.version)

            self._modules[module.key] = module
            current = self._latest.get(module.id)
            if current is None:
                self._order.append(module.id)
                self._latest[module.id] = module
            elif self._latest_policy == LatestPolicy.LAST_REGISTERED:
                self._latest[module.id] = module
            elif compare_versions(module.version, current.version) >= 0:
                self._latest[module.id] = module

        logger.debug("Registered module: %s@%s", module.id, module.version)
        self._bus.publish(
            "module:registered",
            key=module.id,
            data={"version": module.version},
        )

    def register_definition(self, data: dict[str, Any]) -> DNAModule:
        """Validate a raw module mapping and register it.

        Raises:
            InvalidMetadataError: The mapping fails schema validation.
        """
        try:
            module = DNAModule.model_validate(data)
        except ValidationError as e:
            meta = data.get("metadata") if isinstance(data, dict) else None
            module_id = meta.get("id", "unknown") if isinstance(meta, dict) else "unknown"
            raise InvalidMetadataError(module_id, _format_validation_error(e)) from e
        self.register(module)
        return module

    def clear(self) -> None:
        """Remove every module."""
        with self._lock.write():
            self._modules.clear()
            self._latest.clear()
            self._order.clear()
        self._bus.publish("registry:cleared")

    # ── Lookup ──────────────────────────────────────────────────

    def get(self, module_id: str) -> DNAModule | None:
        """The latest module for ``module_id``."""
        with self._lock.read():
            return self._latest.get(module_id)

    def get_version(self, module_id: str, version: str) -> DNAModule | None:
        """The exact ``(module_id, version)`` record."""
        with self._lock.read():
            return self._modules.get((module_id, version))

    def versions(self, module_id: str) -> list[str]:
        """All registered versions of ``module_id``, ascending."""
        with self._lock.read():
            found = [v for (mid, v) in self._modules if mid == module_id]
        return sorted(found, key=version_key)

    def all_modules(self) -> list[DNAModule]:
        """Latest record of every module, in first-registration order."""
        with self._lock.read():
            return [self._latest[mid] for mid in self._order]

    def by_category(self, category: str) -> list[DNAModule]:
        return [m for m in self.all_modules() if m.metadata.category == category]

    def for_framework(self, framework: str) -> list[DNAModule]:
        """Modules declaring ``supported`` for ``framework``."""
        result = []
        for m in self.all_modules():
            support = m.framework_support(framework)
            if support is not None and support.supported:
                result.append(m)
        return result

    def search(self, query: str) -> list[DNAModule]:
        """Case-insensitive match on name, id, description and keywords."""
        q = query.lower()
        result = []
        for m in self.all_modules():
            meta = m.metadata
            if (
                q in meta.name.lower()
                or q in meta.id.lower()
                or q in meta.description.lower()
                or any(q in kw.lower() for kw in meta.keywords)
            ):
                result.append(m)
        return result

    def dependency_tree(self, module_id: str) -> dict[str, list[str]]:
        """Map every module reachable from ``module_id`` to its dependency ids.

        Walks latest records with an explicit stack; unknown ids are
        left out of the tree.
        """
        tree: dict[str, list[str]] = {}
        stack = [module_id]
        visited: set[str] = set()
        while stack:
            current = stack.pop()
            if current in visited:
                continue
            visited.add(current)
            module = self.get(current)
            if module is None:
                continue
            deps = [d.module_id for d in module.dependencies]
            tree[current] = deps
            stack.extend(d for d in reversed(deps) if d not in visited)
        return tree

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._modules)

    def __contains__(self, module_id: object) -> bool:
        with self._lock.read():
            return module_id in self._latest

    def __repr__(self) -> str:
        return f"<ModuleCatalog modules={len(self)} policy={self._latest_policy.value}>"
