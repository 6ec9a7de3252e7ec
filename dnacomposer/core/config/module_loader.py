"""
Module loader — loads DNA module definitions from YAML/JSON sources.

Three source kinds are supported:

    local     a directory of *.yml / *.yaml / *.json files
    remote    a URL serving one YAML or JSON document
    package   a data directory inside an installed Python package

A document is either a single module mapping, a list of module
mappings, or a mapping with a ``modules:`` list. Load failures raise
ModuleSourceError; they are never turned into composition diagnostics.
"""

from __future__ import annotations

import logging
import urllib.error
import urllib.request
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from importlib import resources
from pathlib import Path
from typing import Any, Sequence

import yaml
from pydantic import ValidationError

from dnacomposer.core.config.loader import SourceKind, SourceSpec
from dnacomposer.core.models.migration import MigrationStep
from dnacomposer.core.models.module import DNAModule
from dnacomposer.core.services.catalog import ModuleCatalog

logger = logging.getLogger(__name__)

_SUFFIXES = (".yml", ".yaml", ".json")


class ModuleSourceError(Exception):
    """Raised when a module source cannot be read or parsed."""

    def __init__(self, origin: str, reason: str):
        super().__init__(f"Cannot load modules from {origin}: {reason}")
        self.origin = origin
        self.reason = reason


def _documents(data: Any, origin: str) -> list[dict]:
    """Normalise one parsed document into a list of module mappings."""
    if isinstance(data, dict) and "modules" in data:
        data = data["modules"]
    if isinstance(data, dict):
        return [data]
    if isinstance(data, list) and all(isinstance(d, dict) for d in data):
        return data
    raise ModuleSourceError(origin, f"expected a module mapping or list, got {type(data).__name__}")


def parse_modules(text: str, origin: str) -> list[DNAModule]:
    """Parse YAML or JSON text into module records.

    Raises:
        ModuleSourceError: Bad YAML, bad shape, or a module failing
            schema validation.
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ModuleSourceError(origin, f"invalid YAML: {e}") from e
    if data is None:
        return []

    modules = []
    for i, doc in enumerate(_documents(data, origin)):
        try:
            modules.append(DNAModule.model_validate(doc))
        except ValidationError as e:
            raise ModuleSourceError(origin, f"module #{i}: {e}") from e
    logger.debug("Parsed %d modules from %s", len(modules), origin)
    return modules


class ModuleSource(ABC):
    """Something that yields module definitions."""

    kind: SourceKind

    @property
    @abstractmethod
    def origin(self) -> str:
        """Human-readable location, used in errors and logs."""

    @abstractmethod
    def load(self) -> list[DNAModule]:
        """Load every module this source provides.

        Raises:
            ModuleSourceError: The source cannot be read or parsed.
        """

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.origin}>"


class LocalModuleSource(ModuleSource):
    """Every module file in a directory, in sorted filename order."""

    kind = SourceKind.LOCAL

    def __init__(self, directory: Path | str):
        self.directory = Path(directory)

    @property
    def origin(self) -> str:
        return str(self.directory)

    def load(self) -> list[DNAModule]:
        if not self.directory.is_dir():
            raise ModuleSourceError(self.origin, "not a directory")

        modules: list[DNAModule] = []
        for path in sorted(self.directory.iterdir()):
            if not path.is_file() or path.suffix not in _SUFFIXES:
                continue
            try:
                text = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                raise ModuleSourceError(str(path), str(e)) from e
            modules.extend(parse_modules(text, str(path)))
        return modules


class RemoteModuleSource(ModuleSource):
    """One YAML/JSON document fetched over HTTP(S)."""

    kind = SourceKind.REMOTE

    def __init__(self, url: str, timeout: float = 30.0):
        self.url = url
        self.timeout = timeout

    @property
    def origin(self) -> str:
        return self.url

    def _fetch(self) -> str:
        with urllib.request.urlopen(self.url, timeout=self.timeout) as resp:
            return resp.read().decode("utf-8")

    def load(self) -> list[DNAModule]:
        try:
            text = self._fetch()
        except (urllib.error.URLError, OSError, ValueError) as e:
            raise ModuleSourceError(self.origin, str(e)) from e
        return parse_modules(text, self.origin)


class PackageModuleSource(ModuleSource):
    """Module files shipped as package data.

    ``location`` is ``package`` or ``package/subdir``.
    """

    kind = SourceKind.PACKAGE

    def __init__(self, location: str):
        package, _, subdir = location.partition("/")
        self.package = package
        self.subdir = subdir

    @property
    def origin(self) -> str:
        return f"{self.package}/{self.subdir}" if self.subdir else self.package

    def load(self) -> list[DNAModule]:
        try:
            root = resources.files(self.package)
        except ModuleNotFoundError as e:
            raise ModuleSourceError(self.origin, f"package not installed: {e}") from e
        if self.subdir:
            root = root.joinpath(self.subdir)
        if not root.is_dir():
            raise ModuleSourceError(self.origin, "no such package directory")

        modules: list[DNAModule] = []
        for entry in sorted(root.iterdir(), key=lambda t: t.name):
            if not entry.is_file() or not entry.name.endswith(_SUFFIXES):
                continue
            origin = f"{self.origin}/{entry.name}"
            try:
                text = entry.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                raise ModuleSourceError(origin, str(e)) from e
            modules.extend(parse_modules(text, origin))
        return modules


def source_from_spec(spec: SourceSpec) -> ModuleSource:
    """Build the source object a settings entry describes."""
    if spec.kind == SourceKind.REMOTE:
        return RemoteModuleSource(spec.location)
    if spec.kind == SourceKind.PACKAGE:
        return PackageModuleSource(spec.location)
    return LocalModuleSource(spec.location)


def load_sources(
    sources: Sequence[ModuleSource],
    catalog: ModuleCatalog,
    max_workers: int = 4,
) -> int:
    """Load all sources in parallel, then register in source order.

    Fetching runs in a thread pool; registration is sequential so the
    catalog's latest pointers do not depend on thread timing.

    Returns:
        Number of module records registered.

    Raises:
        ModuleSourceError: Any source failed to load.
        CatalogError: A loaded module was rejected by the catalog.
    """
    if not sources:
        return 0

    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(sources)))) as pool:
        futures = [pool.submit(src.load) for src in sources]
        loaded = [f.result() for f in futures]

    count = 0
    for src, modules in zip(sources, loaded):
        for module in modules:
            catalog.register(module)
            count += 1
        logger.info("Registered %d modules from %s", len(modules), src.origin)
    return count


def load_migrations(path: Path) -> dict[str, dict[str, list[MigrationStep]]]:
    """Read a migration registry file.

    Expected shape::

        migrations:
          auth:
            "1.1.0":
              - description: Rename session table
                automated: true
                script: ./migrate.sh

    A step's ``version`` defaults to the version key it sits under.

    Raises:
        ModuleSourceError: The file is unreadable or malformed.
    """
    origin = str(path)
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError) as e:
        raise ModuleSourceError(origin, str(e)) from e
    except yaml.YAMLError as e:
        raise ModuleSourceError(origin, f"invalid YAML: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ModuleSourceError(origin, "expected a mapping")
    table = data.get("migrations", data)
    if not isinstance(table, dict):
        raise ModuleSourceError(origin, "'migrations' must be a mapping")

    registry: dict[str, dict[str, list[MigrationStep]]] = {}
    for module_id, versions in table.items():
        if not isinstance(versions, dict):
            raise ModuleSourceError(origin, f"{module_id}: expected version → steps mapping")
        per_version: dict[str, list[MigrationStep]] = {}
        for version, steps in versions.items():
            version = str(version)
            if not isinstance(steps, list):
                raise ModuleSourceError(origin, f"{module_id}@{version}: steps must be a list")
            try:
                per_version[version] = [
                    MigrationStep.model_validate({"version": version, **step}) for step in steps
                ]
            except (TypeError, ValidationError) as e:
                raise ModuleSourceError(origin, f"{module_id}@{version}: {e}") from e
        registry[str(module_id)] = per_version
    return registry
