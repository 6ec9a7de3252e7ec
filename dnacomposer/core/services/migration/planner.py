"""
Migration planner — which steps upgrade a module between two versions.

Steps are registered per ``(module_id, version)``, where ``version`` is
the release the steps upgrade TO. A path from ``a`` to ``b`` contains
every step registered at a version ``v`` with ``a < v <= b``, ordered
by version. Downgrades are not supported: the path is empty whenever
``from_version >= to_version``.

This registry is separate from the module catalog.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Iterable

from dnacomposer.core.models.migration import (
    MigrationContext,
    MigrationPreview,
    MigrationStep,
    MigrationValidation,
)
from dnacomposer.core.services.versioning import compare_versions, in_interval, version_key

logger = logging.getLogger(__name__)

# Minutes per step for preview estimates
_MINUTES_PER_STEP = 2
_MINUTES_PER_MANUAL_STEP = 5


def format_duration(minutes: int) -> str:
    """``45`` → ``"45m"``, ``90`` → ``"1h 30m"``."""
    if minutes >= 60:
        return f"{minutes // 60}h {minutes % 60}m"
    return f"{minutes}m"


class MigrationPlanner:
    """Registry of migration steps plus path planning over it."""

    def __init__(self) -> None:
        self._steps: dict[tuple[str, str], list[MigrationStep]] = {}
        self._lock = threading.Lock()

    def register_migration(
        self,
        module_id: str,
        version: str,
        steps: Iterable[MigrationStep],
    ) -> None:
        """Register the steps that upgrade ``module_id`` to ``version``.

        Registering the same pair again replaces its steps.
        """
        steps = list(steps)
        with self._lock:
            self._steps[(module_id, version)] = steps
        logger.debug("Registered %d migration steps for %s@%s", len(steps), module_id, version)

    def register_all(self, registry: dict[str, dict[str, list[MigrationStep]]]) -> int:
        """Register a whole ``module → version → steps`` table.

        Returns:
            Number of (module, version) entries registered.
        """
        count = 0
        for module_id, versions in registry.items():
            for version, steps in versions.items():
                self.register_migration(module_id, version, steps)
                count += 1
        return count

    def registered_versions(self, module_id: str) -> list[str]:
        with self._lock:
            found = [v for (mid, v) in self._steps if mid == module_id]
        return sorted(found, key=version_key)

    def get_migration_path(
        self,
        module_id: str,
        from_version: str,
        to_version: str,
    ) -> list[MigrationStep]:
        """Steps to go from ``from_version`` to ``to_version``, in order.

        Returns an empty list for same-version or downgrade requests.
        """
        if compare_versions(from_version, to_version) >= 0:
            return []

        with self._lock:
            entries = [
                steps for (mid, v), steps in self._steps.items()
                if mid == module_id and in_interval(v, from_version, to_version)
            ]

        path = [step for steps in entries for step in steps]
        # stable sort keeps registration order within one version
        path.sort(key=lambda s: version_key(s.version))
        return path

    def get_breaking_changes(
        self,
        module_id: str,
        from_version: str,
        to_version: str,
    ) -> list[MigrationStep]:
        return [
            s for s in self.get_migration_path(module_id, from_version, to_version)
            if s.breaking
        ]

    def is_migration_needed(self, module_id: str, from_version: str, to_version: str) -> bool:
        return bool(self.get_migration_path(module_id, from_version, to_version))

    def get_migration_preview(
        self,
        module_id: str,
        from_version: str,
        to_version: str,
    ) -> MigrationPreview:
        steps = self.get_migration_path(module_id, from_version, to_version)
        breaking = sum(1 for s in steps if s.breaking)
        manual = sum(1 for s in steps if s.is_manual)
        minutes = len(steps) * _MINUTES_PER_STEP + manual * _MINUTES_PER_MANUAL_STEP
        return MigrationPreview(
            steps=steps,
            breaking_changes=breaking,
            manual_steps=manual,
            estimated_time=format_duration(minutes),
        )

    def validate_migration(self, context: MigrationContext) -> MigrationValidation:
        """Pre-flight checks before running a migration."""
        issues: list[str] = []
        warnings: list[str] = []

        if compare_versions(context.from_version, context.to_version) >= 0:
            issues.append(
                f"Target version {context.to_version} is not newer than {context.from_version}"
            )

        if not context.dry_run and not Path(context.project_path).is_dir():
            issues.append(f"Project path does not exist: {context.project_path}")

        path = self.get_migration_path(context.module_id, context.from_version, context.to_version)
        breaking = [s for s in path if s.breaking]
        if breaking:
            warnings.append(f"Migration includes {len(breaking)} breaking changes")
        manual = [s for s in path if s.is_manual]
        if manual:
            warnings.append(f"Migration requires {len(manual)} manual steps")
        if breaking and not context.backup_path and not context.dry_run:
            warnings.append("No backup path set; a failed breaking step cannot be rolled back")

        return MigrationValidation(valid=not issues, issues=issues, warnings=warnings)
