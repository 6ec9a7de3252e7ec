"""
Mock collaborators — in-memory test doubles for migrations.

Used in tests and dry-run tooling to exercise the executor without
touching a shell or the filesystem. Both doubles succeed by default
and can be told to fail.
"""

from __future__ import annotations

from dnacomposer.adapters.base import BackupError, BackupService, ScriptExecutionError, ScriptRunner
from dnacomposer.core.models.migration import MigrationContext


class MockScriptRunner(ScriptRunner):
    """Records every script it is asked to run.

    By default returns ``default_output``. Individual scripts can be
    given a custom output or configured to fail.
    """

    def __init__(self, default_output: str = "[mock] executed"):
        self._default_output = default_output
        self._outputs: dict[str, str] = {}
        self._failures: dict[str, str] = {}
        self._call_log: list[tuple[str, MigrationContext]] = []

    @property
    def name(self) -> str:
        return "mock"

    @property
    def call_log(self) -> list[tuple[str, MigrationContext]]:
        """``(script, context)`` for every call, in order."""
        return self._call_log

    @property
    def scripts_run(self) -> list[str]:
        return [script for script, _ in self._call_log]

    @property
    def call_count(self) -> int:
        return len(self._call_log)

    def set_output(self, script: str, output: str) -> None:
        self._outputs[script] = output

    def set_failure(self, script: str, error: str = "Mock failure") -> None:
        """Configure ``script`` to raise ScriptExecutionError."""
        self._failures[script] = error

    def execute(
        self,
        script: str,
        context: MigrationContext,
        timeout: float | None = None,
    ) -> str:
        self._call_log.append((script, context))
        if script in self._failures:
            raise ScriptExecutionError(script, self._failures[script])
        return self._outputs.get(script, self._default_output)


class MockBackupService(BackupService):
    """Records backup and restore calls without copying anything."""

    def __init__(self, fail_create: bool = False, fail_restore: bool = False):
        self.fail_create = fail_create
        self.fail_restore = fail_restore
        self.created: list[tuple[str, str]] = []
        self.restored: list[tuple[str, str]] = []

    @property
    def name(self) -> str:
        return "mock"

    def create(self, project_path: str, backup_path: str, timeout: float | None = None) -> None:
        if self.fail_create:
            raise BackupError(f"Mock backup of {project_path} failed")
        self.created.append((project_path, backup_path))

    def restore(self, backup_path: str, project_path: str, timeout: float | None = None) -> None:
        if self.fail_restore:
            raise BackupError(f"Mock restore of {project_path} failed")
        self.restored.append((backup_path, project_path))
