"""
Adapter base — contracts for the side-effecting migration collaborators.

The migration executor only talks to the outside world through these
two interfaces: a ScriptRunner for automated steps and a BackupService
for snapshot and rollback. Implementations raise the errors declared
here; the executor turns them into step results or result errors.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from dnacomposer.core.models.migration import MigrationContext


class ScriptExecutionError(Exception):
    """Raised when a migration script fails, times out, or cannot start."""

    def __init__(self, script: str, reason: str, output: str = ""):
        super().__init__(f"Script {script!r} failed: {reason}")
        self.script = script
        self.reason = reason
        self.output = output


class BackupError(Exception):
    """Raised when a backup cannot be created or restored."""


class ScriptRunner(ABC):
    """Runs the script attached to an automated migration step.

    To add a runner:
        1. Subclass ScriptRunner
        2. Implement name and execute
        3. Pass it to MigrationExecutor
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Runner identifier (e.g. 'shell', 'mock')."""

    @abstractmethod
    def execute(
        self,
        script: str,
        context: MigrationContext,
        timeout: float | None = None,
    ) -> str:
        """Run ``script`` against ``context.project_path``.

        Returns:
            Captured output.

        Raises:
            ScriptExecutionError: Non-zero exit, timeout, or launch failure.
        """

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"


class BackupService(ABC):
    """Snapshots a project before migrating and restores it on failure."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Service identifier (e.g. 'directory', 'mock')."""

    @abstractmethod
    def create(self, project_path: str, backup_path: str, timeout: float | None = None) -> None:
        """Copy ``project_path`` to ``backup_path``.

        Raises:
            BackupError: The snapshot could not be taken.
        """

    @abstractmethod
    def restore(self, backup_path: str, project_path: str, timeout: float | None = None) -> None:
        """Put ``backup_path`` back in place of ``project_path``.

        Raises:
            BackupError: The restore did not complete.
        """

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"
