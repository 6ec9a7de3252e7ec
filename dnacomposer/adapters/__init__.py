"""Adapters — side-effecting collaborators used by migrations.

Public re-exports for convenient access.
"""

from dnacomposer.adapters.base import BackupError, BackupService, ScriptExecutionError, ScriptRunner
from dnacomposer.adapters.mock import MockBackupService, MockScriptRunner

__all__ = [
    "BackupError",
    "BackupService",
    "MockBackupService",
    "MockScriptRunner",
    "ScriptExecutionError",
    "ScriptRunner",
]
