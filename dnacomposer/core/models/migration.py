"""
Migration models — upgrade steps and the results of running them.

Steps are the planner's output; StepResults are the executor's. The
executor never raises for a failed step: the failure is captured in
the StepResult, the same way every other collaborator outcome is.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field


class MigrationStep(BaseModel):
    """One upgrade action, keyed by the version it upgrades TO."""

    version: str
    description: str
    breaking: bool = False
    automated: bool = False
    script: str | None = None
    instructions: list[str] = Field(default_factory=list)

    @property
    def is_manual(self) -> bool:
        return not self.automated


class MigrationContext(BaseModel):
    """Everything the executor needs to upgrade one module in a project."""

    module_id: str
    from_version: str
    to_version: str
    project_path: str
    dry_run: bool = False
    backup_path: str | None = None


class MigrationState(StrEnum):
    """Executor states.

    Transitions:
        NOT_STARTED → BACKUP_CREATED → EXECUTING → COMPLETED
                                                → FAILED → ROLLED_BACK
    BACKUP_CREATED is skipped on dry runs or without a backup path.
    """

    NOT_STARTED = "not_started"
    BACKUP_CREATED = "backup_created"
    EXECUTING = "executing"
    COMPLETED = "completed"
    FAILED = "failed"
    ROLLED_BACK = "rolled_back"


class StepResult(BaseModel):
    """Outcome of one migration step."""

    step: MigrationStep
    success: bool
    output: str = ""
    error: str | None = None
    execution_time_ms: float = 0.0

    @classmethod
    def succeeded(cls, step: MigrationStep, output: str = "", **kwargs: Any) -> StepResult:
        return cls(step=step, success=True, output=output, **kwargs)

    @classmethod
    def failed(cls, step: MigrationStep, error: str, **kwargs: Any) -> StepResult:
        return cls(step=step, success=False, error=error, **kwargs)


class MigrationResult(BaseModel):
    """Outcome of a whole migration run."""

    success: bool
    version_reached: str
    steps: list[StepResult] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    execution_time_ms: float = 0.0
    state: MigrationState = MigrationState.NOT_STARTED
    rolled_back: bool = False

    @property
    def failed_steps(self) -> list[StepResult]:
        return [s for s in self.steps if not s.success]

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "version_reached": self.version_reached,
            "state": self.state.value,
            "rolled_back": self.rolled_back,
            "steps": [
                {
                    "version": s.step.version,
                    "description": s.step.description,
                    "success": s.success,
                    "output": s.output,
                    "error": s.error,
                }
                for s in self.steps
            ],
            "errors": self.errors,
            "warnings": self.warnings,
            "execution_time_ms": round(self.execution_time_ms, 2),
        }


class MigrationPreview(BaseModel):
    """Summary of an upgrade path before running it."""

    steps: list[MigrationStep] = Field(default_factory=list)
    breaking_changes: int = 0
    manual_steps: int = 0
    estimated_time: str = "0m"


class MigrationValidation(BaseModel):
    """Pre-flight check of a migration context."""

    valid: bool
    issues: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
