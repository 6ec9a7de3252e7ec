"""
Migration executor — runs a planned upgrade step by step.

State machine:

    NOT_STARTED → BACKUP_CREATED → EXECUTING → COMPLETED
                                             → FAILED → ROLLED_BACK

BACKUP_CREATED is skipped on dry runs and when no backup path is set.
Steps run strictly in sequence. A failed step is recorded and the run
continues, unless the step is breaking, in which case nothing after
it runs. Any failure (cancellation included) restores the backup when
one was taken.
"""

from __future__ import annotations

import logging
import threading
import time

from dnacomposer.adapters.base import BackupError, BackupService, ScriptExecutionError, ScriptRunner
from dnacomposer.core.models.migration import (
    MigrationContext,
    MigrationResult,
    MigrationState,
    MigrationStep,
    StepResult,
)
from dnacomposer.core.services.event_bus import EventBus, bus as default_bus
from dnacomposer.core.services.migration.planner import MigrationPlanner

logger = logging.getLogger(__name__)


class MigrationExecutor:
    """Execute migration paths produced by a MigrationPlanner.

    Args:
        planner: Source of migration paths.
        script_runner: Runs automated step scripts.
        backup_service: Takes and restores project snapshots.
        event_bus: Where lifecycle events go (default: the global
            asynchronous bus, so listeners never hold up a step).
        script_timeout_s: Per-script timeout.
        backup_timeout_s: Timeout for backup and restore.
    """

    def __init__(
        self,
        planner: MigrationPlanner,
        script_runner: ScriptRunner,
        backup_service: BackupService,
        event_bus: EventBus | None = None,
        script_timeout_s: float = 300.0,
        backup_timeout_s: float = 600.0,
    ):
        self._planner = planner
        self._runner = script_runner
        self._backup = backup_service
        self._bus = event_bus or default_bus
        self._script_timeout = script_timeout_s
        self._backup_timeout = backup_timeout_s

    def _emit(self, event: str, context: MigrationContext, **data: object) -> None:
        self._bus.publish(f"migration:{event}", key=context.module_id, data=data)

    def execute(
        self,
        context: MigrationContext,
        cancel: threading.Event | None = None,
    ) -> MigrationResult:
        """Run every step from ``context.from_version`` to ``context.to_version``.

        Args:
            context: What to migrate and where.
            cancel: Set it to stop before the next step. Cancellation
                counts as a failure and triggers rollback.

        Raises:
            BackupError: The initial backup could not be created.
        """
        started = time.perf_counter()
        result = MigrationResult(success=False, version_reached=context.from_version)
        steps = self._planner.get_migration_path(
            context.module_id, context.from_version, context.to_version,
        )
        take_backup = not context.dry_run and bool(context.backup_path)

        logger.info(
            "Migrating %s %s → %s (%d steps%s)",
            context.module_id, context.from_version, context.to_version,
            len(steps), ", dry run" if context.dry_run else "",
        )
        self._emit(
            "started", context,
            from_version=context.from_version,
            to_version=context.to_version,
            steps=len(steps),
            dry_run=context.dry_run,
        )

        if take_backup:
            try:
                self._backup.create(context.project_path, context.backup_path, self._backup_timeout)
            except BackupError as e:
                logger.error("Backup failed, migration not started: %s", e)
                self._emit("failed", context, error=str(e))
                raise
            result.state = MigrationState.BACKUP_CREATED

        result.state = MigrationState.EXECUTING
        cancelled = False

        for index, step in enumerate(steps):
            if cancel is not None and cancel.is_set():
                cancelled = True
                result.errors.append(f"Migration cancelled before step {step.version}")
                logger.warning("Migration of %s cancelled at step %d", context.module_id, index)
                break

            self._emit("step_started", context, index=index, version=step.version)
            step_result = self._run_step(step, context)
            result.steps.append(step_result)
            self._emit(
                "step_completed", context,
                index=index,
                version=step.version,
                success=step_result.success,
            )

            if not step_result.success:
                result.errors.append(f"Step {step.version} failed: {step_result.error}")
                if step.breaking:
                    logger.error("Breaking step %s failed, aborting", step.version)
                    break
                continue

            if step.breaking:
                prefix = "Breaking change would be applied" if context.dry_run else "Breaking change applied"
                result.warnings.append(f"{prefix}: {step.description}")

        result.success = not cancelled and all(s.success for s in result.steps)

        if result.success:
            result.state = MigrationState.COMPLETED
            result.version_reached = context.to_version
            self._emit("completed", context, version=context.to_version)
        else:
            result.state = MigrationState.FAILED
            self._emit("failed", context, errors=list(result.errors))
            if take_backup:
                self._rollback(context, result)

        result.execution_time_ms = (time.perf_counter() - started) * 1000
        logger.info(
            "Migration of %s finished: %s at %s",
            context.module_id, result.state.value, result.version_reached,
        )
        return result

    def _run_step(self, step: MigrationStep, context: MigrationContext) -> StepResult:
        start = time.perf_counter()

        def elapsed() -> float:
            return (time.perf_counter() - start) * 1000

        if context.dry_run:
            return StepResult.succeeded(
                step, f"DRY RUN: Would execute - {step.description}",
                execution_time_ms=elapsed(),
            )

        if step.is_manual:
            # Carried out by a person; nothing here can fail.
            instructions = "; ".join(step.instructions) or step.description
            return StepResult.succeeded(
                step, f"Manual step completed: {instructions}",
                execution_time_ms=elapsed(),
            )

        if not step.script:
            return StepResult.succeeded(step, step.description, execution_time_ms=elapsed())

        try:
            output = self._runner.execute(step.script, context, self._script_timeout)
        except ScriptExecutionError as e:
            logger.warning("Step %s failed: %s", step.version, e)
            return StepResult.failed(step, str(e), output=e.output, execution_time_ms=elapsed())
        except Exception as e:
            # Any runner fault is a step failure so the rollback path still runs
            logger.exception("Step %s raised in runner %s", step.version, self._runner.name)
            return StepResult.failed(
                step, f"{type(e).__name__}: {e}", execution_time_ms=elapsed(),
            )
        return StepResult.succeeded(step, output, execution_time_ms=elapsed())

    def _rollback(self, context: MigrationContext, result: MigrationResult) -> None:
        if context.backup_path is None:
            return
        try:
            self._backup.restore(context.backup_path, context.project_path, self._backup_timeout)
        except BackupError as e:
            logger.error("Rollback of %s failed: %s", context.module_id, e)
            result.errors.append(f"Rollback failed: {e}")
            return
        result.rolled_back = True
        result.state = MigrationState.ROLLED_BACK
        logger.info("Rolled back %s from %s", context.project_path, context.backup_path)
        self._emit("rolled_back", context, backup_path=context.backup_path)
