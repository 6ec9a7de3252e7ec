"""
Shell script runner — runs automated migration scripts in a subprocess.

The script runs through the shell with the project directory as its
working directory. Migration context is exported as environment
variables so scripts need no argument parsing:

    DNA_MODULE_ID, DNA_FROM_VERSION, DNA_TO_VERSION, DNA_PROJECT_PATH
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import time

from dnacomposer.adapters.base import ScriptExecutionError, ScriptRunner
from dnacomposer.core.models.migration import MigrationContext

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_S = 300


class ShellScriptRunner(ScriptRunner):
    """Execute migration scripts with ``subprocess.run(shell=True)``."""

    @property
    def name(self) -> str:
        return "shell"

    def is_available(self) -> bool:
        return shutil.which("sh") is not None

    def _environment(self, context: MigrationContext) -> dict[str, str]:
        env = dict(os.environ)
        env.update({
            "DNA_MODULE_ID": context.module_id,
            "DNA_FROM_VERSION": context.from_version,
            "DNA_TO_VERSION": context.to_version,
            "DNA_PROJECT_PATH": context.project_path,
        })
        return env

    def execute(
        self,
        script: str,
        context: MigrationContext,
        timeout: float | None = None,
    ) -> str:
        timeout = timeout or DEFAULT_TIMEOUT_S
        logger.debug("Running migration script: %s (cwd=%s)", script, context.project_path)
        start = time.monotonic()

        try:
            result = subprocess.run(
                script,
                shell=True,
                cwd=context.project_path,
                env=self._environment(context),
                capture_output=True,
                text=True,
                errors="replace",
                timeout=timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise ScriptExecutionError(script, f"timed out after {timeout}s") from e
        except OSError as e:
            raise ScriptExecutionError(script, f"could not start: {e}") from e

        elapsed_ms = int((time.monotonic() - start) * 1000)
        output = result.stdout.strip()
        stderr = result.stderr.strip()

        if result.returncode != 0:
            logger.debug("Script exited %d after %dms", result.returncode, elapsed_ms)
            raise ScriptExecutionError(
                script,
                stderr or f"exited with code {result.returncode}",
                output=output,
            )

        logger.debug("Script finished in %dms", elapsed_ms)
        return output
