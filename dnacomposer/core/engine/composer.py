"""
Composition engine — the central orchestration pipeline.

The engine takes a composition request, checks every requested module
against the catalog, resolves the dependency closure, orders it,
validates conflicts and framework support, and merges configuration.
Data problems never raise: they come back as diagnostics inside a
CompositionResult.

Flow:
    request → accept modules → resolve → order → validate → merge config
"""

from __future__ import annotations

import logging
import time
import tracemalloc
from typing import Sequence

from dnacomposer.core.config.loader import ComposerSettings
from dnacomposer.core.models.composition import (
    Composition,
    CompositionPreview,
    CompositionResult,
    DiagnosticCode,
    ModuleSummary,
    OptimizationReport,
    PerformanceMetrics,
    ValidationIssue,
)
from dnacomposer.core.models.module import DNAModule
from dnacomposer.core.services.catalog import ModuleCatalog
from dnacomposer.core.services.config_merge import merge_configurations, validate_module_config
from dnacomposer.core.services.event_bus import EventBus, bus as default_bus
from dnacomposer.core.services.ordering import CircularDependencyError, dependency_order
from dnacomposer.core.services.resolver import (
    MissingDependencyError,
    max_dependency_depth,
    resolve_dependencies,
)
from dnacomposer.core.services.validators import (
    find_redundant_modules,
    validate_best_practices,
    validate_conflicts,
    validate_frameworks,
)

logger = logging.getLogger(__name__)


def calculate_complexity(modules: Sequence[DNAModule]) -> int:
    """Rough cost score of a resolved module set.

    ``n*10 + Σ(deps*5 + conflicts*3) + distinct supported frameworks*15``
    """
    score = len(modules) * 10
    frameworks: set[str] = set()
    for m in modules:
        score += len(m.dependencies) * 5 + len(m.conflicts) * 3
        frameworks.update(m.supported_frameworks)
    return score + len(frameworks) * 15


class CompositionEngine:
    """Compose DNA modules from a catalog into a validated result.

    Args:
        catalog: Populated module catalog. Never mutated here.
        settings: Composer settings (experimental policy, conflict
            symmetry, best-practice checks, memory measurement).
        event_bus: Where lifecycle events go (default: global bus).
    """

    def __init__(
        self,
        catalog: ModuleCatalog,
        settings: ComposerSettings | None = None,
        event_bus: EventBus | None = None,
    ):
        self._catalog = catalog
        self._settings = settings or ComposerSettings()
        self._bus = event_bus or default_bus

    @property
    def settings(self) -> ComposerSettings:
        return self._settings

    # ── Compose ─────────────────────────────────────────────────

    def compose_dna(self, composition: Composition) -> CompositionResult:
        """Run the full composition pipeline.

        Returns:
            CompositionResult; ``valid`` is False when any blocking
            diagnostic was produced.
        """
        started = time.perf_counter()
        tracing = self._settings.measure_memory and not tracemalloc.is_tracing()
        if tracing:
            tracemalloc.start()
        baseline = 0
        if self._settings.measure_memory:
            # Peak relative to this call, even when tracing was already on
            tracemalloc.reset_peak()
            baseline, _ = tracemalloc.get_traced_memory()

        self._bus.publish(
            "composition:started",
            data={
                "framework": composition.framework,
                "modules": [r.module_id for r in composition.modules],
            },
        )

        result = CompositionResult()
        try:
            with self._catalog.read_lock():
                self._run_pipeline(composition, result)
        except Exception as e:
            logger.exception("Composition failed unexpectedly")
            result.errors.append(ValidationIssue.error(
                DiagnosticCode.COMPOSITION_ERROR,
                f"Composition failed: {e}",
                critical=True,
            ))
            result.modules = []
            result.dependency_order = []
            result.merged_config = {}

        result.valid = not any(e.blocking for e in result.errors)

        memory = 0
        if self._settings.measure_memory:
            _, peak = tracemalloc.get_traced_memory()
            memory = max(peak - baseline, 0)
            if tracing:
                tracemalloc.stop()
        result.performance = PerformanceMetrics(
            time_ms=(time.perf_counter() - started) * 1000,
            memory_bytes=memory,
            complexity=calculate_complexity(result.modules),
        )

        if result.valid:
            logger.info(
                "Composed %d modules for %s (%d warnings)",
                len(result.modules), composition.framework, len(result.warnings),
            )
            self._bus.publish(
                "composition:completed",
                data={
                    "modules": result.dependency_order,
                    "warnings": len(result.warnings),
                    "time_ms": round(result.performance.time_ms, 3),
                },
            )
        else:
            logger.info(
                "Composition invalid: %s",
                ", ".join(str(c) for c in result.error_codes()),
            )
            self._bus.publish(
                "composition:failed",
                data={"errors": [str(c) for c in result.error_codes()]},
            )
        return result

    def _run_pipeline(self, composition: Composition, result: CompositionResult) -> None:
        accepted = self._accept_requests(composition, result)
        if any(e.blocking for e in result.errors):
            return

        try:
            resolved = resolve_dependencies(accepted, self._catalog)
        except MissingDependencyError as e:
            result.errors.append(ValidationIssue.error(
                DiagnosticCode.MISSING_DEPENDENCY,
                str(e),
                module_id=e.required_by,
                resolution=f"Register module {e.dependency_id} or mark the dependency optional",
            ))
            return

        try:
            order = dependency_order(resolved)
        except CircularDependencyError as e:
            result.errors.append(ValidationIssue.error(
                DiagnosticCode.CIRCULAR_DEPENDENCY,
                str(e),
                critical=True,
                module_id=e.cycle[0] if e.cycle else None,
            ))
            return

        by_id = {m.id: m for m in resolved}
        ordered = [by_id[mid] for mid in order]

        conflict_errors, conflict_warnings = validate_conflicts(
            resolved, symmetric=self._settings.symmetric_conflicts,
        )
        fw_errors, fw_warnings = validate_frameworks(resolved, composition.framework)
        result.errors.extend(conflict_errors + fw_errors)
        result.warnings.extend(conflict_warnings + fw_warnings)
        if self._settings.best_practices:
            result.warnings.extend(validate_best_practices(ordered))

        merged = merge_configurations(ordered, composition)
        for module in ordered:
            for problem in validate_module_config(module, merged[module.id]):
                result.warnings.append(ValidationIssue.warning(
                    DiagnosticCode.CONFIG_VALIDATION,
                    f"Invalid configuration for {module.metadata.name}: {problem}",
                    module_id=module.id,
                ))

        result.modules = ordered
        result.dependency_order = order
        result.merged_config = merged

    def _accept_requests(
        self,
        composition: Composition,
        result: CompositionResult,
    ) -> list[DNAModule]:
        """Look up every requested module; scan all before giving up."""
        accepted: list[DNAModule] = []
        for req in composition.modules:
            if req.version:
                module = self._catalog.get_version(req.module_id, req.version)
            else:
                module = self._catalog.get(req.module_id)

            if module is None:
                label = f"{req.module_id}@{req.version}" if req.version else req.module_id
                result.errors.append(ValidationIssue.error(
                    DiagnosticCode.MODULE_NOT_FOUND,
                    f"Module {label} not found",
                    critical=True,
                    module_id=req.module_id,
                    resolution="Check the module id or register the module",
                ))
                continue

            if module.is_deprecated:
                result.warnings.append(ValidationIssue.warning(
                    DiagnosticCode.MODULE_DEPRECATED,
                    f"Module {module.metadata.name} is deprecated",
                    module_id=module.id,
                    resolution="Consider a maintained alternative",
                ))

            if module.is_experimental and not self._settings.allow_experimental:
                result.errors.append(ValidationIssue.error(
                    DiagnosticCode.MODULE_EXPERIMENTAL,
                    f"Module {module.metadata.name} is experimental and not allowed",
                    module_id=module.id,
                    resolution="Enable allow_experimental to use experimental modules",
                ))
                continue

            accepted.append(module)
        return accepted

    # ── Preview / optimize ──────────────────────────────────────

    def preview(self, composition: Composition) -> CompositionPreview:
        """Describe what a composition would produce."""
        result = self.compose_dna(composition)

        estimated_files = 0
        for m in result.modules:
            estimated_files += 5 + len(m.supported_frameworks) * 2 + len(m.dependencies)

        conflicts = [
            e.message for e in result.errors if e.code == DiagnosticCode.MODULE_CONFLICT
        ]
        return CompositionPreview(
            valid=result.valid,
            modules=[
                ModuleSummary(id=m.id, name=m.metadata.name, version=m.version)
                for m in result.modules
            ],
            dependencies=result.dependency_order,
            conflicts=conflicts,
            estimated_files=estimated_files,
            estimated_complexity=result.performance.complexity,
            max_dependency_depth=max_dependency_depth(result.modules),
            warnings=[w.message for w in result.warnings],
        )

    def optimize(self, composition: Composition) -> OptimizationReport:
        """Suggest a smaller composition by dropping redundant requests.

        A requested module is redundant when an earlier module in the
        resolved order already covers its category. Testing modules are
        always kept.
        """
        original = self.compose_dna(composition)
        redundant = set(find_redundant_modules(original.modules))
        requested = {r.module_id for r in composition.modules}
        removable = redundant & requested

        optimized = composition.model_copy(update={
            "modules": [r for r in composition.modules if r.module_id not in removable],
        })
        suggestions = [f"Consider removing redundant module: {mid}" for mid in sorted(removable)]

        if removable:
            optimized_complexity = self.compose_dna(optimized).performance.complexity
        else:
            optimized_complexity = original.performance.complexity

        return OptimizationReport(
            original_complexity=original.performance.complexity,
            optimized_composition=optimized,
            optimized_complexity=optimized_complexity,
            suggestions=suggestions,
        )
