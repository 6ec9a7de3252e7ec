"""
Composition models — the request to combine modules and its result.

A Composition names the modules a project wants, the target framework
and any configuration overrides. The CompositionResult is a value
produced per call: it is never persisted and the caller owns it.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, Field

from dnacomposer.core.models.module import DNAModule, TemplateType


class DiagnosticCode(StrEnum):
    """Stable identifiers for composition diagnostics."""

    MODULE_NOT_FOUND = "MODULE_NOT_FOUND"
    MODULE_EXPERIMENTAL = "MODULE_EXPERIMENTAL"
    MODULE_DEPRECATED = "MODULE_DEPRECATED"
    MISSING_DEPENDENCY = "MISSING_DEPENDENCY"
    CIRCULAR_DEPENDENCY = "CIRCULAR_DEPENDENCY"
    MODULE_CONFLICT = "MODULE_CONFLICT"
    MODULE_CONFLICT_WARNING = "MODULE_CONFLICT_WARNING"
    FRAMEWORK_INCOMPATIBLE = "FRAMEWORK_INCOMPATIBLE"
    FRAMEWORK_PARTIAL_SUPPORT = "FRAMEWORK_PARTIAL_SUPPORT"
    FRAMEWORK_LIMITATIONS = "FRAMEWORK_LIMITATIONS"
    CONFIG_VALIDATION = "CONFIG_VALIDATION"
    BEST_PRACTICE_CATEGORY_OVERUSE = "BEST_PRACTICE_CATEGORY_OVERUSE"
    BEST_PRACTICE_EXPERIMENTAL_MODULES = "BEST_PRACTICE_EXPERIMENTAL_MODULES"
    COMPOSITION_ERROR = "COMPOSITION_ERROR"


class ValidationIssue(BaseModel):
    """One diagnostic produced while composing.

    ``critical`` and ``error`` block the composition; ``warning``
    never does.
    """

    code: DiagnosticCode
    message: str
    severity: Literal["critical", "error", "warning"] = "error"
    module_id: str | None = None
    resolution: str | None = None
    impact: Literal["low", "medium", "high"] | None = None

    @property
    def blocking(self) -> bool:
        return self.severity != "warning"

    @classmethod
    def error(
        cls,
        code: DiagnosticCode,
        message: str,
        *,
        critical: bool = False,
        **kwargs: Any,
    ) -> ValidationIssue:
        """Create a blocking diagnostic."""
        return cls(
            code=code,
            message=message,
            severity="critical" if critical else "error",
            **kwargs,
        )

    @classmethod
    def warning(
        cls,
        code: DiagnosticCode,
        message: str,
        *,
        impact: Literal["low", "medium", "high"] = "medium",
        **kwargs: Any,
    ) -> ValidationIssue:
        """Create a non-blocking diagnostic."""
        return cls(code=code, message=message, severity="warning", impact=impact, **kwargs)


class ModuleRequest(BaseModel):
    """One module entry in a composition request."""

    module_id: str = Field(min_length=1)
    version: str | None = None   # None = catalog's latest
    config: dict[str, Any] = Field(default_factory=dict)


class Composition(BaseModel):
    """A request to combine modules for a target framework."""

    modules: list[ModuleRequest] = Field(default_factory=list)
    framework: str
    template_type: str = TemplateType.FOUNDATION
    global_config: dict[str, Any] = Field(default_factory=dict)

    def request_for(self, module_id: str) -> ModuleRequest | None:
        """First request entry naming ``module_id``."""
        for req in self.modules:
            if req.module_id == module_id:
                return req
        return None


class PerformanceMetrics(BaseModel):
    """Cost figures for one composition."""

    time_ms: float = 0.0
    memory_bytes: int = 0
    complexity: int = 0


class CompositionResult(BaseModel):
    """Validated, ordered and configured outcome of a composition."""

    valid: bool = False
    modules: list[DNAModule] = Field(default_factory=list)
    errors: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[ValidationIssue] = Field(default_factory=list)
    dependency_order: list[str] = Field(default_factory=list)
    merged_config: dict[str, Any] = Field(default_factory=dict)
    performance: PerformanceMetrics = Field(default_factory=PerformanceMetrics)

    def error_codes(self) -> list[DiagnosticCode]:
        return [e.code for e in self.errors]

    def warning_codes(self) -> list[DiagnosticCode]:
        return [w.code for w in self.warnings]

    def to_dict(self) -> dict[str, Any]:
        return {
            "valid": self.valid,
            "modules": [{"id": m.id, "version": m.version} for m in self.modules],
            "dependency_order": self.dependency_order,
            "errors": [e.model_dump(mode="json", exclude_none=True) for e in self.errors],
            "warnings": [w.model_dump(mode="json", exclude_none=True) for w in self.warnings],
            "merged_config": self.merged_config,
            "performance": self.performance.model_dump(mode="json"),
        }


class ModuleSummary(BaseModel):
    """Short identity of a module for previews."""

    id: str
    name: str
    version: str


class CompositionPreview(BaseModel):
    """What a composition would produce, without generating anything."""

    valid: bool
    modules: list[ModuleSummary] = Field(default_factory=list)
    dependencies: list[str] = Field(default_factory=list)
    conflicts: list[str] = Field(default_factory=list)
    estimated_files: int = 0
    estimated_complexity: int = 0
    max_dependency_depth: int = 0
    warnings: list[str] = Field(default_factory=list)


class OptimizationReport(BaseModel):
    """Suggested reductions of a composition."""

    original_complexity: int
    optimized_composition: Composition
    optimized_complexity: int
    suggestions: list[str] = Field(default_factory=list)
