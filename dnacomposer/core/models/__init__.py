"""
Domain models — Pydantic types for the composer.

All models are re-exported here for convenient access:

    from dnacomposer.core.models import DNAModule, Composition, MigrationStep
"""

from dnacomposer.core.models.composition import (
    Composition,
    CompositionPreview,
    CompositionResult,
    DiagnosticCode,
    ModuleRequest,
    ModuleSummary,
    OptimizationReport,
    PerformanceMetrics,
    ValidationIssue,
)
from dnacomposer.core.models.migration import (
    MigrationContext,
    MigrationPreview,
    MigrationResult,
    MigrationState,
    MigrationStep,
    MigrationValidation,
    StepResult,
)
from dnacomposer.core.models.module import (
    CompatibilityLevel,
    ConfigRule,
    DNAModule,
    Framework,
    FrameworkSupport,
    LifecycleStage,
    ModuleCategory,
    ModuleConfig,
    ModuleConflict,
    ModuleDependency,
    ModuleMetadata,
    TemplateType,
)

__all__ = [
    "CompatibilityLevel",
    "Composition",
    "CompositionPreview",
    "CompositionResult",
    "ConfigRule",
    "DNAModule",
    "DiagnosticCode",
    "Framework",
    "FrameworkSupport",
    "LifecycleStage",
    "MigrationContext",
    "MigrationPreview",
    "MigrationResult",
    "MigrationState",
    "MigrationStep",
    "MigrationValidation",
    "ModuleCategory",
    "ModuleConfig",
    "ModuleConflict",
    "ModuleDependency",
    "ModuleMetadata",
    "ModuleRequest",
    "ModuleSummary",
    "OptimizationReport",
    "PerformanceMetrics",
    "StepResult",
    "TemplateType",
    "ValidationIssue",
]
