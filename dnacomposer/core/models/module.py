"""
Module model — a versioned DNA module and everything it declares.

A DNA module is a self-contained feature unit (auth, payments, analytics,
...) with declared dependencies, conflicts, per-framework support and
configuration defaults. Records are frozen: a new version is a new record,
never a mutation of an existing one.
"""

from __future__ import annotations

import re
from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

VERSION_PATTERN = re.compile(r"^\d+\.\d+\.\d+(-[\w.-]+)?$")


class ModuleCategory(StrEnum):
    """What kind of feature a module provides."""

    AUTHENTICATION = "authentication"
    PAYMENT = "payment"
    AI_INTEGRATION = "ai-integration"
    REAL_TIME = "real-time"
    SECURITY = "security"
    TESTING = "testing"
    DATABASE = "database"
    UI_FRAMEWORK = "ui-framework"
    ANALYTICS = "analytics"
    MONITORING = "monitoring"


class LifecycleStage(StrEnum):
    """Release maturity of a module."""

    ALPHA = "alpha"
    BETA = "beta"
    STABLE = "stable"
    MAINTENANCE = "maintenance"
    DEPRECATED = "deprecated"


class CompatibilityLevel(StrEnum):
    """Degree of support a module declares for a framework."""

    FULL = "full"
    PARTIAL = "partial"
    NONE = "none"


class Framework(StrEnum):
    """Known target frameworks.

    Framework fields are plain strings so catalogs can name targets
    that are not listed here.
    """

    FLUTTER = "flutter"
    REACT_NATIVE = "react-native"
    NEXTJS = "nextjs"
    TAURI = "tauri"
    SVELTEKIT = "sveltekit"
    TYPESCRIPT = "typescript"


class TemplateType(StrEnum):
    """Project template families a composition can target."""

    AI_SAAS = "ai-saas"
    DEVELOPMENT_TOOLS = "development-tools"
    BUSINESS_APPS = "business-apps"
    MOBILE_ASSISTANTS = "mobile-assistants"
    REAL_TIME_COLLABORATION = "real-time-collaboration"
    HIGH_PERFORMANCE_APIS = "high-performance-apis"
    DATA_VISUALIZATION = "data-visualization"
    FLUTTER_UNIVERSAL = "flutter-universal"
    REACT_NATIVE_HYBRID = "react-native-hybrid"
    MODERN_ELECTRON = "modern-electron"
    FOUNDATION = "foundation"


class ModuleMetadata(BaseModel):
    """Identity and descriptive data of a module."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    version: str
    category: ModuleCategory
    description: str = ""
    author: str = ""
    license: str = ""
    keywords: tuple[str, ...] = ()
    deprecated: bool = False
    experimental: bool = False
    stage: LifecycleStage = LifecycleStage.STABLE

    @field_validator("version")
    @classmethod
    def _check_version(cls, v: str) -> str:
        if not VERSION_PATTERN.match(v):
            raise ValueError(f"version must look like MAJOR.MINOR.PATCH[-PRERELEASE], got {v!r}")
        return v


class ModuleDependency(BaseModel):
    """A declared dependency on another module."""

    model_config = ConfigDict(frozen=True)

    module_id: str = Field(min_length=1)
    version: str = ""
    optional: bool = False
    reason: str = ""


class ModuleConflict(BaseModel):
    """A declared incompatibility with another module.

    When ``version`` is set, only that exact version conflicts.
    """

    model_config = ConfigDict(frozen=True)

    module_id: str = Field(min_length=1)
    version: str | None = None
    reason: str = ""
    severity: Literal["error", "warning"] = "error"
    resolution: str | None = None


class FrameworkSupport(BaseModel):
    """Support a module declares for one target framework."""

    model_config = ConfigDict(frozen=True)

    framework: str
    supported: bool = True
    compatibility: CompatibilityLevel = CompatibilityLevel.FULL
    limitations: tuple[str, ...] = ()
    dependencies: tuple[str, ...] = ()   # framework packages the module pulls in


class ConfigRule(BaseModel):
    """Static validation rule for one configuration field."""

    model_config = ConfigDict(frozen=True)

    type: Literal["string", "number", "integer", "boolean", "array", "object"] | None = None
    enum: tuple[Any, ...] | None = None
    minimum: float | None = None
    maximum: float | None = None
    pattern: str | None = None


class ModuleConfig(BaseModel):
    """Configuration defaults and the schema they are checked against."""

    model_config = ConfigDict(frozen=True)

    defaults: dict[str, Any] = Field(default_factory=dict)
    required_fields: tuple[str, ...] = ()
    validation_rules: dict[str, ConfigRule] = Field(default_factory=dict)


class DNAModule(BaseModel):
    """A versioned DNA module record.

    Identity is ``(metadata.id, metadata.version)``. Everything else
    is declarative data consumed by the resolver, the validators and
    the configuration merger.
    """

    model_config = ConfigDict(frozen=True)

    metadata: ModuleMetadata
    dependencies: tuple[ModuleDependency, ...] = ()
    conflicts: tuple[ModuleConflict, ...] = ()
    frameworks: tuple[FrameworkSupport, ...] = ()
    config: ModuleConfig = Field(default_factory=ModuleConfig)

    @property
    def id(self) -> str:
        return self.metadata.id

    @property
    def version(self) -> str:
        return self.metadata.version

    @property
    def key(self) -> tuple[str, str]:
        """Composite catalog key."""
        return (self.metadata.id, self.metadata.version)

    @property
    def is_deprecated(self) -> bool:
        return self.metadata.deprecated or self.metadata.stage == LifecycleStage.DEPRECATED

    @property
    def is_experimental(self) -> bool:
        return self.metadata.experimental

    @property
    def required_dependencies(self) -> list[ModuleDependency]:
        """Dependencies that must be pulled into a composition."""
        return [d for d in self.dependencies if not d.optional]

    @property
    def supported_frameworks(self) -> list[str]:
        return [f.framework for f in self.frameworks if f.supported]

    def framework_support(self, framework: str) -> FrameworkSupport | None:
        """Look up the support entry for a framework."""
        for fw in self.frameworks:
            if fw.framework == framework:
                return fw
        return None

    def conflict_with(self, other: DNAModule) -> ModuleConflict | None:
        """Return the conflict this module declares against ``other``, if any."""
        for conflict in self.conflicts:
            if conflict.module_id != other.id:
                continue
            if conflict.version and conflict.version != other.version:
                continue
            return conflict
        return None

    def depends_on(self, module_id: str) -> bool:
        return any(d.module_id == module_id for d in self.dependencies)

    def __repr__(self) -> str:
        return f"<DNAModule {self.id}@{self.version}>"
