"""
Composition validators (pure).

Each validator scans a resolved module set and returns
``(errors, warnings)`` as lists of ValidationIssue. They never raise
and never short-circuit: every module and every pair is inspected.
"""

from __future__ import annotations

from collections import Counter
from typing import Sequence

from dnacomposer.core.models.composition import DiagnosticCode, ValidationIssue
from dnacomposer.core.models.module import CompatibilityLevel, DNAModule, ModuleCategory, ModuleConflict

Issues = tuple[list[ValidationIssue], list[ValidationIssue]]

# More modules than this in one category triggers a best-practice warning
CATEGORY_OVERUSE_LIMIT = 3


def _pair_conflict(
    a: DNAModule,
    b: DNAModule,
    symmetric: bool,
) -> tuple[DNAModule, DNAModule, ModuleConflict] | None:
    """The conflict declared between ``a`` and ``b``, as (declarer, target, entry).

    ``a``'s declaration wins; with ``symmetric`` a declaration by ``b``
    counts too, and an error-severity entry beats a warning.
    """
    forward = a.conflict_with(b)
    backward = b.conflict_with(a) if symmetric else None
    if forward and backward and backward.severity == "error" and forward.severity != "error":
        return b, a, backward
    if forward:
        return a, b, forward
    if backward:
        return b, a, backward
    return None


def validate_conflicts(modules: Sequence[DNAModule], *, symmetric: bool = True) -> Issues:
    """Scan every unordered pair once, in resolved order.

    At most one diagnostic is emitted per pair.
    """
    errors: list[ValidationIssue] = []
    warnings: list[ValidationIssue] = []

    for i, a in enumerate(modules):
        for b in modules[i + 1:]:
            found = _pair_conflict(a, b, symmetric)
            if found is None:
                continue
            declarer, target, conflict = found
            if conflict.severity == "error":
                errors.append(ValidationIssue.error(
                    DiagnosticCode.MODULE_CONFLICT,
                    f"{declarer.metadata.name} conflicts with {target.metadata.name}: {conflict.reason}",
                    module_id=declarer.id,
                    resolution=conflict.resolution,
                ))
            else:
                warnings.append(ValidationIssue.warning(
                    DiagnosticCode.MODULE_CONFLICT_WARNING,
                    f"{declarer.metadata.name} may conflict with {target.metadata.name}: {conflict.reason}",
                    module_id=declarer.id,
                    resolution=conflict.resolution,
                ))

    return errors, warnings


def validate_frameworks(modules: Sequence[DNAModule], framework: str) -> Issues:
    """Check every module declares usable support for ``framework``."""
    errors: list[ValidationIssue] = []
    warnings: list[ValidationIssue] = []

    for module in modules:
        support = module.framework_support(framework)
        if support is None or not support.supported:
            supported = ", ".join(module.supported_frameworks) or "none"
            errors.append(ValidationIssue.error(
                DiagnosticCode.FRAMEWORK_INCOMPATIBLE,
                f"Module {module.metadata.name} does not support framework {framework}",
                critical=True,
                module_id=module.id,
                resolution=f"Use a supported framework: {supported}",
            ))
            continue

        if support.compatibility == CompatibilityLevel.PARTIAL:
            warnings.append(ValidationIssue.warning(
                DiagnosticCode.FRAMEWORK_PARTIAL_SUPPORT,
                f"Module {module.metadata.name} has partial support for {framework}",
                module_id=module.id,
                resolution="Check module limitations and test thoroughly",
            ))
        if support.limitations:
            warnings.append(ValidationIssue.warning(
                DiagnosticCode.FRAMEWORK_LIMITATIONS,
                f"Module {module.metadata.name} has limitations on {framework}: "
                f"{', '.join(support.limitations)}",
                impact="low",
                module_id=module.id,
            ))

    return errors, warnings


def validate_best_practices(modules: Sequence[DNAModule]) -> list[ValidationIssue]:
    """Non-blocking advice about the shape of a composition."""
    warnings: list[ValidationIssue] = []

    per_category = Counter(m.metadata.category for m in modules)
    for category, count in per_category.items():
        if count > CATEGORY_OVERUSE_LIMIT:
            warnings.append(ValidationIssue.warning(
                DiagnosticCode.BEST_PRACTICE_CATEGORY_OVERUSE,
                f"Too many {category} modules ({count}). Consider consolidating functionality.",
                impact="low",
                resolution="Review if all modules in this category are necessary",
            ))

    experimental = [m.metadata.name for m in modules if m.is_experimental]
    if experimental:
        warnings.append(ValidationIssue.warning(
            DiagnosticCode.BEST_PRACTICE_EXPERIMENTAL_MODULES,
            f"Using experimental modules: {', '.join(experimental)}",
            resolution="Use stable alternatives for production applications",
        ))

    return warnings


def find_redundant_modules(modules: Sequence[DNAModule]) -> list[str]:
    """Ids of modules sharing a category with an earlier module.

    Testing modules are never considered redundant.
    """
    seen: set[str] = set()
    redundant: list[str] = []
    for m in modules:
        category = m.metadata.category
        if category == ModuleCategory.TESTING:
            continue
        if category in seen:
            redundant.append(m.id)
        seen.add(category)
    return redundant
