"""
Configuration merging (pure).

Produces the per-module configuration a composition hands to file
generation, and checks it against each module's static schema.
"""

from __future__ import annotations

import re
from typing import Any, Sequence

from dnacomposer.core.models.composition import Composition
from dnacomposer.core.models.module import ConfigRule, DNAModule

# JSON-ish type name → accepted Python types
_TYPE_CHECKS: dict[str, tuple[type, ...]] = {
    "string": (str,),
    "number": (int, float),
    "integer": (int,),
    "boolean": (bool,),
    "array": (list, tuple),
    "object": (dict,),
}


def merge_configurations(
    modules: Sequence[DNAModule],
    composition: Composition,
) -> dict[str, Any]:
    """Merge defaults with overrides for every resolved module.

    ``global_config`` keys sit at the top level; each module's merged
    config is stored under its id. The merge is shallow: a nested
    override object replaces the default object wholesale.
    """
    merged: dict[str, Any] = dict(composition.global_config)
    for module in modules:
        request = composition.request_for(module.id)
        override = request.config if request else {}
        merged[module.id] = {**module.config.defaults, **override}
    return merged


def _check_rule(field: str, value: Any, rule: ConfigRule) -> str | None:
    if rule.type:
        accepted = _TYPE_CHECKS[rule.type]
        # bool is an int subclass; only "boolean" accepts it
        if isinstance(value, bool) and rule.type != "boolean":
            return f"{field}: expected {rule.type}, got boolean"
        if not isinstance(value, accepted):
            return f"{field}: expected {rule.type}, got {type(value).__name__}"
    if rule.enum is not None and value not in rule.enum:
        allowed = ", ".join(repr(v) for v in rule.enum)
        return f"{field}: {value!r} is not one of {allowed}"
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if rule.minimum is not None and value < rule.minimum:
            return f"{field}: {value} is below minimum {rule.minimum}"
        if rule.maximum is not None and value > rule.maximum:
            return f"{field}: {value} is above maximum {rule.maximum}"
    if rule.pattern is not None and isinstance(value, str):
        if not re.fullmatch(rule.pattern, value):
            return f"{field}: {value!r} does not match {rule.pattern}"
    return None


def validate_module_config(module: DNAModule, config: dict[str, Any]) -> list[str]:
    """Field-level problems of ``config`` against ``module``'s schema.

    Returns an empty list when the config is acceptable.
    """
    problems: list[str] = []
    for field in module.config.required_fields:
        if config.get(field) in (None, ""):
            problems.append(f"{field}: required field is missing")

    for field, rule in module.config.validation_rules.items():
        if field not in config or config[field] is None:
            continue
        problem = _check_rule(field, config[field], rule)
        if problem:
            problems.append(problem)
    return problems
