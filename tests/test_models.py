"""
Tests for domain models — validation, derived properties, serialization.
"""

import json

import pytest
from pydantic import ValidationError

from dnacomposer.core.models import (
    CompatibilityLevel,
    Composition,
    CompositionResult,
    DiagnosticCode,
    DNAModule,
    LifecycleStage,
    MigrationResult,
    MigrationState,
    MigrationStep,
    ModuleRequest,
    StepResult,
    ValidationIssue,
)
from tests.factories import make_module


class TestModuleMetadata:
    def test_minimal_module(self):
        m = make_module("auth")
        assert m.id == "auth"
        assert m.version == "1.0.0"
        assert m.key == ("auth", "1.0.0")
        assert m.metadata.stage == LifecycleStage.STABLE
        assert m.dependencies == ()

    def test_prerelease_version_accepted(self):
        assert make_module("auth", "2.0.0-beta.1").version == "2.0.0-beta.1"

    @pytest.mark.parametrize("bad", ["1.0", "v1.0.0", "1.0.0.0", "latest", ""])
    def test_invalid_version_rejected(self, bad):
        with pytest.raises(ValidationError):
            make_module("auth", bad)

    def test_empty_id_rejected(self):
        with pytest.raises(ValidationError):
            make_module("")

    def test_unknown_category_rejected(self):
        with pytest.raises(ValidationError):
            make_module("auth", category="gardening")

    def test_frozen(self):
        m = make_module("auth")
        with pytest.raises(ValidationError):
            m.metadata = m.metadata


class TestDNAModule:
    def test_deprecated_flag_or_stage(self):
        assert make_module("a", deprecated=True).is_deprecated
        assert make_module("b", stage="deprecated").is_deprecated
        assert not make_module("c").is_deprecated

    def test_required_dependencies_skip_optional(self):
        m = make_module("auth", deps=["core", {"module_id": "cache", "optional": True}])
        assert [d.module_id for d in m.required_dependencies] == ["core"]
        assert m.depends_on("cache")

    def test_framework_support_lookup(self):
        m = make_module("auth", frameworks=[
            "nextjs",
            {"framework": "flutter", "compatibility": "partial"},
            {"framework": "tauri", "supported": False},
        ])
        assert m.framework_support("flutter").compatibility == CompatibilityLevel.PARTIAL
        assert m.framework_support("sveltekit") is None
        assert m.supported_frameworks == ["nextjs", "flutter"]

    def test_conflict_with_any_version(self):
        a = make_module("a", conflicts=[{"module_id": "b", "reason": "clash"}])
        assert a.conflict_with(make_module("b", "3.2.1")).reason == "clash"

    def test_conflict_with_exact_version_only(self):
        a = make_module("a", conflicts=[{"module_id": "b", "version": "1.0.0"}])
        assert a.conflict_with(make_module("b", "1.0.0")) is not None
        assert a.conflict_with(make_module("b", "2.0.0")) is None

    def test_round_trip_json(self):
        m = make_module("auth", deps=["core"], defaults={"provider": "email"})
        restored = DNAModule.model_validate(json.loads(m.model_dump_json()))
        assert restored == m

    def test_repr(self):
        assert repr(make_module("auth", "1.2.3")) == "<DNAModule auth@1.2.3>"


class TestValidationIssue:
    def test_error_is_blocking(self):
        issue = ValidationIssue.error(DiagnosticCode.MODULE_CONFLICT, "x")
        assert issue.severity == "error"
        assert issue.blocking

    def test_critical(self):
        issue = ValidationIssue.error(DiagnosticCode.MODULE_NOT_FOUND, "x", critical=True)
        assert issue.severity == "critical"
        assert issue.blocking

    def test_warning_not_blocking(self):
        issue = ValidationIssue.warning(DiagnosticCode.MODULE_DEPRECATED, "x", module_id="a")
        assert not issue.blocking
        assert issue.impact == "medium"
        assert issue.module_id == "a"


class TestComposition:
    def test_request_for(self):
        c = Composition(
            framework="nextjs",
            modules=[ModuleRequest(module_id="auth", config={"a": 1})],
        )
        assert c.request_for("auth").config == {"a": 1}
        assert c.request_for("core") is None

    def test_framework_required(self):
        with pytest.raises(ValidationError):
            Composition.model_validate({"modules": []})

    def test_result_to_dict(self):
        result = CompositionResult(
            valid=False,
            modules=[make_module("auth")],
            errors=[ValidationIssue.error(DiagnosticCode.MODULE_CONFLICT, "boom")],
        )
        d = result.to_dict()
        assert d["valid"] is False
        assert d["modules"] == [{"id": "auth", "version": "1.0.0"}]
        assert d["errors"][0]["code"] == "MODULE_CONFLICT"
        assert "module_id" not in d["errors"][0]
        json.dumps(d)


class TestMigrationModels:
    def test_step_manual_by_default(self):
        assert MigrationStep(version="1.1.0", description="x").is_manual

    def test_step_result_constructors(self):
        step = MigrationStep(version="1.1.0", description="x")
        assert StepResult.succeeded(step, "ok").success
        failed = StepResult.failed(step, "nope")
        assert not failed.success
        assert failed.error == "nope"

    def test_result_failed_steps_and_dict(self):
        step = MigrationStep(version="1.1.0", description="x")
        result = MigrationResult(
            success=False,
            version_reached="1.0.0",
            steps=[StepResult.succeeded(step), StepResult.failed(step, "bad")],
            state=MigrationState.FAILED,
        )
        assert len(result.failed_steps) == 1
        d = result.to_dict()
        assert d["state"] == "failed"
        assert d["steps"][1]["error"] == "bad"
