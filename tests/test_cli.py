"""
Tests for CLI commands — config check, modules, compose, migrate.
"""

import json
import textwrap
from pathlib import Path

import pytest
from click.testing import CliRunner

from dnacomposer.main import cli


@pytest.fixture(autouse=True)
def isolated_cwd(tmp_path: Path, monkeypatch) -> Path:
    """Run every command away from any real dna.yml."""
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


def _write(path: Path, content: str) -> Path:
    path.write_text(textwrap.dedent(content))
    return path


@pytest.fixture
def migrations_file(tmp_path: Path) -> Path:
    return _write(tmp_path / "migrations.yml", """\
        migrations:
          auth:
            "1.1.0":
              - description: Add MFA column
                automated: true
                script: echo mfa >> upgraded.txt
            "2.0.0":
              - description: Move sessions to Redis
                breaking: true
                instructions: [Provision Redis]
    """)


class TestCLIGlobal:
    """Tests for global CLI behavior."""

    def test_help(self, runner):
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "DNA Composer" in result.output

    def test_version(self, runner):
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output

    def test_bad_config_fails(self, runner, tmp_path, modules_dir):
        config = _write(tmp_path / "dna.yml", "latest_policy: newest\n")
        result = runner.invoke(cli, ["--config", str(config), "modules", "list", "-s", str(modules_dir)])
        assert result.exit_code == 1
        assert "latest_policy" in result.output


# ── config ──────────────────────────────────────────────────────────


class TestConfigCheck:
    def test_no_file(self, runner):
        result = runner.invoke(cli, ["config", "check"])
        assert result.exit_code == 0
        assert "defaults apply" in result.output

    def test_valid(self, runner, tmp_path):
        config = _write(tmp_path / "dna.yml", "allow_experimental: true\n")
        result = runner.invoke(cli, ["--config", str(config), "config", "check"])
        assert result.exit_code == 0
        assert "is valid" in result.output

    def test_autodetected(self, runner, tmp_path):
        _write(tmp_path / "dna.yml", "best_practices: false\n")
        result = runner.invoke(cli, ["config", "check"])
        assert result.exit_code == 0
        assert "dna.yml is valid" in result.output

    def test_invalid_json(self, runner, tmp_path):
        config = _write(tmp_path / "dna.yml", "max_source_workers: 0\n")
        result = runner.invoke(cli, ["--config", str(config), "config", "check", "--json"])
        assert result.exit_code == 1
        data = json.loads(result.output)
        assert data["valid"] is False
        assert data["issues"][0]["field"] == "max_source_workers"


# ── modules ─────────────────────────────────────────────────────────


class TestModulesCommands:
    def test_list(self, runner, modules_dir):
        result = runner.invoke(cli, ["modules", "list", "-s", str(modules_dir)])
        assert result.exit_code == 0
        assert "auth@1.0.0" in result.output
        assert "core@1.0.0" in result.output

    def test_list_by_category_json(self, runner, modules_dir):
        result = runner.invoke(cli, [
            "modules", "list", "-s", str(modules_dir), "--category", "security", "--json",
        ])
        assert result.exit_code == 0
        assert [m["id"] for m in json.loads(result.output)] == ["core"]

    def test_list_by_unknown_framework(self, runner, modules_dir):
        result = runner.invoke(cli, ["modules", "list", "-s", str(modules_dir), "--framework", "flutter"])
        assert result.exit_code == 0
        assert "No modules found." in result.output

    def test_search_keyword(self, runner, modules_dir):
        result = runner.invoke(cli, ["modules", "search", "OAUTH", "-s", str(modules_dir), "--json"])
        assert result.exit_code == 0
        assert [m["id"] for m in json.loads(result.output)] == ["auth"]

    def test_tree(self, runner, modules_dir):
        result = runner.invoke(cli, ["modules", "tree", "auth", "-s", str(modules_dir)])
        assert result.exit_code == 0
        lines = result.output.splitlines()
        assert lines[0] == "• auth"
        assert lines[1] == "  • core"

    def test_tree_json(self, runner, modules_dir):
        result = runner.invoke(cli, ["modules", "tree", "auth", "-s", str(modules_dir), "--json"])
        assert json.loads(result.output) == {"auth": ["core"], "core": []}

    def test_tree_unknown(self, runner, modules_dir):
        result = runner.invoke(cli, ["modules", "tree", "ghost", "-s", str(modules_dir)])
        assert result.exit_code == 1
        assert "not found" in result.output

    def test_broken_source(self, runner, modules_dir):
        (modules_dir / "broken.yml").write_text("metadata: [")
        result = runner.invoke(cli, ["modules", "list", "-s", str(modules_dir)])
        assert result.exit_code == 1
        assert "broken.yml" in result.output

    def test_undecodable_source(self, runner, modules_dir):
        (modules_dir / "latin1.yml").write_bytes(b"metadata: {name: Caf\xe9}\n")
        result = runner.invoke(cli, ["modules", "list", "-s", str(modules_dir)])
        assert result.exit_code == 1
        assert "latin1.yml" in result.output
        assert not isinstance(result.exception, UnicodeDecodeError)


# ── compose ─────────────────────────────────────────────────────────


class TestComposeCommand:
    @pytest.fixture
    def request_file(self, tmp_path: Path) -> Path:
        return _write(tmp_path / "request.yml", """\
            framework: nextjs
            modules:
              - module_id: auth
                config:
                  provider: github
        """)

    def test_valid(self, runner, modules_dir, request_file):
        result = runner.invoke(cli, ["compose", str(request_file), "-s", str(modules_dir)])
        assert result.exit_code == 0
        assert "Composition is valid" in result.output
        assert "core → auth" in result.output

    def test_json(self, runner, modules_dir, request_file):
        result = runner.invoke(cli, ["compose", str(request_file), "-s", str(modules_dir), "--json"])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["valid"] is True
        assert data["dependency_order"] == ["core", "auth"]
        assert data["merged_config"]["auth"] == {"provider": "github"}

    def test_unknown_module(self, runner, modules_dir, tmp_path):
        request = _write(tmp_path / "bad.yml", """\
            framework: nextjs
            modules:
              - module_id: ghost
        """)
        result = runner.invoke(cli, ["compose", str(request), "-s", str(modules_dir)])
        assert result.exit_code == 1
        assert "[MODULE_NOT_FOUND]" in result.output

    def test_conflict(self, runner, modules_dir, tmp_path):
        (modules_dir / "legacy.yml").write_text(textwrap.dedent("""\
            metadata: {id: legacy-auth, name: Legacy Auth, version: 1.0.0, category: authentication}
            frameworks: [{framework: nextjs}]
            conflicts: [{module_id: auth, reason: both own the session}]
        """))
        request = _write(tmp_path / "conflict.yml", """\
            framework: nextjs
            modules: [{module_id: auth}, {module_id: legacy-auth}]
        """)
        result = runner.invoke(cli, ["compose", str(request), "-s", str(modules_dir), "--json"])
        assert result.exit_code == 1
        codes = [e["code"] for e in json.loads(result.output)["errors"]]
        assert codes == ["MODULE_CONFLICT"]

    def test_malformed_request(self, runner, modules_dir, tmp_path):
        request = _write(tmp_path / "bad.yml", "modules: []\n")
        result = runner.invoke(cli, ["compose", str(request), "-s", str(modules_dir)])
        assert result.exit_code == 1
        assert "Invalid composition request" in result.output

    def test_preview(self, runner, modules_dir, request_file):
        result = runner.invoke(cli, [
            "compose", str(request_file), "-s", str(modules_dir), "--preview", "--json",
        ])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert [m["id"] for m in data["modules"]] == ["core", "auth"]
        assert data["max_dependency_depth"] == 1

    def test_optimize(self, runner, modules_dir, request_file):
        result = runner.invoke(cli, ["compose", str(request_file), "-s", str(modules_dir), "--optimize"])
        assert result.exit_code == 0
        assert "No redundant modules found." in result.output


# ── migrate ─────────────────────────────────────────────────────────


class TestMigrateCommands:
    def test_preview(self, runner, migrations_file):
        result = runner.invoke(cli, [
            "migrate", "preview", "auth", "1.0.0", "2.0.0", "-m", str(migrations_file),
        ])
        assert result.exit_code == 0
        assert "Add MFA column" in result.output
        assert "breaking, manual" in result.output
        assert "Estimated time: 9m" in result.output

    def test_preview_nothing_to_do(self, runner, migrations_file):
        result = runner.invoke(cli, [
            "migrate", "preview", "auth", "2.0.0", "2.0.0", "-m", str(migrations_file),
        ])
        assert "No migration needed" in result.output

    def test_preview_from_settings(self, runner, tmp_path, migrations_file):
        _write(tmp_path / "dna.yml", "migrations: migrations.yml\n")
        result = runner.invoke(cli, ["migrate", "preview", "auth", "1.0.0", "1.1.0", "--json"])
        assert result.exit_code == 0
        assert [s["version"] for s in json.loads(result.output)["steps"]] == ["1.1.0"]

    def test_dry_run(self, runner, tmp_path, migrations_file):
        project = tmp_path / "project"
        project.mkdir()
        result = runner.invoke(cli, [
            "migrate", "run", "auth", "1.0.0", "2.0.0",
            "--project", str(project), "--dry-run", "-m", str(migrations_file), "--json",
        ])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["success"] is True
        assert data["steps"][0]["output"] == "DRY RUN: Would execute - Add MFA column"
        assert not (project / "upgraded.txt").exists()

    def test_run_executes_script(self, runner, tmp_path, migrations_file):
        project = tmp_path / "project"
        project.mkdir()
        result = runner.invoke(cli, [
            "migrate", "run", "auth", "1.0.0", "1.1.0",
            "--project", str(project), "--backup", str(tmp_path / "bk"), "-m", str(migrations_file),
        ])
        assert result.exit_code == 0
        assert "auth is at 1.1.0" in result.output
        assert (project / "upgraded.txt").read_text().strip() == "mfa"
        assert not (tmp_path / "bk" / "upgraded.txt").exists()

    def test_run_rejects_downgrade(self, runner, tmp_path, migrations_file):
        result = runner.invoke(cli, [
            "migrate", "run", "auth", "2.0.0", "1.0.0",
            "--project", str(tmp_path), "-m", str(migrations_file),
        ])
        assert result.exit_code == 1
        assert "not newer" in result.output
