"""
Tests for migration collaborators — mock, shell runner, directory backups.
"""

import sys
from pathlib import Path

import pytest

from dnacomposer.adapters.base import BackupError, ScriptExecutionError
from dnacomposer.adapters.mock import MockBackupService, MockScriptRunner
from dnacomposer.adapters.shell.command import ShellScriptRunner
from dnacomposer.adapters.shell.filesystem import DirectoryBackupService
from dnacomposer.core.models.migration import MigrationContext


def _context(path: Path) -> MigrationContext:
    return MigrationContext(
        module_id="auth",
        from_version="1.0.0",
        to_version="1.1.0",
        project_path=str(path),
    )


# ── Mock Tests ───────────────────────────────────────────────────────


class TestMockScriptRunner:
    def test_default_output(self, tmp_path):
        runner = MockScriptRunner()
        assert runner.execute("a.sh", _context(tmp_path)) == "[mock] executed"
        assert runner.call_count == 1
        assert runner.call_log[0][1].module_id == "auth"

    def test_custom_output(self, tmp_path):
        runner = MockScriptRunner()
        runner.set_output("a.sh", "migrated 3 rows")
        assert runner.execute("a.sh", _context(tmp_path)) == "migrated 3 rows"

    def test_failure(self, tmp_path):
        runner = MockScriptRunner()
        runner.set_failure("a.sh", error="Intentional failure")
        with pytest.raises(ScriptExecutionError, match="Intentional failure"):
            runner.execute("a.sh", _context(tmp_path))
        assert runner.scripts_run == ["a.sh"]

    def test_repr(self):
        assert repr(MockScriptRunner()) == "<MockScriptRunner name='mock'>"


class TestMockBackupService:
    def test_records_calls(self):
        svc = MockBackupService()
        svc.create("/p", "/b")
        svc.restore("/b", "/p")
        assert svc.created == [("/p", "/b")]
        assert svc.restored == [("/b", "/p")]

    def test_failures(self):
        with pytest.raises(BackupError):
            MockBackupService(fail_create=True).create("/p", "/b")
        with pytest.raises(BackupError):
            MockBackupService(fail_restore=True).restore("/b", "/p")


# ── Shell Runner Tests ───────────────────────────────────────────────


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX shell required")
class TestShellScriptRunner:
    def test_is_available(self):
        assert ShellScriptRunner().is_available()

    def test_output_and_cwd(self, tmp_path):
        output = ShellScriptRunner().execute("pwd", _context(tmp_path))
        assert Path(output).resolve() == tmp_path.resolve()

    def test_context_environment(self, tmp_path):
        output = ShellScriptRunner().execute(
            'echo "$DNA_MODULE_ID $DNA_FROM_VERSION $DNA_TO_VERSION"', _context(tmp_path),
        )
        assert output == "auth 1.0.0 1.1.0"

    def test_script_changes_project(self, tmp_path):
        ShellScriptRunner().execute("echo migrated > marker.txt", _context(tmp_path))
        assert (tmp_path / "marker.txt").read_text().strip() == "migrated"

    def test_non_zero_exit(self, tmp_path):
        with pytest.raises(ScriptExecutionError) as exc:
            ShellScriptRunner().execute("echo partial; echo broken >&2; exit 3", _context(tmp_path))
        assert exc.value.reason == "broken"
        assert exc.value.output == "partial"

    def test_undecodable_output_is_replaced(self, tmp_path):
        output = ShellScriptRunner().execute(r"printf 'ok\377\376'", _context(tmp_path))
        assert output.startswith("ok")
        assert "�" in output

    def test_undecodable_stderr_still_reported(self, tmp_path):
        with pytest.raises(ScriptExecutionError) as exc:
            ShellScriptRunner().execute(r"printf '\377' >&2; exit 1", _context(tmp_path))
        assert exc.value.reason == "�"

    def test_exit_code_message_without_stderr(self, tmp_path):
        with pytest.raises(ScriptExecutionError, match="exited with code 2"):
            ShellScriptRunner().execute("exit 2", _context(tmp_path))

    def test_timeout(self, tmp_path):
        with pytest.raises(ScriptExecutionError, match="timed out"):
            ShellScriptRunner().execute("sleep 2", _context(tmp_path), timeout=0.2)

    def test_missing_project_dir(self, tmp_path):
        with pytest.raises(ScriptExecutionError, match="could not start"):
            ShellScriptRunner().execute("true", _context(tmp_path / "missing"))


# ── Directory Backup Tests ───────────────────────────────────────────


@pytest.fixture
def project(tmp_path: Path) -> Path:
    p = tmp_path / "project"
    (p / "src").mkdir(parents=True)
    (p / "src" / "app.py").write_text("v1")
    (p / "README.md").write_text("readme")
    return p


class TestDirectoryBackupService:
    def test_create_copies_tree(self, project, tmp_path):
        backup = tmp_path / "backup"
        DirectoryBackupService().create(str(project), str(backup))
        assert (backup / "src" / "app.py").read_text() == "v1"
        assert (backup / "README.md").is_file()

    def test_restore_replaces_changes(self, project, tmp_path):
        backup = tmp_path / "backup"
        svc = DirectoryBackupService()
        svc.create(str(project), str(backup))

        (project / "src" / "app.py").write_text("v2-broken")
        (project / "new_file.txt").write_text("junk")
        (project / "README.md").unlink()

        svc.restore(str(backup), str(project))
        assert (project / "src" / "app.py").read_text() == "v1"
        assert (project / "README.md").read_text() == "readme"
        assert not (project / "new_file.txt").exists()

    def test_create_missing_project(self, tmp_path):
        with pytest.raises(BackupError, match="does not exist"):
            DirectoryBackupService().create(str(tmp_path / "nope"), str(tmp_path / "b"))

    def test_create_refuses_non_empty_backup(self, project, tmp_path):
        backup = tmp_path / "backup"
        backup.mkdir()
        (backup / "old").write_text("x")
        with pytest.raises(BackupError, match="not empty"):
            DirectoryBackupService().create(str(project), str(backup))

    def test_restore_missing_backup(self, project, tmp_path):
        with pytest.raises(BackupError, match="Backup not found"):
            DirectoryBackupService().restore(str(tmp_path / "nope"), str(project))
