"""Unit tests for WorkflowContext resolution."""

import pytest

from kiro_flow.config import BUNDLED_COMMANDS_DIR, WorkflowContext, env_flag


class TestWorkflowContext:
    """Test cases for WorkflowContext."""

    def test_derived_directories(self, tmp_path):
        """Test base, specs and archive directories hang off the root."""
        context = WorkflowContext(root=tmp_path)

        assert context.root == tmp_path.resolve()
        assert context.base_dir == tmp_path.resolve() / ".kiro"
        assert context.specs_dir == tmp_path.resolve() / ".kiro" / "specs"
        assert context.archive_dir == tmp_path.resolve() / ".kiro" / "archive"
        assert context.feature_dir("auth") == context.specs_dir / "auth"
        assert context.working_dir == context.root
        assert context.commands_dir == BUNDLED_COMMANDS_DIR
        assert context.helpers_dir == BUNDLED_COMMANDS_DIR / "helpers"
        assert context.enforce_parent_completion is False

    def test_explicit_working_dir(self, tmp_path):
        """Test scaffolding can target a directory other than the root."""
        work = tmp_path / "work"
        work.mkdir()

        context = WorkflowContext(root=tmp_path, working_dir=work)

        assert context.working_dir == work.resolve()

    def test_from_env_explicit_root(self, tmp_path, monkeypatch):
        """Test an explicit root wins over the environment."""
        other = tmp_path / "other"
        other.mkdir()
        monkeypatch.setenv("KIRO_PROJECT_ROOT", str(other))

        context = WorkflowContext.from_env(str(tmp_path))

        assert context.root == tmp_path.resolve()

    def test_from_env_missing_root(self, tmp_path):
        """Test a non-existent explicit root is rejected."""
        with pytest.raises(ValueError, match="does not exist"):
            WorkflowContext.from_env(str(tmp_path / "missing"))

    def test_from_env_variable(self, tmp_path, monkeypatch):
        """Test KIRO_PROJECT_ROOT is used when no root is passed."""
        monkeypatch.setenv("KIRO_PROJECT_ROOT", str(tmp_path))

        assert WorkflowContext.from_env().root == tmp_path.resolve()

    def test_from_env_variable_missing(self, tmp_path, monkeypatch):
        """Test a dangling KIRO_PROJECT_ROOT is reported."""
        monkeypatch.setenv("KIRO_PROJECT_ROOT", str(tmp_path / "nope"))

        with pytest.raises(ValueError, match="KIRO_PROJECT_ROOT"):
            WorkflowContext.from_env()

    def test_from_env_falls_back_to_cwd(self, tmp_path, monkeypatch):
        """Test the current directory is the last resort."""
        monkeypatch.delenv("KIRO_PROJECT_ROOT", raising=False)
        monkeypatch.chdir(tmp_path)

        assert WorkflowContext.from_env().root == tmp_path.resolve()

    def test_from_env_flags_and_commands(self, tmp_path, monkeypatch):
        """Test policy flag and commands directory come from the environment."""
        monkeypatch.setenv("KIRO_ENFORCE_PARENT_COMPLETION", "yes")
        monkeypatch.setenv("KIRO_COMMANDS_DIR", str(tmp_path / "commands"))

        context = WorkflowContext.from_env(str(tmp_path))

        assert context.enforce_parent_completion is True
        assert context.commands_dir == tmp_path / "commands"


class TestEnvFlag:
    """Test cases for env_flag."""

    @pytest.mark.parametrize("value,expected", [("1", True), ("TRUE", True), ("on", True), ("0", False), ("no", False)])
    def test_values(self, monkeypatch, value, expected):
        """Test truthy and falsy spellings."""
        monkeypatch.setenv("KIRO_TEST_FLAG", value)

        assert env_flag("KIRO_TEST_FLAG") is expected

    def test_default(self, monkeypatch):
        """Test the default applies when unset."""
        monkeypatch.delenv("KIRO_TEST_FLAG", raising=False)

        assert env_flag("KIRO_TEST_FLAG", default=True) is True
