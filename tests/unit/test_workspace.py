"""Unit tests for Kiro Flow workspace functionality.

This module tests feature document I/O, state persistence with malformed
state recovery, and archiving.
"""

import json

import pytest

from kiro_flow.config import WorkflowContext
from kiro_flow.errors import ConflictError, MalformedStateError, NotFoundError, PreconditionFailedError
from kiro_flow.models import FeatureState
from kiro_flow.workspace import (
    TASKS_FILE,
    Workspace,
    parse_state,
    read_state_text,
    validate_feature_name,
)


@pytest.fixture
def workspace(tmp_path):
    """Workspace rooted in a temporary project directory."""
    return Workspace(WorkflowContext(root=tmp_path))


class TestDocuments:
    """Test cases for document I/O."""

    def test_write_and_read(self, workspace):
        """Test writing a document creates the feature directory."""
        path = workspace.write_document("auth", "requirements.md", "# Reqs\n")

        assert path == workspace.specs_dir / "auth" / "requirements.md"
        assert workspace.has_document("auth", "requirements.md")
        assert workspace.read_document("auth", "requirements.md") == "# Reqs\n"

    def test_read_missing_raises_not_found(self, workspace):
        """Test a missing document raises NotFoundError with remedial details."""
        with pytest.raises(NotFoundError) as excinfo:
            workspace.read_document(
                "auth",
                "design.md",
                missing_message="Design phase incomplete. Run begin_design first.",
                next_step="begin_design",
            )

        assert str(excinfo.value) == "Design phase incomplete. Run begin_design first."
        assert excinfo.value.next_step == "begin_design"
        assert isinstance(excinfo.value, FileNotFoundError)

    def test_read_tasks(self, workspace):
        """Test tasks.md is returned raw and parsed."""
        workspace.write_document("auth", TASKS_FILE, "- [ ] 1. Login\n- [x] 2. Logout\n")

        text, tasks = workspace.read_tasks("auth")

        assert text.startswith("- [ ] 1. Login")
        assert [t.id for t in tasks] == ["1", "2"]

    def test_read_tasks_missing(self, workspace):
        """Test missing tasks.md points at task planning."""
        with pytest.raises(NotFoundError) as excinfo:
            workspace.read_tasks("auth")

        assert excinfo.value.next_step == "begin_task_planning"

    def test_list_features(self, workspace):
        """Test only directories are listed, sorted."""
        assert workspace.list_features() == []

        workspace.write_document("zeta", "requirements.md", "z")
        workspace.write_document("alpha", "requirements.md", "a")
        (workspace.specs_dir / "notes.txt").write_text("stray", encoding="utf-8")

        assert workspace.list_features() == ["alpha", "zeta"]


class TestFeatureNames:
    """Test cases for feature name validation."""

    @pytest.mark.parametrize("name", ["user-auth", "feature_2", "v1.2-api"])
    def test_valid_names(self, name):
        """Test ordinary names pass through."""
        assert validate_feature_name(name) == name

    @pytest.mark.parametrize("name", ["", "../escape", "a/b", "..", ".hidden", "a..b"])
    def test_invalid_names(self, name):
        """Test names that could escape the specs directory are rejected."""
        with pytest.raises(PreconditionFailedError):
            validate_feature_name(name)

    def test_workspace_rejects_traversal(self, workspace):
        """Test document access validates the feature name."""
        with pytest.raises(PreconditionFailedError):
            workspace.write_document("../outside", "requirements.md", "x")


class TestState:
    """Test cases for state persistence."""

    def test_save_and_load(self, workspace):
        """Test a saved state can be loaded back."""
        state = FeatureState(feature="auth", phase="design", last_updated="2000-01-01T00:00:00Z")

        path = workspace.save_state(state)
        loaded = workspace.load_state("auth")

        assert path.name == "state.json"
        assert loaded.phase == "design"
        assert loaded.last_updated != "2000-01-01T00:00:00Z"
        assert json.loads(path.read_text(encoding="utf-8"))["feature"] == "auth"

    def test_load_missing(self, workspace):
        """Test a missing state file yields None."""
        assert workspace.load_state("auth") is None

    def test_malformed_state_treated_as_absent(self, workspace):
        """Test unparseable state is recovered as no state."""
        workspace.write_document("auth", "state.json", "{not json")

        assert workspace.load_state("auth") is None

        state = workspace.load_or_create_state("auth", "design")
        assert state.feature == "auth"
        assert state.phase == "design"

    def test_load_or_create_keeps_existing(self, workspace):
        """Test an existing state is returned as-is."""
        workspace.save_state(FeatureState(feature="auth", phase="task", completed_tasks=["1"]))

        state = workspace.load_or_create_state("auth", "execute")

        assert state.phase == "task"
        assert state.completed_tasks == ["1"]

    def test_parse_state_errors(self):
        """Test parse_state raises MalformedStateError."""
        with pytest.raises(MalformedStateError):
            parse_state("[]")
        with pytest.raises(MalformedStateError):
            parse_state("")


class TestArchive:
    """Test cases for archiving."""

    def test_archive_moves_directory(self, workspace):
        """Test the feature directory moves under .kiro/archive."""
        workspace.write_document("auth", "requirements.md", "r")

        target = workspace.archive_feature("auth")

        assert target == workspace.archive_dir / "auth"
        assert (target / "requirements.md").read_text(encoding="utf-8") == "r"
        assert not (workspace.specs_dir / "auth").exists()

    def test_archive_missing_feature(self, workspace):
        """Test archiving an unknown feature raises NotFoundError."""
        with pytest.raises(NotFoundError, match="not found in active specs"):
            workspace.archive_feature("auth")

    def test_archive_twice_conflicts(self, workspace):
        """Test an existing archive entry raises ConflictError."""
        workspace.write_document("auth", "requirements.md", "r")
        workspace.archive_feature("auth")
        workspace.write_document("auth", "requirements.md", "again")

        with pytest.raises(ConflictError, match="already archived"):
            workspace.archive_feature("auth")

        assert (workspace.specs_dir / "auth").exists()


class TestStateRecovery:
    """Test cases for state files that cannot be used."""

    def test_undecodable_state_treated_as_absent(self, workspace):
        """Test a non-UTF-8 state.json loads as no state."""
        workspace.write_document("auth", "requirements.md", "r")
        workspace.state_path("auth").write_bytes(b'\xff\xfe{"feature": "auth"}')

        assert workspace.load_state("auth") is None

    def test_read_state_text_undecodable(self, tmp_path):
        """Test decode failures surface as MalformedStateError."""
        path = tmp_path / "state.json"
        path.write_bytes(b"\xff\xfe")

        with pytest.raises(MalformedStateError):
            read_state_text(path)

    def test_foreign_state_treated_as_absent(self, workspace):
        """Test a state.json naming another feature is ignored."""
        workspace.write_document("auth", "state.json", '{"feature": "billing", "phase": "design"}')

        assert workspace.load_state("auth") is None
        assert workspace.load_or_create_state("auth", "execute").feature == "auth"

    def test_list_features_skips_invalid_names(self, workspace):
        """Test directories that are not valid feature names are not listed."""
        workspace.write_document("auth", "requirements.md", "r")
        (workspace.specs_dir / "My Feature").mkdir()
        (workspace.specs_dir / "_draft").mkdir()

        assert workspace.list_features() == ["auth"]
