"""Unit tests for directive loading and response composition."""

import pytest

from kiro_flow.config import WorkflowContext
from kiro_flow.directives import compose_response, load_directive, load_helpers
from kiro_flow.errors import NotFoundError


class TestBundledDirectives:
    """Test cases for the directives shipped with the package."""

    @pytest.mark.parametrize("name", ["spec", "design", "task", "execute", "review", "vibe"])
    def test_bundled_directive_exists(self, tmp_path, name):
        """Test every phase has a bundled directive."""
        context = WorkflowContext(root=tmp_path)

        assert load_directive(context, name).startswith("# ")

    def test_bundled_helpers(self, tmp_path):
        """Test the helper appendix includes both helper files."""
        helpers = load_helpers(WorkflowContext(root=tmp_path))

        assert helpers.startswith("\n\n---\n")
        assert helpers.count("\n\n---\n") == 2
        assert "## Identity" in helpers
        assert "## Workflow" in helpers


class TestCustomCommandsDir:
    """Test cases for a user-provided commands directory."""

    def test_missing_directive(self, tmp_path):
        """Test a missing template raises NotFoundError naming the file."""
        context = WorkflowContext(root=tmp_path, commands_dir=tmp_path / "commands")

        with pytest.raises(NotFoundError, match="spec.md not found"):
            load_directive(context, "spec")

    def test_missing_helpers_are_empty(self, tmp_path):
        """Test missing helper files contribute empty sections."""
        context = WorkflowContext(root=tmp_path, commands_dir=tmp_path / "commands")

        assert load_helpers(context) == "\n\n---\n\n\n---\n"

    def test_custom_directive(self, tmp_path):
        """Test templates are read from the configured directory."""
        commands = tmp_path / "commands"
        commands.mkdir()
        (commands / "spec.md").write_text("Custom spec directive", encoding="utf-8")

        context = WorkflowContext(root=tmp_path, commands_dir=commands)

        assert load_directive(context, "spec") == "Custom spec directive"


class TestComposeResponse:
    """Test cases for compose_response."""

    def test_fields_and_sections(self):
        """Test the response layout."""
        text = compose_response(
            "DIRECTIVE",
            "\n\n---\nHELP",
            [("Feature", "auth"), ("Phase", "Design")],
            [("Requirements Context", "R1")],
        )

        assert text == (
            "DIRECTIVE\n\n---\nHELP\n\n"
            "**Feature**: auth\n**Phase**: Design\n\n"
            "## Requirements Context\nR1"
        )

    def test_without_sections(self):
        """Test sections are optional."""
        assert compose_response("D", "", [("Mode", "Vibe")]) == "D\n\n**Mode**: Vibe"
