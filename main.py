"""MCP server exposing Kiro spec-driven workflow tools."""

from __future__ import annotations

from typing import Any, Dict, Optional

from mcp.server.fastmcp import FastMCP

from kiro_flow.config import WorkflowContext
from kiro_flow.flow_logging import setup_logging_from_env
from kiro_flow.workflow import WorkflowManager

mcp = FastMCP("kiro-flow")


def _manager(root: Optional[str]) -> WorkflowManager:
    return WorkflowManager(WorkflowContext.from_env(root))


def _call(root: Optional[str], method: str, *args: Any) -> Dict[str, Any]:
    try:
        manager = _manager(root)
    except ValueError as e:
        return {
            "error": str(e),
            "error_type": "not_found",
            "suggestion": "Provide the 'root' argument or set KIRO_PROJECT_ROOT to an existing directory.",
        }
    return getattr(manager, method)(*args)


@mcp.tool()
def begin_requirements(feature: str, root: Optional[str] = None) -> Dict[str, Any]:
    """STEP 1: Start the requirements phase for a feature (kebab-case name).
    Resets the feature's workflow state."""
    return _call(root, "begin_requirements", feature)


@mcp.tool()
def begin_design(feature: str, root: Optional[str] = None) -> Dict[str, Any]:
    """STEP 2: Start the design phase.
    Prerequisites: requirements.md must exist for the feature."""
    return _call(root, "begin_design", feature)


@mcp.tool()
def begin_task_planning(feature: str, root: Optional[str] = None) -> Dict[str, Any]:
    """STEP 3: Start the task planning phase.
    Prerequisites: design.md must exist for the feature."""
    return _call(root, "begin_task_planning", feature)


@mcp.tool()
def begin_execution(feature: str, task_id: Optional[str] = None, root: Optional[str] = None) -> Dict[str, Any]:
    """STEP 4: Start executing tasks; when task_id is given it is validated and marked in progress.
    Prerequisites: tasks.md must exist for the feature."""
    return _call(root, "begin_execution", feature, task_id)


@mcp.tool()
def get_status(root: Optional[str] = None) -> Dict[str, Any]:
    """Show the status dashboard of all active features."""
    return _call(root, "get_status")


@mcp.tool()
def scaffold_structure(feature: str, root: Optional[str] = None) -> Dict[str, Any]:
    """Create files and directories listed in design.md's file-structure block."""
    return _call(root, "scaffold_structure", feature)


@mcp.tool()
def review(feature: str, root: Optional[str] = None) -> Dict[str, Any]:
    """STEP 5: Perform QA review and gap analysis against requirements."""
    return _call(root, "review", feature)


@mcp.tool()
def archive(feature: str, root: Optional[str] = None) -> Dict[str, Any]:
    """STEP 6 (FINAL): Archive a completed feature to clean up the workspace."""
    return _call(root, "archive", feature)


@mcp.tool()
def begin_vibe(root: Optional[str] = None) -> Dict[str, Any]:
    """Quick development mode (isolated, never combine with workflow tools)."""
    return _call(root, "begin_vibe")


@mcp.tool()
def get_task(feature: str, task_id: str, root: Optional[str] = None) -> Dict[str, Any]:
    """Get task details and status (e.g. task_id '2.1')."""
    return _call(root, "get_task", feature, task_id)


@mcp.tool()
def set_task(feature: str, task_id: str, status: str, root: Optional[str] = None) -> Dict[str, Any]:
    """Update task status to pending, in_progress or done (validates sequence)."""
    return _call(root, "set_task", feature, task_id, status)


@mcp.tool()
def get_workflow_guide() -> Dict[str, Any]:
    """Get guidance on the recommended Kiro feature workflow."""
    return _call(None, "get_workflow_guide")


@mcp.resource("kiro://status")
def resource_status() -> str:
    """Resource view exposing the feature status dashboard."""
    result = _call(None, "get_status")
    return result.get("content") or result.get("error", "")


def run() -> None:
    setup_logging_from_env()
    mcp.run(transport="stdio")


if __name__ == "__main__":
    run()
