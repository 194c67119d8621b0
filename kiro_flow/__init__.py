"""Kiro Flow MCP Server - spec-driven feature workflow core."""

from .config import WorkflowContext
from .models import FeatureState, Task
from .tasklist import parse_tasks, set_task_status, validate_transition
from .workflow import WorkflowManager

__all__ = [
    "WorkflowManager",
    "WorkflowContext",
    "Task",
    "FeatureState",
    "parse_tasks",
    "validate_transition",
    "set_task_status",
]
