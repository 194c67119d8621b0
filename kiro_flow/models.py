"""Data models for Kiro Flow workflow management.

This module contains the core data structures used throughout the system:
parsed checklist tasks, the persisted per-feature state record and the rows
rendered by the status dashboard.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .errors import MalformedStateError


TASK_STATUSES = ("pending", "in_progress", "done")

STATUS_MARKERS: Dict[str, str] = {
    "pending": " ",
    "in_progress": "-",
    "done": "x",
}

MARKER_STATUSES: Dict[str, str] = {marker: status for status, marker in STATUS_MARKERS.items()}

# Phases persisted in state.json; review and archive never write state.
PHASES = ("spec", "design", "task", "execute")


def utc_timestamp() -> str:
    """Return the current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")


@dataclass(slots=True)
class Task:
    """Representation of a single tasks.md checklist entry."""

    id: str
    status: str
    content: str
    requirements: List[str] = field(default_factory=list)
    subtasks: List[str] = field(default_factory=list)
    parent_id: Optional[str] = None
    line_number: int = field(default=-1, compare=False)

    @property
    def depth(self) -> int:
        """Nesting depth: 0 for top-level tasks, 1 per dot in the id."""
        return self.id.count(".")

    @property
    def is_subtask(self) -> bool:
        return self.parent_id is not None

    @property
    def marker(self) -> str:
        return STATUS_MARKERS[self.status]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        data: Dict[str, Any] = {
            "id": self.id,
            "status": self.status,
            "content": self.content,
            "subtasks": list(self.subtasks),
            "requirements": list(self.requirements),
        }
        if self.parent_id is not None:
            data["parentId"] = self.parent_id
        return data


@dataclass(slots=True)
class FeatureState:
    """Persisted workflow state for one feature (``state.json``)."""

    feature: str
    phase: str = "spec"
    completed_tasks: List[str] = field(default_factory=list)
    current_task: Optional[str] = None
    last_updated: str = field(default_factory=utc_timestamp)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation; ``current_task`` only when set."""
        data: Dict[str, Any] = {
            "feature": self.feature,
            "phase": self.phase,
            "completed_tasks": list(self.completed_tasks),
        }
        if self.current_task is not None:
            data["current_task"] = self.current_task
        data["last_updated"] = self.last_updated
        return data

    @classmethod
    def from_dict(cls, data: Any) -> "FeatureState":
        """Create from dictionary representation.

        Raises:
            MalformedStateError: if the payload is not a state record.
        """
        if not isinstance(data, dict):
            raise MalformedStateError("State payload must be a JSON object")
        feature = data.get("feature")
        if not isinstance(feature, str) or not feature:
            raise MalformedStateError("State payload is missing 'feature'")
        phase = data.get("phase", "spec")
        if phase not in PHASES:
            raise MalformedStateError(f"Unknown phase in state: {phase!r}")
        completed = data.get("completed_tasks", [])
        if not isinstance(completed, list):
            raise MalformedStateError("'completed_tasks' must be a list")
        current = data.get("current_task")
        return cls(
            feature=feature,
            phase=phase,
            completed_tasks=[str(item) for item in completed],
            current_task=str(current) if current is not None else None,
            last_updated=str(data.get("last_updated", "")),
        )

    def touch(self) -> None:
        """Refresh ``last_updated``."""
        self.last_updated = utc_timestamp()

    def enter_phase(self, phase: str) -> None:
        """Move the feature to ``phase``."""
        if phase not in PHASES:
            raise ValueError(f"Unknown phase: {phase}")
        self.phase = phase

    def record_task_status(self, task_id: str, status: str) -> None:
        """Reflect a task transition in the completed list and current task."""
        if status == "done":
            if task_id not in self.completed_tasks:
                self.completed_tasks.append(task_id)
            if self.current_task == task_id:
                self.current_task = None
        elif status == "in_progress":
            self.current_task = task_id
        elif status == "pending":
            if task_id in self.completed_tasks:
                self.completed_tasks.remove(task_id)
            if self.current_task == task_id:
                self.current_task = None
        else:
            raise ValueError(f"Unknown task status: {status}")


@dataclass(slots=True)
class StatusRow:
    """One line of the feature status dashboard."""

    feature: str
    phase: str
    current_task: str = "-"
    progress: str = "-"
    last_updated: str = "-"

    def to_dict(self) -> Dict[str, str]:
        return {
            "feature": self.feature,
            "phase": self.phase,
            "current_task": self.current_task,
            "progress": self.progress,
            "last_updated": self.last_updated,
        }


@dataclass(slots=True)
class WorkflowStep:
    """Represents a single phase of the Kiro Flow workflow."""

    step_number: int
    name: str
    tool_name: str
    description: str
    prerequisites: List[str] = field(default_factory=list)
    expected_output: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "step": self.step_number,
            "name": self.name,
            "tool": self.tool_name,
            "description": self.description,
            "prerequisites": list(self.prerequisites),
            "expected_output": self.expected_output,
        }


# Workflow step definitions
WORKFLOW_STEPS = [
    WorkflowStep(
        step_number=1,
        name="Requirements",
        tool_name="begin_requirements",
        description="Gather requirements for the feature",
        expected_output="Requirements saved to .kiro/specs/{feature}/requirements.md",
    ),
    WorkflowStep(
        step_number=2,
        name="Design",
        tool_name="begin_design",
        description="Write the technical design from the requirements",
        prerequisites=["requirements.md"],
        expected_output="Design saved to .kiro/specs/{feature}/design.md",
    ),
    WorkflowStep(
        step_number=3,
        name="Task Planning",
        tool_name="begin_task_planning",
        description="Break the design into a numbered checklist",
        prerequisites=["design.md"],
        expected_output="Checklist saved to .kiro/specs/{feature}/tasks.md",
    ),
    WorkflowStep(
        step_number=4,
        name="Execution",
        tool_name="begin_execution, set_task, get_task",
        description="Work through the checklist in order",
        prerequisites=["tasks.md"],
        expected_output="All tasks marked done",
    ),
    WorkflowStep(
        step_number=5,
        name="Review",
        tool_name="review",
        description="QA review and gap analysis against requirements",
        prerequisites=["tasks.md"],
    ),
    WorkflowStep(
        step_number=6,
        name="Archive",
        tool_name="archive",
        description="Move the finished feature out of the active specs",
        expected_output="Feature moved to .kiro/archive/{feature}",
    ),
]
