"""Error taxonomy for Kiro Flow.

Workspace and core functions raise these; ``WorkflowManager`` catches them at
the tool boundary and turns them into structured failure results.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class KiroFlowError(Exception):
    """Base class for failures surfaced to tool callers."""

    kind = "error"

    def __init__(
        self,
        message: str,
        *,
        suggestion: Optional[str] = None,
        next_step: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.suggestion = suggestion
        self.next_step = next_step

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the failure payload returned by tools."""
        payload: Dict[str, Any] = {
            "error": self.message,
            "error_type": self.kind,
        }
        if self.suggestion:
            payload["suggestion"] = self.suggestion
        if self.next_step:
            payload["next_suggested_step"] = self.next_step
        return payload


class NotFoundError(KiroFlowError, FileNotFoundError):
    """A required phase document, feature directory or directive is missing."""

    kind = "not_found"


class TaskNotFoundError(NotFoundError):
    """The requested task id is not present in the parsed checklist."""

    def __init__(self, task_id: str, **kwargs: Any) -> None:
        kwargs.setdefault("suggestion", "Call get_task or review tasks.md for valid task ids.")
        super().__init__(f"Task {task_id} not found", **kwargs)
        self.task_id = task_id


class PreconditionFailedError(KiroFlowError, ValueError):
    """A sequencing gate or phase-order rule rejected the operation."""

    kind = "precondition_failed"


class ConflictError(KiroFlowError):
    """The operation collides with existing state (e.g. already archived)."""

    kind = "conflict"


class MalformedStateError(KiroFlowError, ValueError):
    """``state.json`` exists but cannot be parsed."""

    kind = "malformed_state"
