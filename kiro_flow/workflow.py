"""Workflow management for Kiro Flow.

This module provides the phase orchestration behind each MCP tool. Every
public method returns a dictionary: on success it carries the composed
directive text under ``content``; on failure it carries ``error``,
``error_type`` and a remedial ``suggestion``. Nothing raises past this
boundary.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

from .config import WorkflowContext
from .directives import compose_response, load_directive, load_helpers
from .errors import KiroFlowError, PreconditionFailedError, TaskNotFoundError
from .flow_logging import (
    log_error_with_context,
    log_operation,
    log_phase_entered,
    log_task_update,
    observability_hooks,
)
from .models import TASK_STATUSES, WORKFLOW_STEPS, FeatureState
from .scaffold import apply_structure, extract_structure_block, parse_structure
from .status import NO_FEATURES_MESSAGE, NO_SPECS_MESSAGE, collect_status, render_status_table
from .tasklist import find_task, set_task_status, summarize_progress, validate_transition
from .workspace import DESIGN_FILE, REQUIREMENTS_FILE, TASKS_FILE, Workspace

logger = logging.getLogger("kiro_flow.workflow")


class WorkflowManager:
    """Manages the Kiro phase workflow for features under one project root."""

    def __init__(self, context: WorkflowContext):
        """Initialize workflow manager with an explicit context."""
        self.context = context
        self.workspace = Workspace(context)
        if context.enforce_parent_completion:
            logger.warning(
                "Parent-completion rule enabled: subtasks cannot be completed before their parent"
            )

    # ------------------------------------------------------------------
    # Phase tools
    # ------------------------------------------------------------------

    def begin_requirements(self, feature: str) -> Dict[str, Any]:
        """Start the requirements phase, resetting the feature's state."""
        try:
            with log_operation("begin_requirements", feature=feature):
                directive = load_directive(self.context, "spec")
                state = FeatureState(feature=feature, phase="spec")
                self.workspace.save_state(state)
                log_phase_entered(feature, "spec")

                content = compose_response(
                    directive,
                    load_helpers(self.context),
                    [("Feature", feature), ("Phase", "Requirements Gathering")],
                )
                return self._phase_result(
                    feature,
                    "spec",
                    content,
                    next_step="begin_design",
                    tip=f"Next: save {REQUIREMENTS_FILE}, then call begin_design",
                )
        except (KiroFlowError, OSError, ValueError) as e:
            return self._failure(e, "begin_requirements", feature=feature)

    def begin_design(self, feature: str) -> Dict[str, Any]:
        """Start the design phase; requires requirements.md."""
        try:
            with log_operation("begin_design", feature=feature):
                requirements = self.workspace.read_document(
                    feature,
                    REQUIREMENTS_FILE,
                    missing_message="Requirements phase incomplete. Run begin_requirements first.",
                    suggestion=f"Write {REQUIREMENTS_FILE} for feature '{feature}' before designing.",
                    next_step="begin_requirements",
                )
                directive = load_directive(self.context, "design")
                self._enter_phase(feature, "design")

                content = compose_response(
                    directive,
                    load_helpers(self.context),
                    [("Feature", feature), ("Phase", "Design")],
                    [("Requirements Context", requirements)],
                )
                return self._phase_result(
                    feature,
                    "design",
                    content,
                    next_step="begin_task_planning",
                    tip=f"Next: save {DESIGN_FILE}, then call begin_task_planning",
                )
        except (KiroFlowError, OSError, ValueError) as e:
            return self._failure(e, "begin_design", feature=feature)

    def begin_task_planning(self, feature: str) -> Dict[str, Any]:
        """Start the task planning phase; requires design.md."""
        try:
            with log_operation("begin_task_planning", feature=feature):
                design = self.workspace.read_document(
                    feature,
                    DESIGN_FILE,
                    missing_message="Design phase incomplete. Run begin_design first.",
                    suggestion=f"Write {DESIGN_FILE} for feature '{feature}' before planning tasks.",
                    next_step="begin_design",
                )
                directive = load_directive(self.context, "task")
                self._enter_phase(feature, "task")

                content = compose_response(
                    directive,
                    load_helpers(self.context),
                    [("Feature", feature), ("Phase", "Task Planning")],
                    [("Design Context", design)],
                )
                return self._phase_result(
                    feature,
                    "task",
                    content,
                    next_step="begin_execution",
                    tip=f"Next: save {TASKS_FILE}, then call begin_execution",
                )
        except (KiroFlowError, OSError, ValueError) as e:
            return self._failure(e, "begin_task_planning", feature=feature)

    def begin_execution(self, feature: str, task_id: Optional[str] = None) -> Dict[str, Any]:
        """Start the execution phase, optionally marking ``task_id`` in progress."""
        try:
            with log_operation("begin_execution", feature=feature, task_id=task_id):
                tasks_text, tasks = self.workspace.read_tasks(feature)
                requirements = self.workspace.read_document(
                    feature,
                    REQUIREMENTS_FILE,
                    suggestion="Run begin_requirements and save requirements.md first.",
                    next_step="begin_requirements",
                )
                design = self.workspace.read_document(
                    feature,
                    DESIGN_FILE,
                    suggestion="Run begin_design and save design.md first.",
                    next_step="begin_design",
                )
                directive = load_directive(self.context, "execute")

                state = self.workspace.load_or_create_state(feature, "execute")
                state.enter_phase("execute")

                if task_id:
                    self._check_transition(tasks, task_id, "in_progress")
                    tasks_text = set_task_status(tasks_text, task_id, "in_progress")
                    self.workspace.write_document(feature, TASKS_FILE, tasks_text)
                    state.record_task_status(task_id, "in_progress")
                    log_task_update(feature, task_id, "in_progress")

                self.workspace.save_state(state)
                log_phase_entered(feature, "execute", task_id=task_id)

                phase_label = f"Execute - Task {task_id}" if task_id else "Execute"
                content = compose_response(
                    directive,
                    load_helpers(self.context),
                    [("Feature", feature), ("Phase", phase_label)],
                    [("Requirements", requirements), ("Design", design), ("Tasks", tasks_text)],
                )
                result = self._phase_result(
                    feature,
                    "execute",
                    content,
                    next_step="set_task",
                    tip="Mark tasks done with set_task as you finish them",
                )
                result["current_task"] = state.current_task
                return result
        except (KiroFlowError, OSError, ValueError) as e:
            return self._failure(e, "begin_execution", feature=feature, task_id=task_id)

    def begin_vibe(self) -> Dict[str, Any]:
        """Quick development mode, outside the phase workflow."""
        try:
            directive = load_directive(self.context, "vibe")
            content = compose_response(
                directive,
                load_helpers(self.context),
                [("Mode", "Vibe Coding (Quick Development)")],
            )
            return {"content": content, "message": "Vibe mode: no feature state is tracked."}
        except (KiroFlowError, OSError, ValueError) as e:
            return self._failure(e, "begin_vibe")

    def review(self, feature: str) -> Dict[str, Any]:
        """Return the QA review directive with every phase document."""
        try:
            with log_operation("review", feature=feature):
                tasks_text, tasks = self.workspace.read_tasks(feature)
                requirements = self.workspace.read_document(
                    feature, REQUIREMENTS_FILE, next_step="begin_requirements"
                )
                design = self.workspace.read_document(feature, DESIGN_FILE, next_step="begin_design")
                directive = load_directive(self.context, "review")

                content = compose_response(
                    directive,
                    load_helpers(self.context),
                    [("Feature", feature), ("Phase", "QA Review")],
                    [("Requirements", requirements), ("Design", design), ("Tasks Status", tasks_text)],
                )
                return {
                    "feature": feature,
                    "content": content,
                    "progress": summarize_progress(tasks),
                    "next_suggested_step": "archive",
                    "workflow_tip": "Archive the feature once the review is clean",
                }
        except (KiroFlowError, OSError, ValueError) as e:
            return self._failure(e, "review", feature=feature)

    def archive(self, feature: str) -> Dict[str, Any]:
        """Move the feature directory to the archive."""
        try:
            target = self.workspace.archive_feature(feature)
            return {
                "feature": feature,
                "archive_path": str(target),
                "message": f"Feature '{feature}' successfully archived to {target}",
            }
        except (KiroFlowError, OSError, ValueError) as e:
            return self._failure(e, "archive", feature=feature)

    # ------------------------------------------------------------------
    # Status and scaffolding
    # ------------------------------------------------------------------

    def get_status(self) -> Dict[str, Any]:
        """Render the dashboard of all active features."""
        try:
            if not self.workspace.specs_dir.is_dir():
                return {"features": [], "content": NO_SPECS_MESSAGE}
            features = self.workspace.list_features()
            if not features:
                return {"features": [], "content": NO_FEATURES_MESSAGE}

            rows = collect_status(features, self.workspace.load_state, self._tasks_or_none)
            return {
                "features": [row.to_dict() for row in rows],
                "content": render_status_table(rows),
            }
        except (KiroFlowError, OSError, ValueError) as e:
            return self._failure(e, "get_status")

    def scaffold_structure(self, feature: str) -> Dict[str, Any]:
        """Create the files listed in design.md's file-structure block."""
        try:
            with log_operation("scaffold_structure", feature=feature):
                design = self.workspace.read_document(
                    feature,
                    DESIGN_FILE,
                    missing_message="Design phase incomplete. Run begin_design first.",
                    next_step="begin_design",
                )
                block = extract_structure_block(design)
                if block is None:
                    return {
                        "feature": feature,
                        "created": [],
                        "content": f"No 'file-structure' code block found in {DESIGN_FILE}. Cannot scaffold.",
                    }

                created = apply_structure(parse_structure(block), self.context.working_dir)
                described = [entry.describe() for entry in created]
                observability_hooks.log_workflow_event(
                    "structure_scaffolded", feature=feature, created=len(created)
                )
                return {
                    "feature": feature,
                    "created": described,
                    "content": f"Scaffolded {len(described)} items:\n" + "\n".join(described),
                }
        except (KiroFlowError, OSError, ValueError) as e:
            return self._failure(e, "scaffold_structure", feature=feature)

    # ------------------------------------------------------------------
    # Task tools
    # ------------------------------------------------------------------

    def get_task(self, feature: str, task_id: str) -> Dict[str, Any]:
        """Return one parsed task."""
        try:
            _, tasks = self.workspace.read_tasks(feature)
            task = find_task(tasks, task_id)
            if task is None:
                raise TaskNotFoundError(task_id)
            return {
                "feature": feature,
                "task": task.to_dict(),
                "content": json.dumps(task.to_dict(), indent=2),
            }
        except (KiroFlowError, OSError, ValueError) as e:
            return self._failure(e, "get_task", feature=feature, task_id=task_id)

    def set_task(self, feature: str, task_id: str, status: str) -> Dict[str, Any]:
        """Validate and apply a task status transition."""
        try:
            with log_operation("set_task", feature=feature, task_id=task_id, status=status):
                if status not in TASK_STATUSES:
                    raise PreconditionFailedError(
                        f"Unknown task status '{status}'.",
                        suggestion=f"Use one of: {', '.join(TASK_STATUSES)}.",
                    )
                tasks_text, tasks = self.workspace.read_tasks(feature)
                self._check_transition(tasks, task_id, status)

                self.workspace.write_document(
                    feature, TASKS_FILE, set_task_status(tasks_text, task_id, status)
                )
                state = self.workspace.load_or_create_state(feature, "execute")
                state.record_task_status(task_id, status)
                self.workspace.save_state(state)
                log_task_update(feature, task_id, status)

                return {
                    "feature": feature,
                    "task_id": task_id,
                    "status": status,
                    "completed_tasks": list(state.completed_tasks),
                    "current_task": state.current_task,
                    "content": f"Task {task_id} marked as {status}",
                }
        except (KiroFlowError, OSError, ValueError) as e:
            return self._failure(e, "set_task", feature=feature, task_id=task_id, status=status)

    # ------------------------------------------------------------------
    # Workflow guidance
    # ------------------------------------------------------------------

    def get_workflow_guide(self) -> Dict[str, Any]:
        """Get the ordered phase list."""
        return {
            "workflow_overview": "Spec-driven feature workflow in required order",
            "steps": [step.to_dict() for step in WORKFLOW_STEPS],
            "tips": [
                "Each phase requires the document written in the previous phase",
                "Tasks run in checklist order; a task starts only after its previous sibling is done",
                "Tasks listing _Requirements: ..._ wait until those tasks are done",
                "Set a task back to pending to reset it",
            ],
        }

    # ------------------------------------------------------------------
    # Private helper methods
    # ------------------------------------------------------------------

    def _enter_phase(self, feature: str, phase: str) -> FeatureState:
        state = self.workspace.load_or_create_state(feature, phase)
        state.enter_phase(phase)
        self.workspace.save_state(state)
        log_phase_entered(feature, phase)
        return state

    def _check_transition(self, tasks, task_id: str, status: str) -> None:
        reason = validate_transition(
            tasks,
            task_id,
            status,
            enforce_parent_completion=self.context.enforce_parent_completion,
        )
        if reason:
            raise PreconditionFailedError(
                reason,
                suggestion="Finish the blocking tasks first, or reset this task to pending.",
                next_step="set_task",
            )

    def _tasks_or_none(self, feature: str):
        if not self.workspace.has_document(feature, TASKS_FILE):
            return None
        _, tasks = self.workspace.read_tasks(feature)
        return tasks

    def _phase_result(self, feature: str, phase: str, content: str, *, next_step: str, tip: str) -> Dict[str, Any]:
        return {
            "feature": feature,
            "phase": phase,
            "content": content,
            "next_suggested_step": next_step,
            "workflow_tip": tip,
        }

    def _failure(self, error: Exception, operation: str, **context: Any) -> Dict[str, Any]:
        log_error_with_context(error, {"operation": operation, **context})
        if isinstance(error, KiroFlowError):
            return error.to_dict()
        return {
            "error": str(error),
            "error_type": type(error).__name__,
            "suggestion": "Check that the project root exists and is writable",
        }
