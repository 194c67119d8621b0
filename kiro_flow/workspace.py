"""Workspace management for Kiro Flow.

This module owns the on-disk layout under ``<root>/.kiro``: per-feature
phase documents, the ``state.json`` record and the archive.
"""

from __future__ import annotations

import json
import logging
import re
import shutil
from pathlib import Path
from typing import List, Optional, Tuple

from .config import WorkflowContext
from .errors import ConflictError, MalformedStateError, NotFoundError, PreconditionFailedError
from .flow_logging import log_operation, observability_hooks
from .models import FeatureState, Task
from .tasklist import parse_tasks

logger = logging.getLogger("kiro_flow.workspace")

REQUIREMENTS_FILE = "requirements.md"
DESIGN_FILE = "design.md"
TASKS_FILE = "tasks.md"
STATE_FILE = "state.json"

_FEATURE_NAME_PATTERN = re.compile(r"[A-Za-z0-9][A-Za-z0-9._-]*")


class Workspace:
    """Manage Kiro feature documents within a project root."""

    def __init__(self, context: WorkflowContext):
        """Initialize workspace with the given context."""
        self.context = context

    @property
    def specs_dir(self) -> Path:
        return self.context.specs_dir

    @property
    def archive_dir(self) -> Path:
        return self.context.archive_dir

    # ------------------------------------------------------------------
    # Feature helpers
    # ------------------------------------------------------------------

    def feature_dir(self, feature: str) -> Path:
        """Get the directory for a feature."""
        validate_feature_name(feature)
        return self.context.feature_dir(feature)

    def document_path(self, feature: str, name: str) -> Path:
        """Get the path of a phase document for a feature."""
        return self.feature_dir(feature) / name

    def has_document(self, feature: str, name: str) -> bool:
        """Check if a phase document exists for the given feature."""
        return self.document_path(feature, name).is_file()

    def list_features(self) -> List[str]:
        """List active feature names in a stable order."""
        if not self.specs_dir.is_dir():
            return []
        features = []
        for path in sorted(self.specs_dir.iterdir()):
            if not path.is_dir():
                continue
            if not is_valid_feature_name(path.name):
                logger.warning(f"Ignoring directory with invalid feature name: {path.name}")
                continue
            features.append(path.name)
        return features

    # ------------------------------------------------------------------
    # Document I/O
    # ------------------------------------------------------------------

    def read_document(
        self,
        feature: str,
        name: str,
        *,
        missing_message: Optional[str] = None,
        suggestion: Optional[str] = None,
        next_step: Optional[str] = None,
    ) -> str:
        """Read a phase document.

        Raises:
            NotFoundError: if the document does not exist.
        """
        path = self.document_path(feature, name)
        if not path.is_file():
            raise NotFoundError(
                missing_message or f"{name} not found for feature '{feature}'.",
                suggestion=suggestion,
                next_step=next_step,
            )
        return path.read_text(encoding="utf-8")

    def write_document(self, feature: str, name: str, content: str) -> Path:
        """Write a phase document, creating the feature directory if needed."""
        path = self.document_path(feature, name)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        logger.debug(f"Wrote {path}")
        return path

    def read_tasks(self, feature: str) -> Tuple[str, List[Task]]:
        """Read and parse ``tasks.md``; returns the raw text and the tasks."""
        content = self.read_document(
            feature,
            TASKS_FILE,
            missing_message=f"Tasks file not found for feature '{feature}'.",
            suggestion="Run begin_task_planning and save tasks.md first.",
            next_step="begin_task_planning",
        )
        return content, parse_tasks(content)

    # ------------------------------------------------------------------
    # State management
    # ------------------------------------------------------------------

    def state_path(self, feature: str) -> Path:
        return self.document_path(feature, STATE_FILE)

    def load_state(self, feature: str) -> Optional[FeatureState]:
        """Load the feature state; a missing, unreadable or foreign file yields ``None``."""
        path = self.state_path(feature)
        if not path.is_file():
            return None
        try:
            state = parse_state(read_state_text(path))
            if state.feature != feature:
                raise MalformedStateError(f"state.json belongs to feature '{state.feature}'")
            return state
        except MalformedStateError as e:
            logger.warning(f"Ignoring malformed state for feature '{feature}': {e}")
            return None

    def load_or_create_state(self, feature: str, phase: str) -> FeatureState:
        """Load the feature state or synthesize a fresh one in ``phase``."""
        state = self.load_state(feature)
        if state is None:
            state = FeatureState(feature=feature, phase=phase)
        return state

    def save_state(self, state: FeatureState) -> Path:
        """Persist the feature state, refreshing ``last_updated``."""
        state.touch()
        return self.write_document(
            state.feature, STATE_FILE, json.dumps(state.to_dict(), indent=2) + "\n"
        )

    # ------------------------------------------------------------------
    # Archive
    # ------------------------------------------------------------------

    def archive_feature(self, feature: str) -> Path:
        """Move a feature directory into the archive.

        Raises:
            NotFoundError: if the feature is not among the active specs.
            ConflictError: if an archived copy already exists.
        """
        source = self.feature_dir(feature)
        target = self.archive_dir / feature

        with log_operation("archive_feature", feature=feature):
            if not source.is_dir():
                raise NotFoundError(
                    f"Feature '{feature}' not found in active specs.",
                    suggestion="Call get_status to list active features.",
                    next_step="get_status",
                )
            self.archive_dir.mkdir(parents=True, exist_ok=True)
            if target.exists():
                raise ConflictError(
                    f"Feature '{feature}' is already archived.",
                    suggestion=f"Remove or rename {target} before archiving again.",
                )
            shutil.move(str(source), str(target))

        observability_hooks.log_workflow_event("feature_archived", feature=feature, path=str(target))
        return target


def is_valid_feature_name(feature: str) -> bool:
    return bool(feature) and _FEATURE_NAME_PATTERN.fullmatch(feature) is not None and ".." not in feature


def validate_feature_name(feature: str) -> str:
    """Reject feature names that are empty or would escape the specs directory."""
    if not is_valid_feature_name(feature):
        raise PreconditionFailedError(
            f"Invalid feature name '{feature}'.",
            suggestion="Use a kebab-case name such as 'user-auth'.",
        )
    return feature


def read_state_text(path: Path) -> str:
    """Read ``state.json`` as UTF-8.

    Raises:
        MalformedStateError: if the file cannot be read or decoded.
    """
    try:
        return path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise MalformedStateError(f"state.json is not valid UTF-8: {e}") from e
    except OSError as e:
        raise MalformedStateError(f"state.json could not be read: {e}") from e


def parse_state(text: str) -> FeatureState:
    """Parse ``state.json`` content.

    Raises:
        MalformedStateError: if the text is not a valid state record.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedStateError(f"state.json is not valid JSON: {e}") from e
    return FeatureState.from_dict(data)
