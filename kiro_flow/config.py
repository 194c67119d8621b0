"""Runtime context for Kiro Flow.

Every workspace and workflow operation receives a ``WorkflowContext`` with
its base directories spelled out, instead of resolving paths from the
process working directory.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

PROJECT_ROOT_ENV = "KIRO_PROJECT_ROOT"
COMMANDS_DIR_ENV = "KIRO_COMMANDS_DIR"
ENFORCE_PARENT_ENV = "KIRO_ENFORCE_PARENT_COMPLETION"
LOG_LEVEL_ENV = "KIRO_LOG_LEVEL"
LOG_FILE_ENV = "KIRO_LOG_FILE"

STORAGE_DIR_NAME = ".kiro"
BUNDLED_COMMANDS_DIR = Path(__file__).resolve().parent / "directives"

_TRUTHY = {"1", "true", "yes", "on"}


def env_flag(name: str, default: bool = False) -> bool:
    """Read a boolean environment variable."""
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUTHY


@dataclass
class WorkflowContext:
    """Explicit locations and policy flags for one tool invocation."""

    root: Path
    working_dir: Optional[Path] = None
    commands_dir: Path = BUNDLED_COMMANDS_DIR
    helpers_dir: Optional[Path] = None
    # Off by default: the rule blocks subtasks from finishing before their
    # parent, which inverts normal task semantics.
    enforce_parent_completion: bool = False
    base_dir: Path = field(init=False)

    def __post_init__(self) -> None:
        self.root = Path(self.root).resolve()
        self.base_dir = self.root / STORAGE_DIR_NAME
        if self.working_dir is None:
            self.working_dir = self.root
        else:
            self.working_dir = Path(self.working_dir).resolve()
        self.commands_dir = Path(self.commands_dir)
        if self.helpers_dir is None:
            self.helpers_dir = self.commands_dir / "helpers"

    @property
    def specs_dir(self) -> Path:
        return self.base_dir / "specs"

    @property
    def archive_dir(self) -> Path:
        return self.base_dir / "archive"

    def feature_dir(self, feature: str) -> Path:
        """Directory holding the active documents of ``feature``."""
        return self.specs_dir / feature

    @classmethod
    def from_env(cls, root: Optional[str] = None) -> "WorkflowContext":
        """Build a context from an explicit root or the environment.

        Resolution order for the project root: ``root`` argument, then
        ``KIRO_PROJECT_ROOT``, then the current directory.
        """
        if root:
            resolved = Path(root).expanduser().resolve()
            if not resolved.exists():
                raise ValueError(f"Provided root '{root}' does not exist.")
        else:
            env_root = os.getenv(PROJECT_ROOT_ENV)
            if env_root:
                resolved = Path(env_root).expanduser().resolve()
                if not resolved.exists():
                    raise ValueError(
                        f"Environment variable {PROJECT_ROOT_ENV} points to '{env_root}', which does not exist."
                    )
            else:
                resolved = Path.cwd().resolve()

        commands = os.getenv(COMMANDS_DIR_ENV)
        return cls(
            root=resolved,
            commands_dir=Path(commands).expanduser() if commands else BUNDLED_COMMANDS_DIR,
            enforce_parent_completion=env_flag(ENFORCE_PARENT_ENV),
        )
