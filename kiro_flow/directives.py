"""Directive templates and response composition.

Each phase tool answers with a markdown directive telling the calling agent
what to produce next, followed by the helper appendix and the documents of
earlier phases as context.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Optional, Sequence, Tuple

from .config import WorkflowContext
from .errors import NotFoundError

HELPER_FILES = ("kiro-identity.md", "workflow-diagrams.md")


def load_directive(context: WorkflowContext, name: str) -> str:
    """Read ``<commands_dir>/<name>.md``.

    Raises:
        NotFoundError: if the directive template is missing.
    """
    path = Path(context.commands_dir) / f"{name}.md"
    if not path.is_file():
        raise NotFoundError(
            f"{name}.md not found at {path}. Ensure the commands directory exists.",
            suggestion="Set KIRO_COMMANDS_DIR to a directory containing the directive templates.",
        )
    return path.read_text(encoding="utf-8")


def load_helpers(context: WorkflowContext) -> str:
    """Return the helper appendix; missing helper files contribute empty text."""
    parts = []
    for filename in HELPER_FILES:
        path = Path(context.helpers_dir) / filename
        parts.append(path.read_text(encoding="utf-8") if path.is_file() else "")
    return "".join(f"\n\n---\n{part}" for part in parts)


def compose_response(
    directive: str,
    helpers: str,
    fields: Iterable[Tuple[str, str]],
    sections: Optional[Sequence[Tuple[str, str]]] = None,
) -> str:
    """Join a directive, the helper appendix, bold key/value lines and sections."""
    text = f"{directive}{helpers}\n\n"
    text += "\n".join(f"**{key}**: {value}" for key, value in fields)
    for title, body in sections or ():
        text += f"\n\n## {title}\n{body}"
    return text
