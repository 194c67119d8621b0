"""Create files and directories from a design document's file-structure block.

The block is a fenced code block labeled ``file-structure``. Each non-blank
line is a path, optionally prefixed with tree-drawing characters; paths
ending in ``/`` are directories and ``#`` lines are comments.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

logger = logging.getLogger("kiro_flow.scaffold")

PLACEHOLDER_CONTENT = "// Scaffolding placeholder\n"

_STRUCTURE_BLOCK_PATTERN = re.compile(r"```file-structure([\s\S]*?)```")
_TREE_PREFIX_PATTERN = re.compile(r"^[ \t│├└─-]+")


@dataclass(slots=True)
class ScaffoldEntry:
    """One path listed in the file-structure block."""

    path: str
    is_dir: bool

    def describe(self) -> str:
        return f"{'DIR' if self.is_dir else 'FILE'}: {self.path}"


def extract_structure_block(document: str) -> Optional[str]:
    """Return the body of the first file-structure block, if any."""
    match = _STRUCTURE_BLOCK_PATTERN.search(document)
    return match.group(1) if match else None


def parse_structure(block: str) -> List[ScaffoldEntry]:
    """Turn a file-structure block body into entries in listed order."""
    entries: List[ScaffoldEntry] = []
    for line in block.split("\n"):
        if not line.strip():
            continue
        clean = _TREE_PREFIX_PATTERN.sub("", line).strip()
        if not clean or clean.startswith("#"):
            continue
        entries.append(ScaffoldEntry(path=clean, is_dir=clean.endswith("/")))
    return entries


def apply_structure(entries: List[ScaffoldEntry], base_dir: Path) -> List[ScaffoldEntry]:
    """Create the listed paths under ``base_dir``.

    Directories are always ensured; files are created with placeholder
    content only when they do not exist yet. Paths resolving outside
    ``base_dir`` are skipped. Returns the entries that were acted on.
    """
    base = Path(base_dir).resolve()
    created: List[ScaffoldEntry] = []
    for entry in entries:
        target = (base / entry.path).resolve()
        if target != base and base not in target.parents:
            logger.warning(f"Skipping scaffold path outside {base}: {entry.path}")
            continue
        if entry.is_dir:
            target.mkdir(parents=True, exist_ok=True)
            created.append(entry)
        else:
            target.parent.mkdir(parents=True, exist_ok=True)
            if not target.exists():
                target.write_text(PLACEHOLDER_CONTENT, encoding="utf-8")
                created.append(entry)
    return created
