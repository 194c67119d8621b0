"""Feature status dashboard.

Built as a pure function over feature names and two lookups so it can be
exercised without a filesystem.
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Iterable, List, Optional, Sequence

from .models import FeatureState, StatusRow, Task
from .tasklist import summarize_progress

StateLookup = Callable[[str], Optional[FeatureState]]
TasksLookup = Callable[[str], Optional[Sequence[Task]]]

# Only phases that have a checklist report progress.
PROGRESS_PHASES = ("task", "execute")

NO_SPECS_MESSAGE = "No Kiro specs found. Start a feature with 'begin_requirements'."
NO_FEATURES_MESSAGE = "No active features found."


def format_progress(tasks: Optional[Sequence[Task]]) -> str:
    """Render ``done/total (pct%)``; ``-`` when no checklist exists."""
    if tasks is None:
        return "-"
    summary = summarize_progress(tasks)
    if not summary["total"]:
        return "0/0"
    return f"{summary['done']}/{summary['total']} ({summary['percent']}%)"


def format_timestamp(value: str) -> str:
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).strftime("%Y-%m-%d %H:%M:%S")
    except ValueError:
        return value or "-"


def collect_status(features: Iterable[str], load_state: StateLookup, load_tasks: TasksLookup) -> List[StatusRow]:
    """Build one row per feature with readable state; features without state are skipped."""
    rows: List[StatusRow] = []
    for feature in features:
        state = load_state(feature)
        if state is None:
            continue
        progress = "-"
        if state.phase in PROGRESS_PHASES:
            progress = format_progress(load_tasks(feature))
        rows.append(
            StatusRow(
                feature=state.feature,
                phase=state.phase,
                current_task=state.current_task or "-",
                progress=progress,
                last_updated=format_timestamp(state.last_updated),
            )
        )
    return rows


def render_status_table(rows: Sequence[StatusRow]) -> str:
    """Render rows as a markdown table."""
    output = "# Kiro Feature Status\n\n"
    output += "| Feature | Phase | Current Task | Progress | Last Updated |\n"
    output += "| :--- | :--- | :--- | :--- | :--- |\n"
    for row in rows:
        output += f"| {row.feature} | {row.phase} | {row.current_task} | {row.progress} | {row.last_updated} |\n"
    return output
