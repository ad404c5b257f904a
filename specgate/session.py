"""Session-start summary: mode, progress, recent worklog and baseline drift."""
from __future__ import annotations

import re
from typing import List, Optional

from specgate.errors import BaselineError
from specgate.git import BranchCoordinator
from specgate.state.logger import log_event
from specgate.state.models import ActiveWorkItem, WorkflowState
from specgate.state.store import StateRepository
from specgate.tasks import content_hash, count_completed
from specgate.workspace import Workspace

COMPONENT = "session"
RULE = "=" * 59

_ENTRY_HEADER = re.compile(r"^##\s+\d{4}-\d{2}-\d{2}\s+\d{2}:\d{2}")


def extract_recent_worklog_entries(text: str, count: int = 3) -> List[str]:
    """Last ``count`` worklog entries, condensed to headings, bullets and bold lines."""
    entries: List[str] = []
    current: List[str] = []
    for line in text.splitlines():
        if _ENTRY_HEADER.match(line):
            if current:
                entries.append("\n".join(current))
            current = [line]
        elif current and line.strip() and line.lstrip().startswith(("###", "-", "**")):
            current.append(line)
    if current:
        entries.append("\n".join(current))
    return entries[-count:] if count > 0 else []


def drift_warnings(active: ActiveWorkItem, workspace: Workspace) -> List[str]:
    """Baseline documents whose current hash differs from the hash stored at lock time."""
    item = workspace.work_item(active.work_item_id)
    warnings: List[str] = []
    for label, path, stored in (
        ("tasks.md", item.tasks_path, active.tasks_doc_hash),
        ("proposal.md", item.proposal_path, active.proposal_doc_hash),
    ):
        if not stored:
            continue
        try:
            live = content_hash(path)
        except BaselineError:
            warnings.append(f"{label} is missing or unreadable")
            continue
        if live != stored:
            warnings.append(f"{label} changed since the plan was locked")
    return warnings


def progress_line(active: ActiveWorkItem) -> str:
    completed, total = count_completed(active.approved_tasks)
    percentage = round(completed / total * 100) if total else 0
    return f"**Progress**: {completed}/{total} tasks complete ({percentage}%)"


def _implementation_section(active: ActiveWorkItem, branch: str, state: WorkflowState, workspace: Workspace) -> List[str]:
    lines = [
        "**Mode**: Implementation",
        f"**Change**: `{active.work_item_id}`",
        f"**Branch**: `{branch}`",
        "",
        progress_line(active),
        "",
    ]

    if (drift := drift_warnings(active, workspace)):
        lines.append("**Baseline drift**:")
        lines.extend(f"  - {w}" for w in drift)
        lines.append("")

    worklog = workspace.work_item(active.work_item_id).worklog_path
    try:
        recent = extract_recent_worklog_entries(worklog.read_text(encoding="utf-8"))
    except FileNotFoundError:
        recent = []
    except (OSError, UnicodeDecodeError) as exc:
        log_event(event="worklog_unreadable", component=COMPONENT, level="warn", path=str(worklog), error=str(exc))
        recent = []
    if recent:
        lines.append("**Recent Work** (from worklog.md):")
        lines.append("")
        lines.extend(recent)
        lines.append("")

    lines.extend([
        "**What you can do**:",
        "  - Continue implementing tasks",
        f"  - Use `{state.checkpoint_keywords[0]}:` to checkpoint progress",
        f"  - Use `{state.close_keywords[0]}` when all tasks are complete",
        "",
    ])
    return lines


def _discussion_section(branch: str, state: WorkflowState, workspace: Workspace) -> List[str]:
    lines = ["**Mode**: Discussion", f"**Branch**: `{branch}`", ""]
    available = workspace.list_work_items()
    if available:
        lines.append(f"**Available Changes** ({len(available)}):")
        lines.extend(f"  - `{name}`" for name in available)
    else:
        lines.append("**Available Changes**: (none)")
    lines.extend(["", "**What you can do**:", "  - Discuss ideas freely",
                  f"  - Use `{state.proposal_keywords[0]}: [description]` to create a new change"])
    if available:
        lines.append(f"  - Use `{state.start_keywords[0]}: [change-id]` to start implementing")
    lines.append("")
    return lines


def render_session_summary(
    state: WorkflowState,
    branch: str,
    workspace: Workspace,
    active: Optional[ActiveWorkItem] = None,
) -> str:
    active = active if active is not None else state.find_by_branch(branch)
    lines = ["", RULE, "**OpenSpec Session**", RULE, ""]
    if active is not None:
        lines.extend(_implementation_section(active, branch, state, workspace))
    else:
        lines.extend(_discussion_section(branch, state, workspace))
    lines.extend([RULE, ""])
    return "\n".join(lines)


def session_summary(store: StateRepository, git: BranchCoordinator, workspace: Workspace) -> str:
    state = store.load()
    branch = git.current_branch()
    return render_session_summary(state, branch, workspace)


__all__ = [
    "extract_recent_worklog_entries",
    "drift_warnings",
    "progress_line",
    "render_session_summary",
    "session_summary",
]
