"""Comparison of a live todo list against the locked baseline plan.

Additions and removals are scope changes and get rejected. A task whose only
difference is its completion flag is progress and is always allowed.

Tasks are matched by case-insensitive trimmed content. When the same content
appears twice on one side the later entry wins the lookup; plans with
duplicate task text are refused when a work item is locked.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Sequence, Tuple

from specgate.state.models import Task


@dataclass(frozen=True)
class ModifiedTask:
    old: Task
    new: Task


@dataclass
class PlanDiff:
    added: List[Task] = field(default_factory=list)
    removed: List[Task] = field(default_factory=list)
    modified: List[ModifiedTask] = field(default_factory=list)
    unchanged: List[Tuple[Task, Task]] = field(default_factory=list)

    @property
    def is_scope_change(self) -> bool:
        return bool(self.added or self.removed)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "added": [t.to_dict() for t in self.added],
            "removed": [t.to_dict() for t in self.removed],
            "modified": [{"old": m.old.to_dict(), "new": m.new.to_dict()} for m in self.modified],
            "unchanged": [new.to_dict() for _, new in self.unchanged],
        }


def diff_plans(approved: Sequence[Task], proposed: Sequence[Task]) -> PlanDiff:
    approved_map = {t.key: t for t in approved}
    proposed_map = {t.key: t for t in proposed}
    diff = PlanDiff()

    for task in approved:
        if task.key not in proposed_map:
            diff.removed.append(task)

    for task in proposed:
        baseline = approved_map.get(task.key)
        if baseline is None:
            diff.added.append(task)
        elif baseline.completed != task.completed:
            diff.modified.append(ModifiedTask(old=baseline, new=task))
        else:
            diff.unchanged.append((baseline, task))

    return diff


def todos_to_tasks(todos: Iterable[Mapping[str, Any]]) -> List[Task]:
    """Convert a TodoWrite payload (``{content, status, activeForm}``) into tasks."""
    tasks: List[Task] = []
    for index, todo in enumerate(todos, start=1):
        if not isinstance(todo, Mapping):
            raise TypeError(f"todo #{index} is not an object: {todo!r}")
        tasks.append(Task(
            content=str(todo.get("content", "")).strip(),
            completed=todo.get("status") == "completed",
            line=index,
        ))
    return tasks


def _box(task: Task) -> str:
    return "[x]" if task.completed else "[ ]"


def format_plan_diff(diff: PlanDiff) -> str:
    lines: List[str] = []
    if diff.removed:
        lines.append("**Removed Tasks:**")
        lines.extend(f"  - {t.content}" for t in diff.removed)
        lines.append("")
    if diff.added:
        lines.append("**Added Tasks:**")
        lines.extend(f"  + {t.content}" for t in diff.added)
        lines.append("")
    if diff.modified:
        lines.append("**Modified Tasks:**")
        lines.extend(f"  {_box(m.old)} -> {_box(m.new)}: {m.new.content}" for m in diff.modified)
        lines.append("")
    return "\n".join(lines)


def format_violation(
    approved: Sequence[Task],
    attempted: Sequence[Task],
    diff: PlanDiff,
    *,
    work_item_id: str,
    start_keyword: str = "apply",
) -> str:
    """Explain a blocked todo-list change and the ways forward."""
    lines = [
        "[OpenSpec: Todo Change Blocked]",
        "",
        f"You attempted to change the approved plan of `{work_item_id}` during implementation.",
        "Adding or removing tasks is a scope change. Marking tasks done is always allowed.",
        "",
        f"**Approved Plan** ({len(approved)} tasks):",
    ]
    lines.extend(f"  {i}. {_box(t)} {t.content}" for i, t in enumerate(approved, start=1))
    lines.append("")
    lines.append(f"**Attempted Change** ({len(attempted)} tasks):")
    lines.append("")
    lines.append(format_plan_diff(diff).rstrip())
    lines.extend([
        "",
        "**What you can do:**",
        "  1. Continue with the approved plan as written (status changes only)",
        "  2. Explain to the user why the scope should change and ask for approval",
        f"  3. Have the user edit `tasks.md` manually, then re-lock it with `{start_keyword}: {work_item_id} --relock`",
    ])
    return "\n".join(lines)


__all__ = [
    "ModifiedTask",
    "PlanDiff",
    "diff_plans",
    "todos_to_tasks",
    "format_plan_diff",
    "format_violation",
]
