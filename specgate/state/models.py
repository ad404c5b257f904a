"""Data models for the persisted workflow state and the plan it locks.

The JSON document written to ``openspec/state/openspec-state.json`` is exactly
``WorkflowState.to_dict()``. ``from_dict`` helpers are lenient: unknown keys are
ignored and documents written by the original Node hooks (``active_changes``,
``changeId``, ``approved_todos`` ...) are migrated on read.

Design notes:
- ``Task`` is frozen; plan sync replaces tasks with ``dataclasses.replace``.
- ``WorkflowState.mode`` is informational. It is recomputed from the active
  work items on every mutation; callers decide authority per branch with
  ``find_by_branch``.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional


class Mode(str, Enum):
    """Informational workflow mode.

    Attributes:
        DISCUSSION: No work item is locked anywhere
        IMPLEMENTATION: At least one work item is locked to a branch
    """

    DISCUSSION = "discussion"
    IMPLEMENTATION = "implementation"


TRUTHY = frozenset({"1", "true", "yes", "on"})
FALSY = frozenset({"0", "false", "no", "off"})


def parse_flag(value: Any) -> Optional[bool]:
    """Booleans, 0/1 and on/off style strings as a bool; None for anything else."""
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in TRUTHY:
            return True
        if lowered in FALSY:
            return False
    return None


def _flag(value: Any, default: bool) -> bool:
    parsed = parse_flag(value)
    return default if parsed is None else parsed


def _keywords(value: Any, default: List[str]) -> List[str]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)):
        return list(default)
    cleaned = [str(v).strip() for v in value if str(v).strip()]
    return cleaned or list(default)


@dataclass(frozen=True)
class Task:
    """One checklist entry of a plan.

    Attributes:
        content: Trimmed free text of the task
        completed: Whether the checkbox is ticked
        line: 1-based position in the source document (display only)
    """

    content: str
    completed: bool = False
    line: int = 0

    @property
    def key(self) -> str:
        """Identity used for plan comparison: case-insensitive trimmed content."""
        return self.content.strip().lower()

    def to_dict(self) -> Dict[str, Any]:
        return {"content": self.content, "completed": self.completed, "line": self.line}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Task":
        return cls(
            content=str(data.get("content", "")).strip(),
            completed=_flag(data.get("completed"), False),
            line=int(data.get("line", 0) or 0),
        )


@dataclass
class ActiveWorkItem:
    """A work item locked into implementation on one git branch.

    Attributes:
        work_item_id: Name of the directory under ``openspec/changes``
        branch: Branch the lock is bound to (at most one item per branch)
        tasks_doc_hash: SHA-256 of tasks.md at lock time
        proposal_doc_hash: SHA-256 of proposal.md at lock time
        approved_tasks: The frozen baseline plan
        last_worklog_update: ISO timestamp of the last checkpoint request
        worklog_entries: Number of checkpoints requested so far
    """

    work_item_id: str
    branch: str
    tasks_doc_hash: str = ""
    proposal_doc_hash: str = ""
    approved_tasks: List[Task] = field(default_factory=list)
    last_worklog_update: Optional[str] = None
    worklog_entries: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "work_item_id": self.work_item_id,
            "branch": self.branch,
            "tasks_doc_hash": self.tasks_doc_hash,
            "proposal_doc_hash": self.proposal_doc_hash,
            "approved_tasks": [t.to_dict() for t in self.approved_tasks],
            "last_worklog_update": self.last_worklog_update,
            "worklog_entries": self.worklog_entries,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ActiveWorkItem":
        work_item_id = data.get("work_item_id") or data.get("changeId")
        if not work_item_id:
            raise ValueError("Active work item is missing work_item_id")
        tasks = data.get("approved_tasks")
        if tasks is None:
            tasks = data.get("approved_todos", [])
        return cls(
            work_item_id=str(work_item_id),
            branch=str(data.get("branch", "")),
            tasks_doc_hash=str(data.get("tasks_doc_hash") or data.get("tasks_md_hash") or ""),
            proposal_doc_hash=str(data.get("proposal_doc_hash") or data.get("proposal_md_hash") or ""),
            approved_tasks=[Task.from_dict(t) for t in tasks if isinstance(t, Mapping)],
            last_worklog_update=data.get("last_worklog_update"),
            worklog_entries=int(data.get("worklog_entries", 0) or 0),
        )

    def with_completion(self, completed_by_key: Mapping[str, bool]) -> "ActiveWorkItem":
        """Copy of this item with completion flags taken from ``completed_by_key``.

        Tasks whose key is absent keep their flag. Entries are never added or
        removed.
        """
        synced = [
            replace(t, completed=completed_by_key[t.key]) if t.key in completed_by_key else t
            for t in self.approved_tasks
        ]
        return replace(self, approved_tasks=synced)


@dataclass
class WorkflowState:
    """The single persisted state document."""

    mode: Mode = Mode.DISCUSSION
    active_work_items: List[ActiveWorkItem] = field(default_factory=list)
    proposal_keywords: List[str] = field(default_factory=lambda: ["propose"])
    start_keywords: List[str] = field(default_factory=lambda: ["apply"])
    checkpoint_keywords: List[str] = field(default_factory=lambda: ["pause"])
    close_keywords: List[str] = field(default_factory=lambda: ["archive"])
    review_agents_enabled: bool = True
    worklog_enabled: bool = True

    def find_by_branch(self, branch: str) -> Optional[ActiveWorkItem]:
        return next((w for w in self.active_work_items if w.branch == branch), None)

    def find_by_id(self, work_item_id: str) -> Optional[ActiveWorkItem]:
        return next((w for w in self.active_work_items if w.work_item_id == work_item_id), None)

    def upsert(self, item: ActiveWorkItem) -> None:
        """Insert or replace ``item`` keyed by id, evicting any other item on its branch."""
        kept = [
            w for w in self.active_work_items
            if w.work_item_id == item.work_item_id or w.branch != item.branch
        ]
        for idx, existing in enumerate(kept):
            if existing.work_item_id == item.work_item_id:
                kept[idx] = item
                break
        else:
            kept.append(item)
        self.active_work_items = kept
        self.refresh_mode()

    def remove(self, work_item_id: str) -> bool:
        before = len(self.active_work_items)
        self.active_work_items = [w for w in self.active_work_items if w.work_item_id != work_item_id]
        self.refresh_mode()
        return len(self.active_work_items) != before

    def refresh_mode(self) -> None:
        self.mode = Mode.IMPLEMENTATION if self.active_work_items else Mode.DISCUSSION

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mode": self.mode.value,
            "active_work_items": [w.to_dict() for w in self.active_work_items],
            "proposal_keywords": list(self.proposal_keywords),
            "start_keywords": list(self.start_keywords),
            "checkpoint_keywords": list(self.checkpoint_keywords),
            "close_keywords": list(self.close_keywords),
            "review_agents_enabled": self.review_agents_enabled,
            "worklog_enabled": self.worklog_enabled,
        }

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "WorkflowState":
        defaults = cls()

        # Handle documents written by the Node hooks
        raw_items: Iterable[Any] = d.get("active_work_items")
        if raw_items is None:
            raw_items = d.get("active_changes", [])
        items = [ActiveWorkItem.from_dict(w) for w in raw_items if isinstance(w, Mapping)]

        try:
            mode = Mode(d.get("mode", Mode.DISCUSSION.value))
        except ValueError:
            mode = Mode.DISCUSSION

        state = cls(
            mode=mode,
            active_work_items=items,
            proposal_keywords=_keywords(d.get("proposal_keywords"), defaults.proposal_keywords),
            start_keywords=_keywords(
                d.get("start_keywords", d.get("implementation_keywords")), defaults.start_keywords
            ),
            checkpoint_keywords=_keywords(
                d.get("checkpoint_keywords", d.get("pause_keywords")), defaults.checkpoint_keywords
            ),
            close_keywords=_keywords(
                d.get("close_keywords", d.get("archive_keywords")), defaults.close_keywords
            ),
            review_agents_enabled=_flag(d.get("review_agents_enabled"), defaults.review_agents_enabled),
            worklog_enabled=_flag(d.get("worklog_enabled"), defaults.worklog_enabled),
        )
        if items:
            state.refresh_mode()
        return state


__all__ = ["Mode", "Task", "ActiveWorkItem", "WorkflowState", "parse_flag"]
