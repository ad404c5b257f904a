"""Discovery of work items under ``openspec/changes``."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from specgate.paths import ARCHIVE_DIRNAME, PROPOSAL_DOC, TASKS_DOC, WORKLOG_DOC, ProjectPaths


@dataclass(frozen=True)
class WorkItem:
    work_item_id: str
    path: Path

    @property
    def proposal_path(self) -> Path:
        return self.path / PROPOSAL_DOC

    @property
    def tasks_path(self) -> Path:
        return self.path / TASKS_DOC

    @property
    def worklog_path(self) -> Path:
        return self.path / WORKLOG_DOC


@dataclass
class LookupResult:
    """Outcome of resolving a user-typed identifier.

    Exactly one of ``match`` or ``candidates`` is meaningful: a resolved item,
    or the ambiguous candidates (empty when nothing matched at all).
    """

    match: Optional[WorkItem] = None
    candidates: List[str] = field(default_factory=list)

    @property
    def found(self) -> bool:
        return self.match is not None

    @property
    def ambiguous(self) -> bool:
        return self.match is None and len(self.candidates) > 1


class Workspace:
    def __init__(self, paths: ProjectPaths) -> None:
        self.paths = paths

    def list_work_items(self) -> List[str]:
        changes = self.paths.changes_dir
        if not changes.is_dir():
            return []
        return sorted(
            entry.name for entry in changes.iterdir()
            if entry.is_dir() and entry.name != ARCHIVE_DIRNAME and not entry.name.startswith(".")
        )

    def work_item(self, work_item_id: str) -> WorkItem:
        return WorkItem(work_item_id=work_item_id, path=self.paths.work_item_dir(work_item_id))

    def find_work_item(self, query: str) -> LookupResult:
        """Exact name first, then a unique case-insensitive substring match."""
        query = query.strip()
        available = self.list_work_items()
        if not query:
            return LookupResult()
        if query in available:
            return LookupResult(match=self.work_item(query))

        lowered = query.lower()
        for name in available:
            if name.lower() == lowered:
                return LookupResult(match=self.work_item(name))

        partial = [name for name in available if lowered in name.lower()]
        if len(partial) == 1:
            return LookupResult(match=self.work_item(partial[0]))
        return LookupResult(candidates=partial)


__all__ = ["WorkItem", "LookupResult", "Workspace"]
