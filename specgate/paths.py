"""Project root discovery and the fixed OpenSpec directory layout."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

OPENSPEC_DIRNAME = "openspec"
CHANGES_DIRNAME = "changes"
ARCHIVE_DIRNAME = "archive"
STATE_FILENAME = "openspec-state.json"
CONFIG_FILENAME = "specgate-config.json"
LOG_FILENAME = "specgate.log"

PROPOSAL_DOC = "proposal.md"
TASKS_DOC = "tasks.md"
WORKLOG_DOC = "worklog.md"


def find_project_root(start: Optional[Union[str, Path]] = None) -> Path:
    """Locate the project root.

    Priority: ``CLAUDE_PROJECT_DIR``, then the nearest ancestor holding an
    ``openspec/`` or ``.git/`` directory, then the starting directory itself.
    """
    if (env_root := os.environ.get("CLAUDE_PROJECT_DIR")):
        return Path(env_root).expanduser().resolve()

    current = Path(start or Path.cwd()).resolve()
    for parent in (current, *current.parents):
        if (parent / OPENSPEC_DIRNAME).is_dir() or (parent / ".git").exists():
            return parent
    return current


@dataclass(frozen=True)
class ProjectPaths:
    """Resolved locations of every file the gate reads or writes."""

    root: Path

    @classmethod
    def discover(cls, start: Optional[Union[str, Path]] = None) -> "ProjectPaths":
        return cls(root=find_project_root(start))

    @property
    def openspec_dir(self) -> Path:
        return self.root / OPENSPEC_DIRNAME

    @property
    def changes_dir(self) -> Path:
        return self.openspec_dir / CHANGES_DIRNAME

    @property
    def state_dir(self) -> Path:
        return self.openspec_dir / "state"

    @property
    def state_file(self) -> Path:
        return self.state_dir / STATE_FILENAME

    @property
    def config_file(self) -> Path:
        return self.openspec_dir / CONFIG_FILENAME

    @property
    def log_file(self) -> Path:
        return self.state_dir / LOG_FILENAME

    def work_item_dir(self, work_item_id: str) -> Path:
        return self.changes_dir / work_item_id

    def relative_doc(self, work_item_id: str, doc: str) -> str:
        """Project-relative POSIX path of a work item document."""
        return f"{OPENSPEC_DIRNAME}/{CHANGES_DIRNAME}/{work_item_id}/{doc}"


__all__ = [
    "ARCHIVE_DIRNAME",
    "PROPOSAL_DOC",
    "TASKS_DOC",
    "WORKLOG_DOC",
    "ProjectPaths",
    "find_project_root",
]
