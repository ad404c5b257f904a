"""Shared fixtures: an isolated OpenSpec project, in-memory state and a fake git."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Iterable, List, Optional

import pytest

repo_root = Path(__file__).resolve().parent.parent
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from specgate.errors import GitError  # noqa: E402
from specgate.git import BranchCoordinator  # noqa: E402
from specgate.paths import ProjectPaths  # noqa: E402
from specgate.state.logger import configure_log_path  # noqa: E402
from specgate.state.models import ActiveWorkItem, Task, WorkflowState  # noqa: E402
from specgate.state.store import MemoryStateStore  # noqa: E402
from specgate.workspace import Workspace  # noqa: E402

SAMPLE_TASKS = """# Tasks

## 1. Implementation
- [ ] Add JWT validation to `src/auth/jwt.py`
- [ ] Write tests in tests/test_jwt.py
- [x] Update docs
"""


class FakeGit(BranchCoordinator):
    """Branch coordinator that never shells out."""

    def __init__(
        self,
        branch: str = "main",
        branches: Optional[Iterable[str]] = None,
        changed: Optional[List[str]] = None,
        fail_with: Optional[str] = None,
    ) -> None:
        super().__init__(cwd=".", timeout=1.0)
        self.branch = branch
        self.branches = set(branches or ()) | {branch}
        self.changed = list(changed or [])
        self.fail_with = fail_with
        self.calls: List[tuple] = []

    def _run(self, *args: str) -> str:
        raise GitError("FakeGit does not run git")

    def current_branch(self) -> str:
        self.calls.append(("current_branch",))
        return self.branch

    def branch_exists(self, name: str) -> bool:
        return name in self.branches

    def create_branch(self, name: str) -> None:
        if self.fail_with:
            raise GitError(self.fail_with)
        self.calls.append(("create_branch", name))
        self.branches.add(name)
        self.branch = name

    def checkout_branch(self, name: str) -> None:
        if self.fail_with:
            raise GitError(self.fail_with)
        self.calls.append(("checkout_branch", name))
        self.branch = name

    def changed_files_from_main(self) -> List[str]:
        return list(self.changed)


def make_work_item(paths: ProjectPaths, work_item_id: str, tasks: str = SAMPLE_TASKS,
                   proposal: str = "# Proposal\n\nWhy and what.\n") -> Path:
    item_dir = paths.work_item_dir(work_item_id)
    item_dir.mkdir(parents=True, exist_ok=True)
    (item_dir / "tasks.md").write_text(tasks, encoding="utf-8")
    (item_dir / "proposal.md").write_text(proposal, encoding="utf-8")
    return item_dir


def locked_state(work_item_id: str = "add-auth", branch: str = "feature/add-auth",
                 tasks: Optional[List[Task]] = None) -> WorkflowState:
    state = WorkflowState()
    state.upsert(ActiveWorkItem(
        work_item_id=work_item_id,
        branch=branch,
        tasks_doc_hash="",
        proposal_doc_hash="",
        approved_tasks=tasks if tasks is not None else [Task("A", False, 1), Task("B", False, 2)],
    ))
    return state


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch):
    """Keep host settings and telemetry out of every test."""
    for name in ("SPECGATE_STRICT", "SPECGATE_EXTRASAFE", "SPECGATE_BLOCK_UNLISTED",
                 "SPECGATE_LOG_PATH", "SPECGATE_LOG_LEVEL", "CLAUDE_PROJECT_DIR"):
        monkeypatch.delenv(name, raising=False)
    configure_log_path(None)
    yield
    configure_log_path(None)


@pytest.fixture
def project(tmp_path, monkeypatch) -> ProjectPaths:
    root = tmp_path / "project"
    (root / "openspec" / "changes").mkdir(parents=True)
    monkeypatch.setenv("CLAUDE_PROJECT_DIR", str(root))
    return ProjectPaths(root=root.resolve())


@pytest.fixture
def workspace(project) -> Workspace:
    return Workspace(project)


@pytest.fixture
def store() -> MemoryStateStore:
    return MemoryStateStore()


@pytest.fixture
def git() -> FakeGit:
    return FakeGit()
