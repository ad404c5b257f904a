"""Post-invocation bookkeeping.

After a tool ran successfully on a locked branch, completion flags from the
agent's todo list are copied onto the approved plan, edits of ``tasks.md``
get an advisory note. A finished ``openspec archive <id>`` releases the
lock once the change directory has been moved away. Nothing here can
block; failures other than a failed state write are logged and produce no
message.
"""
from __future__ import annotations

import shlex
from typing import Any, List, Mapping, Optional

from specgate.bash_classifier import split_segments
from specgate.errors import StateWriteError
from specgate.gate import FileEdit, ShellCommand, TodoWrite, parse_tool_event
from specgate.git import BranchCoordinator
from specgate.paths import TASKS_DOC, ProjectPaths
from specgate.plan_diff import todos_to_tasks
from specgate.state.logger import log_event
from specgate.state.models import ActiveWorkItem, WorkflowState
from specgate.state.store import StateRepository
from specgate.tasks import all_tasks_complete, count_completed, path_matches

COMPONENT = "post_tool_sync"

_ARCHIVE_PREFIX = ("openspec", "archive")


def archived_work_items(command: str) -> List[str]:
    """Ids passed to segments that invoke ``openspec archive <id>`` directly."""
    ids: List[str] = []
    for segment in split_segments(command):
        try:
            tokens = shlex.split(segment)
        except ValueError:
            continue
        if len(tokens) > 2 and tuple(tokens[:2]) == _ARCHIVE_PREFIX and not tokens[2].startswith("-"):
            ids.append(tokens[2])
    return ids


def all_complete_message(work_item_id: str, total: int, close_keyword: str) -> str:
    return "\n".join([
        "",
        "**All tasks complete!**",
        "",
        f"You've finished all {total} tasks for `{work_item_id}`.",
        "",
        f"When ready, send `{close_keyword}` to:",
        "  1. Write the final worklog entry",
        "  2. Run the code and documentation reviews",
        "  3. Archive the change",
        "",
        "Or keep working if adjustments are needed.",
        "",
    ])


def progress_message(completed: int, total: int) -> str:
    return f"\nProgress: {completed}/{total} tasks complete\n"


class PostToolSync:
    def __init__(self, store: StateRepository, git: BranchCoordinator, paths: ProjectPaths) -> None:
        self.store = store
        self.git = git
        self.paths = paths

    def handle(self, event: Mapping[str, Any]) -> Optional[str]:
        """Return advisory text for the agent, or None."""
        if not event.get("success", True):
            return None
        try:
            return self._handle(event)
        except StateWriteError:
            raise
        except Exception as exc:
            log_event(event="sync_error", component=COMPONENT, level="error",
                      error=str(exc), error_type=type(exc).__name__)
            return None

    def _handle(self, event: Mapping[str, Any]) -> Optional[str]:
        state = self.store.load()
        if not state.active_work_items:
            return None
        active = state.find_by_branch(self.git.current_branch())
        if active is None:
            return None

        invocation = parse_tool_event(event)
        if isinstance(invocation, TodoWrite):
            return self._sync_todos(invocation, active, state)
        if isinstance(invocation, FileEdit) and invocation.tool in ("Write", "Edit"):
            tasks_doc = self.paths.relative_doc(active.work_item_id, TASKS_DOC)
            if any(path_matches(p, tasks_doc) for p in invocation.paths):
                return "\ntasks.md updated\n"
            return None
        if isinstance(invocation, ShellCommand):
            return self._release_on_archive(invocation.command, state)
        return None

    def _sync_todos(self, invocation: TodoWrite, active: ActiveWorkItem, state: WorkflowState) -> Optional[str]:
        current = todos_to_tasks(invocation.todos)
        synced = active.with_completion({t.key: t.completed for t in current})
        self.store.upsert_active_work_item(synced)

        completed, total = count_completed(synced.approved_tasks)
        log_event(event="progress_synced", component=COMPONENT, work_item_id=active.work_item_id,
                  completed=completed, total=total)
        if all_tasks_complete(synced.approved_tasks):
            return all_complete_message(active.work_item_id, total, state.close_keywords[0])
        if completed > 0:
            return progress_message(completed, total)
        return None

    def _release_on_archive(self, command: str, state: WorkflowState) -> Optional[str]:
        work_item_id = next(
            (i for i in archived_work_items(command) if state.find_by_id(i) is not None), None
        )
        if work_item_id is None:
            return None
        # openspec moves the directory away on success
        if self.paths.work_item_dir(work_item_id).exists():
            log_event(event="archive_unconfirmed", component=COMPONENT, level="warn", work_item_id=work_item_id)
            return None
        self.store.remove_active_work_item(work_item_id)
        return f"\n`{work_item_id}` archived; implementation lock released. Back in discussion mode.\n"


__all__ = ["PostToolSync", "all_complete_message", "archived_work_items", "progress_message"]
