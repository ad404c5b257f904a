"""Tests for post-invocation progress sync and lock release."""

from __future__ import annotations

import pytest

from specgate.errors import StateWriteError
from specgate.state.models import Mode, Task
from specgate.state.store import MemoryStateStore
from specgate.sync import PostToolSync, archived_work_items

from conftest import FakeGit, locked_state, make_work_item

BRANCH = "feature/add-auth"


def todo_event(*todos, success=True):
    return {
        "tool": "TodoWrite",
        "parameters": {"todos": [
            {"content": c, "status": "completed" if done else "in_progress", "activeForm": c} for c, done in todos
        ]},
        "success": success,
    }


@pytest.fixture
def store():
    return MemoryStateStore(locked_state())


@pytest.fixture
def sync(store, project):
    return PostToolSync(store, FakeGit(branch=BRANCH), project)


def test_progress_is_synced_onto_the_baseline(sync, store):
    message = sync.handle(todo_event(("a", True), ("B", False), ("Extra", True)))
    assert message == "\nProgress: 1/2 tasks complete\n"
    item = store.load().find_by_id("add-auth")
    assert item.approved_tasks == [Task("A", True, 1), Task("B", False, 2)]


def test_all_complete_suggests_close_keyword(sync):
    message = sync.handle(todo_event(("A", True), ("B", True)))
    assert "All tasks complete" in message
    assert "send `archive`" in message


def test_no_progress_no_message(sync, store):
    assert sync.handle(todo_event(("A", False), ("B", False))) is None
    assert store.saves == 1


def test_failed_tool_is_ignored(sync, store):
    assert sync.handle(todo_event(("A", True), success=False)) is None
    assert store.saves == 0


def test_unlocked_branch_is_ignored(store, project):
    sync = PostToolSync(store, FakeGit(branch="main"), project)
    assert sync.handle(todo_event(("A", True))) is None
    assert store.saves == 0


def test_tasks_document_edit_note(sync):
    event = {"tool": "Edit", "parameters": {"file_path": "openspec/changes/add-auth/tasks.md"}}
    assert sync.handle(event) == "\ntasks.md updated\n"
    assert sync.handle({"tool": "Edit", "parameters": {"file_path": "src/app.py"}}) is None


def test_archive_command_releases_lock(sync, store):
    message = sync.handle({"tool": "Bash", "parameters": {"command": "openspec archive add-auth --yes"}})
    assert "lock released" in message
    state = store.load()
    assert state.active_work_items == []
    assert state.mode is Mode.DISCUSSION


def test_archive_inside_compound_command_releases_lock(sync, store):
    message = sync.handle({"tool": "Bash", "parameters": {"command": "cd repo && openspec archive 'add-auth' --yes"}})
    assert "lock released" in message
    assert store.load().active_work_items == []


@pytest.mark.parametrize("command", [
    "openspec archive other --yes",
    "echo openspec-archive add-auth",
    "echo openspec archive add-auth",
    'git log --grep "openspec archive add-auth"',
    "printf '%s' 'openspec archive add-auth' | cat",
    "openspec archive --yes add-auth",
])
def test_other_commands_keep_lock(sync, store, command):
    assert sync.handle({"tool": "Bash", "parameters": {"command": command}}) is None
    assert len(store.load().active_work_items) == 1


def test_archive_keeps_lock_while_change_directory_exists(sync, store, project):
    make_work_item(project, "add-auth")
    assert sync.handle({"tool": "Bash", "parameters": {"command": "openspec archive add-auth --yes"}}) is None
    assert store.load().find_by_id("add-auth") is not None


def test_archived_work_items():
    assert archived_work_items("openspec archive a --yes; openspec archive b") == ["a", "b"]
    assert archived_work_items("echo 'unterminated") == []


def test_malformed_payload_is_logged_not_raised(sync):
    assert sync.handle({"tool": "TodoWrite", "parameters": {"todos": "nope"}}) is None


def test_state_write_failure_propagates(project):
    class BrokenStore(MemoryStateStore):
        def save(self, state):
            raise StateWriteError("disk full")

    sync = PostToolSync(BrokenStore(locked_state()), FakeGit(branch=BRANCH), project)
    with pytest.raises(StateWriteError):
        sync.handle(todo_event(("A", True), ("B", False)))
