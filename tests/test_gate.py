"""Tests for the pre-invocation enforcement gate."""

from __future__ import annotations

import json

import pytest

from specgate.config import GateConfig
from specgate.gate import (
    EnforcementGate,
    FileEdit,
    ShellCommand,
    TodoWrite,
    UnknownTool,
    parse_tool_event,
)
from specgate.state.logger import configure_log_path
from specgate.state.models import Task
from specgate.state.store import MemoryStateStore

from conftest import FakeGit, locked_state

BRANCH = "feature/add-auth"


def todo_event(*todos):
    return {
        "tool_name": "TodoWrite",
        "tool_input": {"todos": [
            {"content": c, "status": "completed" if done else "pending", "activeForm": c} for c, done in todos
        ]},
    }


@pytest.fixture
def locked_gate(project):
    state = locked_state(tasks=[
        Task("Create model", False, 1),
        Task("Add tests in `tests/test_model.py`", False, 2),
    ])
    return EnforcementGate(MemoryStateStore(state), FakeGit(branch=BRANCH), project)


def strict_gate(project, **overrides):
    config = GateConfig(strict_discussion_mode=True, **overrides)
    return EnforcementGate(MemoryStateStore(), FakeGit(), project, config)


class TestParseToolEvent:
    def test_file_edit_variants(self):
        assert parse_tool_event({"tool": "Write", "parameters": {"file_path": "a.py"}}) == FileEdit("Write", ("a.py",))
        assert parse_tool_event({"tool_name": "NotebookEdit", "tool_input": {"notebook_path": "n.ipynb"}}) == \
            FileEdit("NotebookEdit", ("n.ipynb",))

    def test_multi_edit_collects_every_path(self):
        event = {"tool": "MultiEdit", "parameters": {
            "file_path": "a.py",
            "edits": [{"file_path": "b.py"}, {"file_path": "a.py"}, {"old_string": "x"}],
        }}
        assert parse_tool_event(event) == FileEdit("MultiEdit", ("a.py", "b.py"))

    def test_other_variants(self):
        assert parse_tool_event({"tool": "Bash", "parameters": {"command": "ls"}}) == ShellCommand("ls")
        assert parse_tool_event({"tool": "TodoWrite", "parameters": {}}) == TodoWrite(())
        assert parse_tool_event({"tool": "Read", "parameters": {"file_path": "x"}}) == \
            UnknownTool("Read", {"file_path": "x"})

    def test_malformed_todos_raise(self):
        with pytest.raises(TypeError):
            parse_tool_event({"tool": "TodoWrite", "parameters": {"todos": "nope"}})


class TestUnrestricted:
    @pytest.mark.parametrize("event", [
        {"tool": "Write", "parameters": {"file_path": "src/app.py"}},
        {"tool": "Bash", "parameters": {"command": "rm -rf build"}},
        todo_event(("Anything", False)),
    ])
    def test_default_config_allows_everything(self, project, event):
        gate = EnforcementGate(MemoryStateStore(), FakeGit(), project)
        assert gate.evaluate(event).action == "allow"

    def test_git_not_consulted_without_active_items(self, project):
        git = FakeGit()
        EnforcementGate(MemoryStateStore(), git, project).evaluate({"tool": "Write", "parameters": {}})
        assert git.calls == []

    @pytest.mark.parametrize("tool", ["Write", "Edit", "MultiEdit", "NotebookEdit", "TodoWrite"])
    def test_strict_mode_blocks_edit_tools(self, project, tool):
        decision = strict_gate(project).evaluate({"tool": tool, "parameters": {"file_path": "a.py", "todos": []}})
        assert decision.action == "block"
        assert "[OpenSpec: Discussion Mode]" in decision.message
        assert '"propose: <description>"' in decision.message
        assert '"apply: <change-id>"' in decision.message

    def test_strict_mode_classifies_bash(self, project):
        gate = strict_gate(project)
        assert gate.evaluate({"tool": "Bash", "parameters": {"command": "git status"}}).action == "allow"

        decision = gate.evaluate({"tool": "Bash", "parameters": {"command": "echo hi > out.txt"}})
        assert decision.action == "block"
        assert "Blocked command: echo hi > out.txt" in decision.message

    def test_strict_mode_honours_configured_commands(self, project):
        gate = strict_gate(project, bash_read_commands=["mytool"])
        assert gate.evaluate({"tool": "Bash", "parameters": {"command": "mytool --list"}}).action == "allow"

    def test_strict_mode_without_extrasafe_allows_unknown_commands(self, project):
        gate = strict_gate(project, extrasafe=False)
        assert gate.evaluate({"tool": "Bash", "parameters": {"command": "mytool --list"}}).action == "allow"
        assert gate.evaluate({"tool": "Bash", "parameters": {"command": "rm x"}}).action == "block"

    def test_item_on_other_branch_does_not_lock(self, project):
        gate = EnforcementGate(MemoryStateStore(locked_state()), FakeGit(branch="main"), project)
        assert gate.evaluate(todo_event(("Unrelated", False))).action == "allow"


class TestLockedTodos:
    def test_adding_a_task_is_blocked(self, locked_gate):
        event = todo_event(
            ("Create model", False),
            ("Add tests in `tests/test_model.py`", False),
            ("Add admin UI", False),
        )
        decision = locked_gate.evaluate(event)
        assert decision.action == "block"
        assert "[OpenSpec: Todo Change Blocked]" in decision.message
        assert "+ Add admin UI" in decision.message

    def test_removing_a_task_is_blocked(self, locked_gate):
        decision = locked_gate.evaluate(todo_event(("Create model", True)))
        assert decision.action == "block"
        assert "**Removed Tasks:**" in decision.message

    def test_status_only_change_is_allowed(self, locked_gate):
        event = todo_event(("create model ", True), ("Add tests in `tests/test_model.py`", False))
        assert locked_gate.evaluate(event).action == "allow"

    def test_verdict_is_idempotent(self, locked_gate):
        blocked = todo_event(("Create model", False), ("Something new", False))
        allowed = todo_event(("Create model", True), ("Add tests in `tests/test_model.py`", True))
        assert locked_gate.evaluate(blocked).action == locked_gate.evaluate(blocked).action == "block"
        assert locked_gate.evaluate(allowed).action == locked_gate.evaluate(allowed).action == "allow"


class TestLockedFileEdits:
    @pytest.mark.parametrize("path", [
        "openspec/changes/add-auth/tasks.md",
        "./openspec/changes/add-auth/proposal.md",
        "/home/dev/project/openspec/changes/add-auth/tasks.md",
        "/home/dev/project/openspec/changes/add-auth/./tasks.md",
        "openspec//changes/add-auth/tasks.md",
        "/home/dev/project/openspec/changes/x/../add-auth/proposal.md",
        "openspec\\changes\\add-auth\\tasks.md",
    ])
    def test_baseline_documents_are_protected(self, locked_gate, path):
        decision = locked_gate.evaluate({"tool": "Edit", "parameters": {"file_path": path}})
        assert decision.action == "block"
        assert "Protected Change File" in decision.message
        assert "`add-auth`" in decision.message

    def test_protected_path_inside_multi_edit(self, locked_gate):
        event = {"tool": "MultiEdit", "parameters": {"edits": [
            {"file_path": "src/model.py"},
            {"file_path": "openspec/changes/add-auth/tasks.md"},
        ]}}
        assert locked_gate.evaluate(event).action == "block"

    def test_other_documents_of_the_item_are_editable(self, locked_gate):
        event = {"tool": "Write", "parameters": {"file_path": "openspec/changes/add-auth/worklog.md"}}
        assert locked_gate.evaluate(event).action == "allow"

    def test_unlisted_files_allowed_by_default(self, locked_gate):
        assert locked_gate.evaluate({"tool": "Write", "parameters": {"file_path": "README.md"}}).action == "allow"

    def test_unlisted_files_blocked_when_opted_in(self, locked_gate):
        locked_gate.config = GateConfig(block_unlisted_files=True)
        assert locked_gate.evaluate({"tool": "Write", "parameters": {"file_path": "tests/test_model.py"}}).action == "allow"

        decision = locked_gate.evaluate({"tool": "Write", "parameters": {"file_path": "README.md"}})
        assert decision.action == "block"
        assert "tests/test_model.py" in decision.message

    def test_bash_and_unknown_tools_allowed(self, locked_gate):
        assert locked_gate.evaluate({"tool": "Bash", "parameters": {"command": "rm -rf build"}}).action == "allow"
        assert locked_gate.evaluate({"tool": "WebFetch", "parameters": {}}).action == "allow"


class TestFailOpen:
    def test_malformed_payload_allows_and_logs(self, locked_gate, tmp_path):
        log = tmp_path / "gate.log"
        configure_log_path(log)
        decision = locked_gate.evaluate({"tool": "TodoWrite", "parameters": {"todos": [1, 2]}})
        assert decision.action == "allow"

        entries = [json.loads(line) for line in log.read_text().splitlines()]
        assert any(e["event"] == "gate_error" and e["level"] == "error" for e in entries)

    def test_collaborator_failure_allows(self, project):
        class ExplodingStore(MemoryStateStore):
            def load(self):
                raise RuntimeError("disk on fire")

        gate = EnforcementGate(ExplodingStore(), FakeGit(), project, GateConfig(strict_discussion_mode=True))
        assert gate.evaluate({"tool": "Write", "parameters": {"file_path": "a.py"}}).action == "allow"
