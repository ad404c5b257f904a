"""Tests for plan comparison and the violation report."""

from __future__ import annotations

import pytest

from specgate.plan_diff import diff_plans, format_plan_diff, format_violation, todos_to_tasks
from specgate.state.models import Task

APPROVED = [Task("A", False, 1), Task("B", False, 2), Task("C", True, 3)]


def test_identical_plans_are_all_unchanged():
    diff = diff_plans(APPROVED, list(APPROVED))
    assert diff.added == diff.removed == diff.modified == []
    assert [new for _, new in diff.unchanged] == APPROVED
    assert not diff.is_scope_change


def test_status_only_change_is_not_scope_change():
    proposed = [Task("a", True), Task("B", False), Task("C", True)]
    diff = diff_plans(APPROVED, proposed)
    assert [(m.old.content, m.new.completed) for m in diff.modified] == [("A", True)]
    assert not diff.is_scope_change


def test_added_and_removed_tasks():
    proposed = [Task("A"), Task("B"), Task("D")]
    diff = diff_plans(APPROVED, proposed)
    assert [t.content for t in diff.added] == ["D"]
    assert [t.content for t in diff.removed] == ["C"]
    assert diff.is_scope_change


@pytest.mark.parametrize("proposed", [
    [],
    [Task("A")],
    [Task("x"), Task("y")],
    [Task("C", False), Task("B", True), Task("A", True), Task("Z")],
])
def test_every_task_lands_in_exactly_one_bucket(proposed):
    diff = diff_plans(APPROVED, proposed)
    new_side = diff.added + [m.new for m in diff.modified] + [new for _, new in diff.unchanged]
    old_side = diff.removed + [m.old for m in diff.modified] + [old for old, _ in diff.unchanged]
    assert sorted(t.content for t in new_side) == sorted(t.content for t in proposed)
    assert sorted(t.content for t in old_side) == sorted(t.content for t in APPROVED)


def test_todos_to_tasks():
    todos = [
        {"content": " A ", "status": "completed", "activeForm": "Doing A"},
        {"content": "B", "status": "in_progress", "activeForm": "Doing B"},
    ]
    assert todos_to_tasks(todos) == [Task("A", True, 1), Task("B", False, 2)]
    with pytest.raises(TypeError):
        todos_to_tasks(["A"])


def test_format_violation_lists_plan_change_and_options():
    proposed = [Task("A"), Task("B"), Task("C", True), Task("D")]
    diff = diff_plans(APPROVED, proposed)
    message = format_violation(APPROVED, proposed, diff, work_item_id="add-auth", start_keyword="apply")

    assert message.startswith("[OpenSpec: Todo Change Blocked]")
    assert "1. [ ] A" in message
    assert "3. [x] C" in message
    assert "+ D" in message
    assert "apply: add-auth --relock" in message


def test_format_plan_diff_empty():
    assert format_plan_diff(diff_plans(APPROVED, APPROVED)) == ""
