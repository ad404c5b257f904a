"""Pre-invocation enforcement.

``EnforcementGate.evaluate`` is the only entry point. It resolves the branch
lock, then routes the typed invocation to the unrestricted or locked rules.
Any unexpected failure inside evaluation is logged and turned into ``allow``:
the gate must never wedge the agent because of its own bug.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from specgate.bash_classifier import is_read_only
from specgate.config import GateConfig
from specgate.git import BranchCoordinator
from specgate.paths import PROPOSAL_DOC, TASKS_DOC, ProjectPaths
from specgate.plan_diff import diff_plans, format_violation, todos_to_tasks
from specgate.state.logger import log_event
from specgate.state.models import ActiveWorkItem, WorkflowState
from specgate.state.store import StateRepository
from specgate.tasks import extract_affected_files, is_file_affected, normalize_path, path_matches

COMPONENT = "gate"

FILE_EDIT_TOOLS = ("Write", "Edit", "MultiEdit", "NotebookEdit")


# ===== Tool invocations ===== #

@dataclass(frozen=True)
class FileEdit:
    tool: str
    paths: Tuple[str, ...] = ()


@dataclass(frozen=True)
class TodoWrite:
    todos: Tuple[Mapping[str, Any], ...] = ()


@dataclass(frozen=True)
class ShellCommand:
    command: str = ""


@dataclass(frozen=True)
class UnknownTool:
    tool: str
    parameters: Mapping[str, Any] = field(default_factory=dict)


ToolInvocation = Union[FileEdit, TodoWrite, ShellCommand, UnknownTool]


def _event_parameters(event: Mapping[str, Any]) -> Mapping[str, Any]:
    params = event.get("parameters")
    if params is None:
        params = event.get("tool_input")
    return params if isinstance(params, Mapping) else {}


def _edit_paths(tool: str, params: Mapping[str, Any]) -> Tuple[str, ...]:
    found: List[str] = []
    if tool == "NotebookEdit":
        found.append(params.get("notebook_path"))
    else:
        found.append(params.get("file_path"))
    if tool == "MultiEdit":
        for edit in params.get("edits") or []:
            if isinstance(edit, Mapping):
                found.append(edit.get("file_path"))
    unique: List[str] = []
    for p in found:
        if isinstance(p, str) and p and p not in unique:
            unique.append(p)
    return tuple(unique)


def parse_tool_event(event: Mapping[str, Any]) -> ToolInvocation:
    """Build a typed invocation from a hook payload.

    Accepts both ``{tool, parameters}`` and the Claude hook shape
    ``{tool_name, tool_input}``. Raises ``TypeError`` for a todo list that is
    not a list of objects.
    """
    tool = str(event.get("tool") or event.get("tool_name") or "")
    params = _event_parameters(event)

    if tool in FILE_EDIT_TOOLS:
        return FileEdit(tool=tool, paths=_edit_paths(tool, params))
    if tool == "TodoWrite":
        todos = params.get("todos", [])
        if not isinstance(todos, list) or not all(isinstance(t, Mapping) for t in todos):
            raise TypeError("TodoWrite.todos must be a list of objects")
        return TodoWrite(todos=tuple(todos))
    if tool == "Bash":
        return ShellCommand(command=str(params.get("command") or ""))
    return UnknownTool(tool=tool, parameters=dict(params))


# ===== Decisions ===== #

@dataclass
class GateDecision:
    action: str = "allow"
    message: Optional[str] = None

    @property
    def blocked(self) -> bool:
        return self.action == "block"

    @classmethod
    def allow(cls) -> "GateDecision":
        return cls(action="allow")

    @classmethod
    def block(cls, message: str) -> "GateDecision":
        return cls(action="block", message=message)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"action": self.action}
        if self.message is not None:
            payload["message"] = self.message
        return payload


def _next_steps(state: WorkflowState) -> List[str]:
    propose, start = state.proposal_keywords[0], state.start_keywords[0]
    return [
        "To make changes:",
        f'1. Create a proposal: "{propose}: <description>"',
        "2. Wait for approval",
        f'3. Start implementation: "{start}: <change-id>"',
    ]


def discussion_edit_message(tool: str, state: WorkflowState) -> str:
    return "\n".join([
        "[OpenSpec: Discussion Mode]",
        f"{tool} is not allowed while no change is active on this branch.",
        "",
        *_next_steps(state),
    ])


def discussion_bash_message(command: str, state: WorkflowState) -> str:
    return "\n".join([
        "[OpenSpec: Discussion Mode]",
        "Write-like shell commands are not allowed while no change is active on this branch.",
        "",
        f"Blocked command: {command}",
        "",
        "Only read-only operations are permitted.",
        *_next_steps(state),
    ])


def protected_doc_message(path: str, active: ActiveWorkItem) -> str:
    return "\n".join([
        "[OpenSpec: Protected Change File]",
        "",
        f"You attempted to modify: `{path}`",
        "",
        "proposal.md and tasks.md are the approved baseline and are frozen during implementation.",
        "",
        "**What you can do:**",
        "  1. Continue with the current plan as written",
        "  2. If the plan needs updating, explain why to the user and ask them to edit the file manually",
        "",
        f"**Current change:** `{active.work_item_id}`",
        f"**Branch:** `{active.branch}`",
    ])


def unlisted_file_message(path: str, active: ActiveWorkItem, affected: Sequence[str]) -> str:
    listed = "\n".join(f"  - {a}" for a in sorted(affected))
    return "\n".join([
        "[OpenSpec: File Not In Plan]",
        "",
        f"`{path}` is not mentioned by any task of `{active.work_item_id}`.",
        "",
        "Files named in tasks.md:",
        listed,
        "",
        "Ask the user before touching files outside the approved plan.",
    ])


# ===== Gate ===== #

class EnforcementGate:
    def __init__(
        self,
        store: StateRepository,
        git: BranchCoordinator,
        paths: ProjectPaths,
        config: Optional[GateConfig] = None,
    ) -> None:
        self.store = store
        self.git = git
        self.paths = paths
        self.config = config or GateConfig()

    def evaluate(self, event: Union[Mapping[str, Any], ToolInvocation]) -> GateDecision:
        """Decide whether one tool invocation may proceed. Never raises."""
        try:
            decision = self._evaluate(event)
        except Exception as exc:
            log_event(event="gate_error", component=COMPONENT, level="error",
                      error=str(exc), error_type=type(exc).__name__)
            return GateDecision.allow()
        if decision.blocked:
            log_event(event="tool_blocked", component=COMPONENT, level="info",
                      tool=_tool_name(event), reason=decision.message.splitlines()[0])
        return decision

    def _evaluate(self, event: Union[Mapping[str, Any], ToolInvocation]) -> GateDecision:
        invocation = parse_tool_event(event) if isinstance(event, Mapping) else event
        state = self.store.load()

        active = None
        if state.active_work_items:
            active = state.find_by_branch(self.git.current_branch())

        if active is None:
            return self._unrestricted(invocation, state)
        return self._locked(invocation, active, state)

    def _unrestricted(self, invocation: ToolInvocation, state: WorkflowState) -> GateDecision:
        if not self.config.strict_discussion_mode:
            return GateDecision.allow()

        if isinstance(invocation, FileEdit):
            return GateDecision.block(discussion_edit_message(invocation.tool, state))
        if isinstance(invocation, TodoWrite):
            return GateDecision.block(discussion_edit_message("TodoWrite", state))
        if isinstance(invocation, ShellCommand):
            if not invocation.command.strip():
                return GateDecision.allow()
            read_only = is_read_only(
                invocation.command,
                strict=self.config.extrasafe,
                extra_read=self.config.bash_read_commands,
                extra_write=self.config.bash_write_commands,
            )
            if read_only:
                return GateDecision.allow()
            return GateDecision.block(discussion_bash_message(invocation.command, state))
        return GateDecision.allow()

    def _locked(self, invocation: ToolInvocation, active: ActiveWorkItem, state: WorkflowState) -> GateDecision:
        if isinstance(invocation, FileEdit):
            return self._check_file_edit(invocation, active)
        if isinstance(invocation, TodoWrite):
            return self._check_todos(invocation, active, state)
        return GateDecision.allow()

    def _check_file_edit(self, invocation: FileEdit, active: ActiveWorkItem) -> GateDecision:
        protected = [self.paths.relative_doc(active.work_item_id, doc) for doc in (PROPOSAL_DOC, TASKS_DOC)]
        affected = extract_affected_files(active.approved_tasks)

        for path in invocation.paths:
            if any(path_matches(path, p) for p in protected):
                return GateDecision.block(protected_doc_message(normalize_path(path), active))

            listed = is_file_affected(path, affected)
            log_event(event="file_edit_checked", component=COMPONENT, level="debug",
                      work_item_id=active.work_item_id, path=path, in_plan=listed)
            if self.config.block_unlisted_files and affected and not listed:
                return GateDecision.block(unlisted_file_message(path, active, sorted(affected)))
        return GateDecision.allow()

    def _check_todos(self, invocation: TodoWrite, active: ActiveWorkItem, state: WorkflowState) -> GateDecision:
        proposed = todos_to_tasks(invocation.todos)
        diff = diff_plans(active.approved_tasks, proposed)
        if not diff.is_scope_change:
            return GateDecision.allow()
        return GateDecision.block(format_violation(
            active.approved_tasks,
            proposed,
            diff,
            work_item_id=active.work_item_id,
            start_keyword=state.start_keywords[0],
        ))


def _tool_name(event: Union[Mapping[str, Any], ToolInvocation]) -> str:
    if isinstance(event, Mapping):
        return str(event.get("tool") or event.get("tool_name") or "")
    if isinstance(event, TodoWrite):
        return "TodoWrite"
    if isinstance(event, ShellCommand):
        return "Bash"
    return event.tool


__all__ = [
    "FileEdit",
    "TodoWrite",
    "ShellCommand",
    "UnknownTool",
    "ToolInvocation",
    "parse_tool_event",
    "GateDecision",
    "EnforcementGate",
]
