"""Keyword dispatch for user messages.

A message is matched against four keyword families, in order: propose,
start, checkpoint, close. The first family that matches handles the message;
anything else passes through untouched. Every handled keyword answers with
an ``inject`` response so the user always sees what happened, including
lookup failures and git errors.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

from specgate import prompts
from specgate.config import GateConfig
from specgate.errors import BaselineError, GitError
from specgate.git import BranchCoordinator
from specgate.paths import WORKLOG_DOC
from specgate.state.logger import log_event
from specgate.state.models import ActiveWorkItem, WorkflowState
from specgate.state.store import StateRepository
from specgate.tasks import content_hash, find_duplicate_tasks, parse_tasks_file
from specgate.workspace import Workspace

COMPONENT = "dispatcher"

BRANCH_PREFIX = "feature/"
CREATE_BRANCH_FLAG = "--create-branch"
RELOCK_FLAG = "--relock"
SKIP_REVIEW_FLAG = "--skip-review"


@dataclass
class HookResponse:
    action: str = "allow"
    context: Optional[str] = None

    @classmethod
    def allow(cls) -> "HookResponse":
        return cls(action="allow")

    @classmethod
    def inject(cls, context: str) -> "HookResponse":
        return cls(action="inject", context=context)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"action": self.action}
        if self.context is not None:
            payload["context"] = self.context
        return payload


def branch_for(work_item_id: str) -> str:
    return f"{BRANCH_PREFIX}{work_item_id}"


def _match_prefix(lowered: str, keywords: Sequence[str]) -> Optional[str]:
    """Keyword ``kw`` for which the message starts with ``kw:``."""
    for kw in keywords:
        if lowered.startswith(f"{kw.lower()}:"):
            return kw
    return None


def _match_exact(lowered: str, keywords: Sequence[str]) -> Optional[str]:
    for kw in keywords:
        if lowered == kw.lower():
            return kw
    return None


def _match_close(lowered: str, keywords: Sequence[str]) -> Optional[str]:
    for kw in keywords:
        kw_l = kw.lower()
        if lowered == kw_l or lowered.startswith(f"{kw_l} ") or lowered.startswith(f"{kw_l}:"):
            return kw
    return None


def _remainder(message: str, keyword: str) -> str:
    """Text after ``keyword`` and an optional colon."""
    rest = message[len(keyword):]
    if rest.startswith(":"):
        rest = rest[1:]
    return rest.strip()


def _split_flags(text: str) -> Tuple[List[str], set]:
    words, flags = [], set()
    for token in text.split():
        if token.startswith("--"):
            flags.add(token.lower())
        else:
            words.append(token)
    return words, flags


def _now() -> datetime:
    return datetime.now(timezone.utc)


class KeywordDispatcher:
    """Turns workflow keywords in user messages into state transitions and instructions."""

    def __init__(
        self,
        store: StateRepository,
        git: BranchCoordinator,
        workspace: Workspace,
        config: Optional[GateConfig] = None,
    ) -> None:
        self.store = store
        self.git = git
        self.workspace = workspace
        self.config = config or GateConfig()

    def dispatch(self, message: str, state: Optional[WorkflowState] = None) -> HookResponse:
        trimmed = (message or "").strip()
        if not trimmed:
            return HookResponse.allow()
        state = state or self.store.load()
        lowered = trimmed.lower()

        if (kw := _match_prefix(lowered, state.proposal_keywords)):
            family, response = "propose", self._propose(_remainder(trimmed, kw))
        elif (kw := _match_prefix(lowered, state.start_keywords)):
            family, response = "start", self._start(kw, _remainder(trimmed, kw), state)
        elif (kw := _match_prefix(lowered, state.checkpoint_keywords) or _match_exact(lowered, state.checkpoint_keywords)):
            family, response = "checkpoint", self._checkpoint(_remainder(trimmed, kw), state)
        elif (kw := _match_close(lowered, state.close_keywords)):
            family, response = "close", self._close(_remainder(trimmed, kw), state)
        else:
            return HookResponse.allow()

        log_event(event="keyword_dispatched", component=COMPONENT, family=family, keyword=kw, action=response.action)
        return response

    # ----- Propose ----- #

    def _propose(self, description: str) -> HookResponse:
        return HookResponse.inject(prompts.proposal_payload(description))

    # ----- Start ----- #

    def _start(self, keyword: str, rest: str, state: WorkflowState) -> HookResponse:
        words, flags = _split_flags(rest)
        if not words:
            return HookResponse.inject(prompts.missing_identifier(keyword))

        query = " ".join(words)
        lookup = self.workspace.find_work_item(query)
        if lookup.match is None:
            if lookup.ambiguous:
                return HookResponse.inject(prompts.ambiguous(query, lookup.candidates))
            return HookResponse.inject(prompts.not_found(query, self.workspace.list_work_items()))

        item = lookup.match
        current = self.git.current_branch()
        active = state.find_by_branch(current)
        if active and active.work_item_id == item.work_item_id and RELOCK_FLAG not in flags:
            return HookResponse.inject(prompts.already_active(item.work_item_id, current))

        # Validate the baseline before touching any branch
        try:
            tasks = parse_tasks_file(item.tasks_path)
            tasks_hash = content_hash(item.tasks_path)
        except BaselineError as exc:
            return HookResponse.inject(prompts.baseline_unreadable(item.work_item_id, str(exc)))

        if (duplicates := find_duplicate_tasks(tasks)):
            return HookResponse.inject(prompts.duplicate_tasks(item.work_item_id, duplicates))

        try:
            proposal_hash = content_hash(item.proposal_path)
        except BaselineError as exc:
            log_event(event="proposal_unhashed", component=COMPONENT, level="warn",
                      work_item_id=item.work_item_id, error=str(exc))
            proposal_hash = ""

        branch = branch_for(item.work_item_id)
        created = False
        if current != branch:
            try:
                if self.git.branch_exists(branch):
                    self.git.checkout_branch(branch)
                elif CREATE_BRANCH_FLAG in flags:
                    self.git.create_branch(branch)
                    created = True
                else:
                    return HookResponse.inject(prompts.confirm_branch(item.work_item_id, branch, keyword))
            except GitError as exc:
                log_event(event="branch_switch_failed", component=COMPONENT, level="warn",
                          work_item_id=item.work_item_id, branch=branch, error=str(exc))
                return HookResponse.inject(prompts.git_failure(f"switch to `{branch}`", str(exc)))

        previous = state.find_by_id(item.work_item_id)
        locked = ActiveWorkItem(
            work_item_id=item.work_item_id,
            branch=branch,
            tasks_doc_hash=tasks_hash,
            proposal_doc_hash=proposal_hash,
            approved_tasks=tasks,
            last_worklog_update=previous.last_worklog_update if previous else None,
            worklog_entries=previous.worklog_entries if previous else 0,
        )
        self.store.upsert_active_work_item(locked)
        log_event(event="plan_locked", component=COMPONENT, work_item_id=item.work_item_id,
                  branch=branch, tasks=len(tasks), created_branch=created)
        return HookResponse.inject(prompts.activated(item.work_item_id, branch, len(tasks), created))

    # ----- Checkpoint ----- #

    def _checkpoint(self, note: str, state: WorkflowState) -> HookResponse:
        if not state.worklog_enabled:
            return HookResponse.inject(prompts.worklog_disabled())

        active = state.find_by_branch(self.git.current_branch())
        if active is None:
            return HookResponse.inject(prompts.no_active_item("Pause"))

        now = _now()
        updated = replace(
            active,
            last_worklog_update=now.isoformat(timespec="seconds"),
            worklog_entries=active.worklog_entries + 1,
        )
        self.store.upsert_active_work_item(updated)

        worklog = self.workspace.paths.relative_doc(active.work_item_id, WORKLOG_DOC)
        stamp = now.astimezone().strftime("%Y-%m-%d %H:%M")
        return HookResponse.inject(prompts.checkpoint_payload(active.work_item_id, worklog, note, stamp))

    # ----- Close ----- #

    def _close(self, rest: str, state: WorkflowState) -> HookResponse:
        _, flags = _split_flags(rest)
        skip_review = SKIP_REVIEW_FLAG in flags or not state.review_agents_enabled

        active = state.find_by_branch(self.git.current_branch())
        if active is not None:
            work_item_id = active.work_item_id
        else:
            available = self.workspace.list_work_items()
            if not available:
                return HookResponse.inject(prompts.nothing_to_close())
            if len(available) > 1:
                return HookResponse.inject(prompts.choose_item_to_close(available))
            work_item_id = available[0]

        if skip_review:
            return HookResponse.inject(prompts.skip_review_payload(work_item_id))

        try:
            changed = self.git.changed_files_from_main()
        except GitError as exc:
            log_event(event="changed_files_unavailable", component=COMPONENT, level="warn", error=str(exc))
            changed = []
        change_path = self.workspace.paths.relative_doc(work_item_id, "").rstrip("/")
        return HookResponse.inject(prompts.review_payload(work_item_id, change_path, changed))


__all__ = ["HookResponse", "KeywordDispatcher", "branch_for"]
