"""Instruction payloads injected into the agent's context.

Everything here is pure string building; the dispatcher decides which payload
applies and supplies the facts.
"""
from __future__ import annotations

from typing import Iterable, List, Optional, Sequence

HEADER = "**OpenSpec Hook**"

WORKLOG_SECTIONS = (
    "Accomplishments",
    "Decisions",
    "Discoveries",
    "Problems & Solutions",
    "Next Steps",
)


def _join(lines: Iterable[Optional[str]]) -> str:
    return "\n".join(line for line in lines if line is not None)


def bullet_list(items: Sequence[str], empty: str = "  (no changes found)") -> str:
    if not items:
        return empty
    return "\n".join(f"  - {item}" for item in items)


# ===== Propose ===== #

def proposal_payload(description: str) -> str:
    return _join([
        "",
        f"{HEADER}: Detected proposal keyword.",
        "",
        "Run the `/openspec:proposal` slash command to create a new change.",
        f'**User description**: "{description}"' if description else None,
        "",
        "Follow the OpenSpec workflow:",
        "1. Review project.md and the existing changes",
        "2. Choose a unique change id (kebab-case, verb-led)",
        "3. Create proposal.md, tasks.md and design.md",
        "4. Draft the spec deltas",
        "5. Validate with `openspec validate <id> --strict`",
        "",
    ])


# ===== Start ===== #

def missing_identifier(keyword: str) -> str:
    return f"{HEADER}: `{keyword}` keyword detected but no change id was given. Use `{keyword}: <change-id>`."


def not_found(query: str, available: Sequence[str]) -> str:
    return f'{HEADER}: Change "{query}" not found. Available changes:\n{bullet_list(available)}'


def ambiguous(query: str, candidates: Sequence[str]) -> str:
    return (
        f'{HEADER}: "{query}" matches more than one change. Please use the full id:\n'
        f"{bullet_list(candidates)}"
    )


def already_active(work_item_id: str, branch: str) -> str:
    return f'{HEADER}: Change "{work_item_id}" is already active on branch "{branch}". You can continue implementing.'


def confirm_branch(work_item_id: str, branch: str, keyword: str) -> str:
    return _join([
        "",
        f"{HEADER}: Starting implementation of change `{work_item_id}`",
        "",
        f"**Proposed branch**: `{branch}` (does not exist yet)",
        "",
        "Once confirmed, the hook will:",
        f"1. Create the branch `{branch}`",
        "2. Lock the approved plan from `tasks.md`",
        "3. Switch to implementation mode",
        "",
        "Ask the user to confirm. To proceed, they send:",
        f"  `{keyword}: {work_item_id} --create-branch`",
        "",
    ])


def activated(work_item_id: str, branch: str, task_count: int, created: bool) -> str:
    return _join([
        "",
        f"{HEADER}: Implementation mode activated",
        "",
        f"- Branch: `{branch}`" + (" (created)" if created else ""),
        f"- Locked plan: {task_count} tasks from tasks.md",
        "- Mode: implementation",
        "",
        f"Now run `/openspec:apply {work_item_id}` to begin implementing.",
        "",
    ])


def duplicate_tasks(work_item_id: str, duplicates: Sequence[str]) -> str:
    return _join([
        f"{HEADER}: Cannot lock the plan of `{work_item_id}`.",
        "",
        "tasks.md contains tasks with identical text, which makes progress tracking ambiguous:",
        bullet_list(duplicates),
        "",
        "Reword the duplicates so every task is unique, then send the start keyword again.",
    ])


def baseline_unreadable(work_item_id: str, error: str) -> str:
    return f"{HEADER}: Cannot lock the plan of `{work_item_id}`: {error}"


def git_failure(action: str, error: str) -> str:
    return f"{HEADER}: Git {action} failed: {error}\nResolve the repository state and try again."


# ===== Checkpoint ===== #

def worklog_disabled() -> str:
    return f"{HEADER}: Worklog generation is disabled in state. Ignoring the checkpoint keyword."


def no_active_item(action: str) -> str:
    return f"{HEADER}: No active change on this branch. {action} is only available during implementation."


def worklog_template() -> str:
    lines = ["```markdown", "## YYYY-MM-DD HH:MM", ""]
    for section in WORKLOG_SECTIONS:
        lines.extend([f"### {section}", "- ...", ""])
    lines[-1] = "```"
    return "\n".join(lines)


def checkpoint_payload(work_item_id: str, worklog_path: str, note: str, timestamp: str) -> str:
    return _join([
        "",
        f"{HEADER}: Generating worklog checkpoint",
        "",
        f"**Change**: `{work_item_id}`",
        f'**Note**: "{note}"' if note else None,
        f"**Timestamp**: {timestamp}",
        "",
        "Do the following now:",
        "1. Review the conversation since the last checkpoint",
        "2. Extract accomplishments, decisions, discoveries, problems and next steps",
        f"3. Append a new entry to `{worklog_path}` (create it if missing, never rewrite earlier entries)",
        "4. Note progress in `tasks.md` by ticking finished checkboxes only",
        "",
        "Entry format:",
        worklog_template(),
        "",
    ])


# ===== Close ===== #

def nothing_to_close() -> str:
    return f"{HEADER}: No changes found to archive."


def choose_item_to_close(available: Sequence[str]) -> str:
    return f"{HEADER}: Multiple changes available. Please specify which to archive:\n{bullet_list(available)}"


def skip_review_payload(work_item_id: str) -> str:
    return _join([
        "",
        f"{HEADER}: Archiving change `{work_item_id}` without review",
        "",
        f"Run: `openspec archive {work_item_id} --yes`",
        "",
    ])


def review_payload(work_item_id: str, change_path: str, changed_files: Sequence[str]) -> str:
    lines: List[Optional[str]] = [
        "",
        "**OpenSpec Pre-Archive Review**",
        "",
        f"Change: `{work_item_id}`",
        "",
        "Run the three review stages below before archiving.",
        "",
        "### 1. Worklog",
        f"Append a final entry to `{change_path}/worklog.md` summarising the session:",
        worklog_template(),
        "",
        "### 2. Code review",
        "Check the changed code against proposal.md and tasks.md.",
        "Changed files:",
        bullet_list(changed_files, empty="  (no changed files detected)"),
        "",
        "Report under these headings:",
        "- **Critical**: security issues, behaviour that contradicts the proposal, data loss risks",
        "- **Warnings**: pattern violations, missing error handling, test gaps",
        "- **Suggestions**: readability and refactoring opportunities",
        "",
        "### 3. Documentation review",
        "Verify README, API docs and spec deltas describe the new behaviour.",
        "List missing or stale documentation with file paths.",
        "",
        "### Decision",
        "Present the findings and ask the user to choose:",
        "1. **Fix now**: address the findings, then run the review again",
        f"2. **Archive anyway**: save the findings to `{change_path}/.review-notes.md`, "
        f"then run `openspec archive {work_item_id} --yes`",
        "3. **Follow-up**: open a new change for the findings, then archive this one",
        "",
    ]
    return _join(lines)


__all__ = [
    "WORKLOG_SECTIONS",
    "proposal_payload",
    "missing_identifier",
    "not_found",
    "ambiguous",
    "already_active",
    "confirm_branch",
    "activated",
    "duplicate_tasks",
    "baseline_unreadable",
    "git_failure",
    "worklog_disabled",
    "no_active_item",
    "worklog_template",
    "checkpoint_payload",
    "nothing_to_close",
    "choose_item_to_close",
    "skip_review_payload",
    "review_payload",
]
