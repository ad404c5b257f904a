"""CLI for running the hooks and inspecting or repairing workflow state."""
from __future__ import annotations

import argparse
import json
import sys
from typing import Callable, Dict, Sequence

from specgate import __version__
from specgate.bash_classifier import is_read_only
from specgate.errors import BaselineError, StateWriteError
from specgate.hooks import post_tool_use, pre_tool_use, session_start, user_messages
from specgate.hooks._io import HookContext
from specgate.plan_diff import diff_plans, format_plan_diff
from specgate.session import drift_warnings, progress_line
from specgate.tasks import parse_tasks_file

HOOKS: Dict[str, Callable[..., int]] = {
    "pre-tool-use": pre_tool_use.main,
    "user-message": user_messages.main,
    "post-tool-use": post_tool_use.main,
    "session-start": session_start.main,
}


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="specgate", description="OpenSpec workflow enforcement for coding agents.")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    subparsers = parser.add_subparsers(dest="command", required=True)

    hook_parser = subparsers.add_parser("hook", help="Run a hook entry point (reads the event from stdin).")
    hook_parser.add_argument("name", choices=sorted(HOOKS))

    status_parser = subparsers.add_parser("status", help="Show the workflow state and this branch's active change.")
    status_parser.add_argument("--json", action="store_true", help="Print the raw state document.")

    bash_parser = subparsers.add_parser(
        "check-bash", help="Classify a shell command. Exit 0 when read-only, 1 when write-like."
    )
    bash_parser.add_argument(
        "--lenient",
        action="store_true",
        help="Only veto known write commands instead of requiring every command to be allow-listed.",
    )
    bash_parser.add_argument("shell_command", nargs=argparse.REMAINDER, metavar="COMMAND")

    release_parser = subparsers.add_parser("release", help="Remove an active change and its plan lock.")
    release_parser.add_argument("work_item_id")

    diff_parser = subparsers.add_parser("diff", help="Compare the live tasks.md with the locked plan.")
    diff_parser.add_argument("work_item_id")

    return parser


def _status(ctx: HookContext, as_json: bool) -> int:
    state = ctx.store.load()
    if as_json:
        print(json.dumps(state.to_dict(), indent=2))
        return 0

    branch = ctx.git.current_branch()
    active = state.find_by_branch(branch)
    print(f"Mode: {state.mode.value}")
    print(f"Branch: {branch}")
    if active is None:
        print("Active change: (none on this branch)")
    else:
        print(f"Active change: {active.work_item_id}")
        print(progress_line(active).replace("**", ""))
        for warning in drift_warnings(active, ctx.workspace):
            print(f"Warning: {warning}")

    others = [w for w in state.active_work_items if w is not active]
    if others:
        print("Other locked changes:")
        for item in others:
            print(f"  - {item.work_item_id} ({item.branch})")
    return 0


def _check_bash(ctx: HookContext, command: str, lenient: bool) -> int:
    read_only = is_read_only(
        command,
        strict=not lenient,
        extra_read=ctx.config.bash_read_commands,
        extra_write=ctx.config.bash_write_commands,
    )
    print("read-only" if read_only else "write-like")
    return 0 if read_only else 1


def _release(ctx: HookContext, work_item_id: str) -> int:
    if ctx.store.load().find_by_id(work_item_id) is None:
        print(f"Error: no active change named {work_item_id!r}", file=sys.stderr)
        return 1
    ctx.store.remove_active_work_item(work_item_id)
    print(f"Released {work_item_id}")
    return 0


def _diff(ctx: HookContext, work_item_id: str) -> int:
    active = ctx.store.load().find_by_id(work_item_id)
    if active is None:
        print(f"Error: no active change named {work_item_id!r}", file=sys.stderr)
        return 1
    try:
        live = parse_tasks_file(ctx.workspace.work_item(work_item_id).tasks_path)
    except BaselineError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    diff = diff_plans(active.approved_tasks, live)
    rendered = format_plan_diff(diff).rstrip()
    print(rendered or "tasks.md matches the locked plan.")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    ctx = HookContext.discover()

    if args.command == "hook":
        return HOOKS[args.name](ctx)

    try:
        if args.command == "status":
            return _status(ctx, args.json)
        if args.command == "check-bash":
            if not args.shell_command:
                parser.error("check-bash requires a command")
            return _check_bash(ctx, " ".join(args.shell_command), args.lenient)
        if args.command == "release":
            return _release(ctx, args.work_item_id)
        if args.command == "diff":
            return _diff(ctx, args.work_item_id)
    except StateWriteError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    parser.error("Unknown command")
    return 1


if __name__ == "__main__":
    sys.exit(main())
