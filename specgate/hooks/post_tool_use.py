#!/usr/bin/env python3

# ===== IMPORTS ===== #

## ===== STDLIB ===== ##
import sys
from typing import Optional
##-##

## ===== LOCAL ===== ##
from specgate.errors import StateWriteError
from specgate.hooks._io import HookContext, parse_json_object, read_hook_input
from specgate.sync import PostToolSync
##-##

#-#

"""
Post-tool-use hook.

Keeps the locked plan's completion flags in step with the agent's todo list,
flags edits of tasks.md and releases the lock once ``openspec archive <id>``
succeeded. Prints advisory text only; never blocks.
"""


def main(ctx: Optional[HookContext] = None) -> int:
    ctx = ctx or HookContext.discover()
    event = parse_json_object(read_hook_input(ctx.config.stdin_timeout))
    if event is None: return 0

    try:
        message = PostToolSync(ctx.store, ctx.git, ctx.paths).handle(event)
    except StateWriteError as exc:
        print(f"[specgate] {exc}", file=sys.stderr)
        return 1

    if message: sys.stdout.write(message)
    return 0


if __name__ == "__main__":
    sys.exit(main())
