#!/usr/bin/env python3

# ===== IMPORTS ===== #

## ===== STDLIB ===== ##
import sys
from typing import Optional
##-##

## ===== LOCAL ===== ##
from specgate.gate import EnforcementGate, GateDecision
from specgate.hooks._io import HookContext, emit_json, parse_json_object, read_hook_input
from specgate.state.logger import event_timer
##-##

#-#

"""
Pre-tool-use hook.

Reads ``{tool|tool_name, parameters|tool_input}`` from stdin and answers with
``{"action": "allow"|"block", "message"?}`` on stdout. A block is also echoed
to stderr with exit status 2, which Claude hosts surface to the agent.
Missing, late or malformed input is allowed.
"""

BLOCK_EXIT_CODE = 2


def main(ctx: Optional[HookContext] = None) -> int:
    ctx = ctx or HookContext.discover()
    event = parse_json_object(read_hook_input(ctx.config.stdin_timeout))

    #!> No usable input
    if event is None:
        emit_json(GateDecision.allow().to_dict())
        return 0
    #!<

    gate = EnforcementGate(ctx.store, ctx.git, ctx.paths, ctx.config)
    with event_timer(event="pre_tool_use", component="hooks", hook="pre_tool_use") as finalize:
        decision = gate.evaluate(event)
        finalize({"tool": event.get("tool") or event.get("tool_name"), "action": decision.action})

    emit_json(decision.to_dict())
    if decision.blocked:
        print(decision.message, file=sys.stderr)
        return BLOCK_EXIT_CODE
    return 0


if __name__ == "__main__":
    sys.exit(main())
