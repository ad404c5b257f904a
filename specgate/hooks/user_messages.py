#!/usr/bin/env python3

# ===== IMPORTS ===== #

## ===== STDLIB ===== ##
import json
import sys
from typing import Optional
##-##

## ===== LOCAL ===== ##
from specgate.dispatcher import HookResponse, KeywordDispatcher
from specgate.errors import StateWriteError
from specgate.hooks._io import HookContext, emit_json, read_hook_input
##-##

#-#

"""
User-message hook.

Accepts ``{"message": ...}``, the Claude ``{"prompt": ...}`` shape, or bare
text, and answers with ``{"action": "allow"|"inject", "context"?}``.
"""


def extract_message(raw: str) -> str:
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        return raw
    if isinstance(data, dict):
        return str(data.get("message") or data.get("prompt") or "")
    return data if isinstance(data, str) else raw


def main(ctx: Optional[HookContext] = None) -> int:
    ctx = ctx or HookContext.discover()
    raw = read_hook_input(ctx.config.stdin_timeout)
    if not raw.strip():
        emit_json(HookResponse.allow().to_dict())
        return 0

    dispatcher = KeywordDispatcher(ctx.store, ctx.git, ctx.workspace, ctx.config)
    try:
        response = dispatcher.dispatch(extract_message(raw))
    except StateWriteError as exc:
        print(f"[specgate] {exc}", file=sys.stderr)
        return 1

    emit_json(response.to_dict())
    return 0


if __name__ == "__main__":
    sys.exit(main())
