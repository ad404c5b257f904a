#!/usr/bin/env python3

# ===== IMPORTS ===== #

## ===== STDLIB ===== ##
import sys
from typing import Optional
##-##

## ===== LOCAL ===== ##
from specgate.hooks._io import HookContext
from specgate.session import session_summary
##-##

#-#

"""
Session-start hook. Prints the workflow summary; stdin is ignored.
"""


def main(ctx: Optional[HookContext] = None) -> int:
    ctx = ctx or HookContext.discover()
    sys.stdout.write(session_summary(ctx.store, ctx.git, ctx.workspace))
    return 0


if __name__ == "__main__":
    sys.exit(main())
