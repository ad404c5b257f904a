"""Entry points wired into the Claude hook events.

Each module exposes ``main() -> int`` and runs with ``python -m``:

- ``pre_tool_use``: allow/block decision before a tool runs
- ``user_messages``: keyword dispatch on submitted prompts
- ``post_tool_use``: progress sync after a tool ran
- ``session_start``: state summary for a new session
"""
