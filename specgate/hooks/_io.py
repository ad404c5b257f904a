"""Shared plumbing for the hook entry points: bounded stdin reads and wiring."""
from __future__ import annotations

import json
import sys
import threading
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, TextIO

from specgate.config import GateConfig, load_config
from specgate.git import BranchCoordinator
from specgate.paths import ProjectPaths
from specgate.state.logger import configure_log_path, log_event
from specgate.state.store import JsonStateStore
from specgate.workspace import Workspace


def read_hook_input(timeout: float, stream: Optional[TextIO] = None) -> str:
    """Read all of stdin, or return "" if the host has not closed it within ``timeout`` seconds."""
    stream = stream if stream is not None else sys.stdin
    chunks: List[str] = []

    def _reader() -> None:
        try:
            chunks.append(stream.read())
        except (OSError, ValueError):
            chunks.append("")

    thread = threading.Thread(target=_reader, name="specgate-stdin", daemon=True)
    thread.start()
    thread.join(timeout)
    if thread.is_alive():
        log_event(event="stdin_timeout", component="hooks", level="warn", timeout=timeout)
        return ""
    return chunks[0] if chunks else ""


def parse_json_object(raw: str) -> Optional[Dict[str, Any]]:
    """JSON object from ``raw``; None for blank, malformed or non-object input."""
    if not raw.strip():
        return None
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


def emit_json(payload: Dict[str, Any]) -> None:
    sys.stdout.write(json.dumps(payload))
    sys.stdout.write("\n")
    sys.stdout.flush()


@dataclass
class HookContext:
    """Collaborators for one hook invocation, rooted at the discovered project."""

    paths: ProjectPaths
    config: GateConfig
    store: JsonStateStore
    git: BranchCoordinator
    workspace: Workspace

    @classmethod
    def discover(cls) -> "HookContext":
        paths = ProjectPaths.discover()
        configure_log_path(paths.log_file)
        config = load_config(paths)
        return cls(
            paths=paths,
            config=config,
            store=JsonStateStore(paths.state_file),
            git=BranchCoordinator(paths.root, timeout=config.git_timeout),
            workspace=Workspace(paths),
        )


__all__ = ["HookContext", "read_hook_input", "parse_json_object", "emit_json"]
