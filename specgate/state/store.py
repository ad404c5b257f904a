"""Persistence for the workflow state document.

``load`` never raises: a missing file means a fresh project and a corrupt file
is logged and treated the same way. ``save`` replaces the file atomically
(temp file in the same directory, fsync, ``os.replace``) and raises
``StateWriteError`` on any failure. Concurrent writers are last-writer-wins;
there is no lock.
"""
from __future__ import annotations

import copy
import json
import os
import tempfile
from pathlib import Path
from typing import Any, Mapping, Optional, Protocol, runtime_checkable

from specgate.errors import StateWriteError
from specgate.state.logger import log_event
from specgate.state.models import ActiveWorkItem, WorkflowState

COMPONENT = "state_store"


def _atomic_write_json(path: Path, payload: Mapping[str, Any]) -> None:
    """Write JSON payload to path atomically (temp file + rename)."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)

    fd, temp_path = tempfile.mkstemp(
        dir=str(target.parent),
        prefix=".tmp_state_",
        suffix=target.suffix or ".json",
        text=True,
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            json.dump(payload, handle, indent=2)
            handle.write("\n")
            handle.flush()
            os.fsync(handle.fileno())

        os.replace(temp_path, target)
    except Exception:
        try:
            os.unlink(temp_path)
        except OSError:
            pass
        raise


@runtime_checkable
class StateRepository(Protocol):
    """What the gate, dispatcher and sync need from state storage."""

    def load(self) -> WorkflowState: ...

    def save(self, state: WorkflowState) -> None: ...

    def upsert_active_work_item(self, item: ActiveWorkItem) -> WorkflowState: ...

    def remove_active_work_item(self, work_item_id: str) -> WorkflowState: ...


class _RepositoryMixin:
    """Read-modify-write operations shared by every repository."""

    def load(self) -> WorkflowState:  # pragma: no cover - overridden
        raise NotImplementedError

    def save(self, state: WorkflowState) -> None:  # pragma: no cover - overridden
        raise NotImplementedError

    def upsert_active_work_item(self, item: ActiveWorkItem) -> WorkflowState:
        state = self.load()
        state.upsert(item)
        self.save(state)
        return state

    def remove_active_work_item(self, work_item_id: str) -> WorkflowState:
        state = self.load()
        removed = state.remove(work_item_id)
        self.save(state)
        log_event(
            event="work_item_removed",
            component=COMPONENT,
            level="info" if removed else "debug",
            work_item_id=work_item_id,
            removed=removed,
        )
        return state


class JsonStateStore(_RepositoryMixin):
    """State repository backed by one pretty-printed JSON file."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def load(self) -> WorkflowState:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            log_event(event="state_missing", component=COMPONENT, level="debug", path=str(self.path))
            return WorkflowState()
        except OSError as exc:
            log_event(event="state_unreadable", component=COMPONENT, level="warn",
                      path=str(self.path), error=str(exc))
            return WorkflowState()

        try:
            data = json.loads(raw)
            if not isinstance(data, dict):
                raise ValueError("state document must be a JSON object")
            return WorkflowState.from_dict(data)
        except (json.JSONDecodeError, ValueError, TypeError) as exc:
            log_event(event="state_corrupt", component=COMPONENT, level="warn",
                      path=str(self.path), error=str(exc))
            return WorkflowState()

    def save(self, state: WorkflowState) -> None:
        try:
            _atomic_write_json(self.path, state.to_dict())
        except Exception as exc:
            log_event(event="state_write_failed", component=COMPONENT, level="error",
                      path=str(self.path), error=str(exc))
            raise StateWriteError(f"Failed to save state to {self.path}: {exc}") from exc


class MemoryStateStore(_RepositoryMixin):
    """In-process repository with the same copy semantics as the JSON store."""

    def __init__(self, state: Optional[WorkflowState] = None) -> None:
        self._data = (state or WorkflowState()).to_dict()
        self.saves = 0

    def load(self) -> WorkflowState:
        return WorkflowState.from_dict(copy.deepcopy(self._data))

    def save(self, state: WorkflowState) -> None:
        self._data = copy.deepcopy(state.to_dict())
        self.saves += 1


__all__ = ["StateRepository", "JsonStateStore", "MemoryStateStore"]
