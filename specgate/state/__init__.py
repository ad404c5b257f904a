"""Workflow state management for specgate."""
from specgate.state.logger import configure_log_path, event_timer, log_event
from specgate.state.models import ActiveWorkItem, Mode, Task, WorkflowState
from specgate.state.store import JsonStateStore, MemoryStateStore, StateRepository

__all__ = [
    "Mode",
    "Task",
    "ActiveWorkItem",
    "WorkflowState",
    "StateRepository",
    "JsonStateStore",
    "MemoryStateStore",
    "log_event",
    "event_timer",
    "configure_log_path",
]
