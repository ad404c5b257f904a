"""Checklist parsing and the heuristics built on top of it.

The affected-files extraction is best-effort. A path missing from the result
says nothing; callers only use the set as an allow-list.
"""
from __future__ import annotations

import hashlib
import posixpath
import re
from collections import Counter
from pathlib import Path
from typing import Iterable, List, Sequence, Set, Union

from specgate.errors import BaselineError
from specgate.state.models import Task

_CHECKBOX = re.compile(r"^\s*[-*+]\s+\[([ xX])\]\s+(.+)$")

_EXTENSIONS = (
    "py|pyi|ts|tsx|js|jsx|mjs|cjs|go|rs|java|kt|rb|php|c|h|cc|cpp|hpp|cs|swift|"
    "sh|sql|md|rst|txt|json|yaml|yml|toml|ini|cfg|css|scss|html"
)
_TOP_LEVEL_DIRS = "src|test|tests|lib|docs|scripts"

_AFFECTED_PATTERNS = (
    # `path/to/file.ext`
    re.compile(rf"`([^`\s]+\.(?:{_EXTENSIONS}))`"),
    # src/path/to/file.ext
    re.compile(rf"(?<![\w/.-])((?:{_TOP_LEVEL_DIRS})/[^\s`'\",;()]+\.(?:{_EXTENSIONS}))\b"),
    # any/path/file.ext
    re.compile(rf"(?<![\w/.-])([A-Za-z0-9_.-]+/[^\s`'\",;()]+\.(?:{_EXTENSIONS}))\b"),
)


def normalize_task_content(content: str) -> str:
    return content.strip().lower()


def parse_tasks(text: str) -> List[Task]:
    """Parse ``- [ ] text`` / ``- [x] text`` lines; every other line is skipped."""
    tasks: List[Task] = []
    for index, line in enumerate(text.splitlines(), start=1):
        match = _CHECKBOX.match(line)
        if not match:
            continue
        content = match.group(2).strip()
        if not content:
            continue
        tasks.append(Task(content=content, completed=match.group(1).lower() == "x", line=index))
    return tasks


def parse_tasks_file(path: Union[str, Path]) -> List[Task]:
    try:
        text = Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise BaselineError(f"Failed to read tasks document {path}: {exc}") from exc
    return parse_tasks(text)


def extract_affected_files(tasks: Iterable[Task]) -> Set[str]:
    found: Set[str] = set()
    for task in tasks:
        for pattern in _AFFECTED_PATTERNS:
            for match in pattern.finditer(task.content):
                found.add(normalize_path(match.group(1)))
    return found


def normalize_path(file_path: str) -> str:
    """Unify separators, resolve dot segments with ``normpath`` and drop the leading ``/``."""
    unified = file_path.replace("\\", "/")
    if not unified:
        return ""
    normalized = posixpath.normpath(unified)
    return "" if normalized == "." else normalized.lstrip("/")


def path_matches(candidate: str, target: str) -> bool:
    """True if ``candidate`` equals ``target`` or ends with ``/target``."""
    a, b = normalize_path(candidate), normalize_path(target)
    return bool(b) and (a == b or a.endswith("/" + b))


def is_file_affected(file_path: str, affected: Iterable[str]) -> bool:
    return any(path_matches(file_path, a) for a in affected)


def find_duplicate_tasks(tasks: Sequence[Task]) -> List[str]:
    """Task contents whose normalized form occurs more than once, in first-seen order."""
    counts = Counter(t.key for t in tasks)
    seen: Set[str] = set()
    duplicates: List[str] = []
    for task in tasks:
        if counts[task.key] > 1 and task.key not in seen:
            seen.add(task.key)
            duplicates.append(task.content)
    return duplicates


def count_completed(tasks: Sequence[Task]) -> tuple[int, int]:
    return sum(1 for t in tasks if t.completed), len(tasks)


def all_tasks_complete(tasks: Sequence[Task]) -> bool:
    return bool(tasks) and all(t.completed for t in tasks)


def content_hash(path: Union[str, Path]) -> str:
    """SHA-256 hex digest of a file's bytes."""
    try:
        data = Path(path).read_bytes()
    except OSError as exc:
        raise BaselineError(f"Failed to hash {path}: {exc}") from exc
    return hashlib.sha256(data).hexdigest()


__all__ = [
    "parse_tasks",
    "parse_tasks_file",
    "extract_affected_files",
    "normalize_path",
    "normalize_task_content",
    "path_matches",
    "is_file_affected",
    "find_duplicate_tasks",
    "count_completed",
    "all_tasks_complete",
    "content_hash",
]
