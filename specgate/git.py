"""Thin synchronous wrapper around the ``git`` binary.

Every call is ``subprocess.run`` with an argument list (no shell), captured
output and a bounded timeout. Failures of any kind surface as ``GitError``;
callers decide whether that means fail-open or a user-visible message.
"""
from __future__ import annotations

import subprocess
from pathlib import Path
from typing import List, Optional, Tuple, Union

from specgate.errors import GitError
from specgate.state.logger import log_event

COMPONENT = "git"
UNKNOWN_BRANCH = "unknown"


class BranchCoordinator:
    """Branch queries and switches for one working tree."""

    def __init__(self, cwd: Union[str, Path], timeout: float = 5.0) -> None:
        self.cwd = Path(cwd)
        self.timeout = timeout

    def _run(self, *args: str) -> str:
        cmd = ["git", *args]
        try:
            proc = subprocess.run(
                cmd,
                cwd=str(self.cwd),
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except FileNotFoundError as exc:
            raise GitError("git is not installed or not on PATH") from exc
        except subprocess.TimeoutExpired as exc:
            log_event(event="git_timeout", component=COMPONENT, level="warn", args=list(args), timeout=self.timeout)
            raise GitError(f"git {' '.join(args)} timed out after {self.timeout}s") from exc
        except OSError as exc:
            raise GitError(f"git {' '.join(args)} could not be started: {exc}") from exc

        if proc.returncode != 0:
            detail = (proc.stderr or proc.stdout).strip()
            log_event(event="git_failed", component=COMPONENT, level="debug",
                      args=list(args), returncode=proc.returncode, stderr=detail)
            raise GitError(f"git {' '.join(args)} failed ({proc.returncode}): {detail}")
        return proc.stdout.strip()

    # ----- Branches -----

    def current_branch(self) -> str:
        """Name of the checked-out branch, or ``"unknown"`` when git cannot say."""
        try:
            branch = self._run("rev-parse", "--abbrev-ref", "HEAD")
            if branch and branch != "HEAD":
                return branch
        except GitError:
            pass
        # Unborn branches (no commits yet) fail rev-parse but have a symbolic ref
        try:
            return self._run("symbolic-ref", "--short", "HEAD") or UNKNOWN_BRANCH
        except GitError:
            return UNKNOWN_BRANCH

    def branch_exists(self, name: str) -> bool:
        try:
            self._run("rev-parse", "--verify", "--quiet", f"refs/heads/{name}")
        except GitError:
            return False
        return True

    def create_branch(self, name: str) -> None:
        """Create ``name`` from HEAD and switch to it."""
        self._run("checkout", "-b", name)
        log_event(event="branch_created", component=COMPONENT, branch=name)

    def checkout_branch(self, name: str) -> None:
        self._run("checkout", name)
        log_event(event="branch_checked_out", component=COMPONENT, branch=name)

    def main_branch_name(self) -> str:
        """Best guess at the integration branch: origin's HEAD, then main, then master."""
        try:
            ref = self._run("symbolic-ref", "--short", "refs/remotes/origin/HEAD")
            if ref:
                return ref.split("/", 1)[-1]
        except GitError:
            pass
        for candidate in ("main", "master"):
            if self.branch_exists(candidate):
                return candidate
        return "main"

    def is_detached_head(self) -> bool:
        try:
            self._run("symbolic-ref", "-q", "HEAD")
        except GitError:
            return True
        return False

    def short_commit_hash(self) -> Optional[str]:
        try:
            return self._run("rev-parse", "--short", "HEAD") or None
        except GitError:
            return None

    def upstream_tracking(self) -> Optional[Tuple[int, int]]:
        """``(ahead, behind)`` relative to the upstream branch, or None without one."""
        try:
            out = self._run("rev-list", "--left-right", "--count", "HEAD...@{upstream}")
        except GitError:
            return None
        parts = out.split()
        if len(parts) != 2:
            return None
        try:
            return int(parts[0]), int(parts[1])
        except ValueError:
            return None

    # ----- Changes -----

    def changed_files(self) -> List[str]:
        """Staged and unstaged paths, de-duplicated, in first-seen order."""
        staged = self._run("diff", "--name-only", "--cached")
        unstaged = self._run("diff", "--name-only")
        return _unique_lines(staged, unstaged)

    def changed_files_from_main(self) -> List[str]:
        """Paths changed on this branch since it forked from the main branch."""
        main = self.main_branch_name()
        try:
            committed = self._run("diff", "--name-only", f"{main}...HEAD")
        except GitError:
            committed = ""
        return _unique_lines(committed, *self._working_tree_changes())

    def _working_tree_changes(self) -> Tuple[str, str]:
        try:
            return self._run("diff", "--name-only", "--cached"), self._run("diff", "--name-only")
        except GitError:
            return "", ""


def _unique_lines(*chunks: str) -> List[str]:
    seen = set()
    result: List[str] = []
    for chunk in chunks:
        for line in chunk.splitlines():
            line = line.strip()
            if line and line not in seen:
                seen.add(line)
                result.append(line)
    return result


__all__ = ["BranchCoordinator", "UNKNOWN_BRANCH"]
