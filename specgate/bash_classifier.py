"""Read-only vs. write-like classification of shell commands.

Used by the gate while no work item is locked and strict discussion mode is
on. The classifier is fail-closed: a command is read-only only when every
segment of it is provably harmless according to the tables below.
"""
from __future__ import annotations

import os
import re
import shlex
from typing import Collection, FrozenSet, List, Optional, Sequence

READONLY_COMMANDS: FrozenSet[str] = frozenset({
    # File reading
    "cat", "less", "more", "head", "tail", "wc", "nl", "tac", "rev",
    # Search
    "grep", "egrep", "fgrep", "rg", "ripgrep", "ag", "ack",
    # Text processing
    "sort", "uniq", "cut", "paste", "join", "comm", "column",
    "tr", "expand", "unexpand", "fold", "fmt", "pr", "shuf", "tsort",
    # Comparison
    "diff", "cmp", "sdiff",
    # Checksums
    "md5sum", "sha1sum", "sha256sum", "sha512sum", "cksum", "sum",
    # Binary inspection
    "od", "hexdump", "xxd", "strings", "file", "readelf", "objdump", "nm",
    # File system inspection
    "ls", "dir", "vdir", "pwd", "which", "type", "whereis", "locate", "find",
    "basename", "dirname", "readlink", "realpath", "stat", "tree",
    # User and system info
    "whoami", "id", "groups", "users", "who", "w", "last", "lastlog",
    "hostname", "uname", "arch", "lsb_release",
    "date", "cal", "uptime", "df", "du", "free", "vmstat", "iostat",
    # Processes
    "ps", "pgrep", "pidof", "top", "htop", "lsof", "jobs", "pstree",
    # Network inspection
    "netstat", "ss", "ping", "traceroute", "tracepath", "nslookup", "dig", "host", "whois",
    # Environment
    "printenv", "env", "alias", "history",
    # Output
    "echo", "printf", "seq",
    # Tests
    "test", "[", "[[", "true", "false",
    # Calculation
    "bc", "dc", "expr", "factor",
    # Structured data and modern replacements
    "jq", "yq", "xmllint", "bat", "fd", "exa", "lsd", "tldr",
    # Argument-inspected below
    "git", "awk", "gawk", "mawk", "sed", "gsed", "xargs",
})

WRITE_COMMANDS: FrozenSet[str] = frozenset({
    # File operations
    "rm", "rmdir", "unlink", "shred",
    "mv", "rename", "cp", "install", "dd", "rsync",
    "mkdir", "mkfifo", "mknod", "mktemp", "touch", "truncate",
    # Permissions and links
    "chmod", "chown", "chgrp", "umask",
    "ln", "link", "symlink",
    "setfacl", "setfattr", "chattr",
    # System management
    "useradd", "userdel", "usermod", "groupadd", "groupdel",
    "passwd", "chpasswd", "systemctl", "service", "mount", "umount",
    # Package managers
    "apt", "apt-get", "dpkg", "snap", "yum", "dnf", "rpm", "brew",
    "pip", "pip3", "npm", "yarn", "gem", "cargo", "pnpm", "poetry", "uv",
    # Build tools
    "make", "cmake", "ninja", "meson",
    # Privilege, scheduling and signals
    "sudo", "doas", "su", "crontab", "at", "batch",
    "kill", "pkill", "killall",
    # File writers and archivers
    "tee", "patch", "tar", "zip", "unzip", "gzip", "gunzip",
})

GIT_WRITE_SUBCOMMANDS: FrozenSet[str] = frozenset({
    "add", "commit", "push", "pull", "fetch", "merge", "rebase", "cherry-pick", "revert",
    "reset", "checkout", "switch", "restore", "branch", "tag", "am",
    "stash", "apply", "pop", "clean", "rm", "mv", "gc", "prune",
    "submodule", "clone", "init", "config", "worktree", "update-ref",
})

PIP_READ_SUBCOMMANDS = frozenset({"show", "list", "search", "check", "freeze", "help"})
NODE_READ_SUBCOMMANDS = frozenset({"list", "ls", "view", "show", "search", "help"})

# Global git options that consume the following token
_GIT_OPTIONS_WITH_VALUE = frozenset({"-C", "-c", "--git-dir", "--work-tree", "--namespace"})
_XARGS_OPTIONS_WITH_VALUE = frozenset({"-I", "-i", "-n", "-P", "-L", "-l", "-d", "-s", "-E", "-e", "-a"})
_FIND_WRITE_ACTIONS = frozenset({"-delete", "-fprint", "-fprint0", "-fprintf", "-fls"})
_FIND_EXEC_ACTIONS = frozenset({"-exec", "-execdir", "-ok", "-okdir"})
# Wrappers that run another command, with their options that consume a value
_WRAPPERS = {
    "env": frozenset({"-u", "--unset", "-C", "--chdir", "-S", "--split-string"}),
    "time": frozenset({"-f", "--format", "-o", "--output"}),
    "nice": frozenset({"-n", "--adjustment"}),
    "nohup": frozenset(),
    "command": frozenset(),
    "timeout": frozenset({"-s", "--signal", "-k", "--kill-after"}),
}

_REDIRECTION = re.compile(r"&>|\d*>>?(?:&\d*-?)?|<<<|<<-?|<")
_SUBSTITUTION = re.compile(r"\$\(|`")
_ASSIGNMENT = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*=")


def has_redirection(command: str) -> bool:
    """True if any redirection operator occurs anywhere in ``command``."""
    return bool(_REDIRECTION.search(command))


def split_segments(command: str) -> List[str]:
    """Split on ``|``, ``||``, ``&&``, ``;``, ``&`` and newlines outside quotes."""
    segments: List[str] = []
    current: List[str] = []
    quote: Optional[str] = None
    i = 0
    while i < len(command):
        ch = command[i]
        if quote:
            current.append(ch)
            if ch == quote:
                quote = None
            elif ch == "\\" and quote == '"' and i + 1 < len(command):
                current.append(command[i + 1])
                i += 1
        elif ch == "\\" and i + 1 < len(command):
            current.extend((ch, command[i + 1]))
            i += 1
        elif ch in ("'", '"'):
            quote = ch
            current.append(ch)
        elif ch in "|&;\n":
            segments.append("".join(current).strip())
            current = []
            # Swallow the second character of || and &&
            if ch in "|&" and command[i + 1:i + 2] == ch:
                i += 1
        else:
            current.append(ch)
        i += 1
    segments.append("".join(current).strip())
    return [s for s in segments if s]


def _command_name(token: str) -> str:
    return os.path.basename(token).lower()


def _sed_in_place(args: Sequence[str]) -> bool:
    for arg in args:
        if arg == "--in-place" or arg.startswith("--in-place="):
            return True
        if arg.startswith("-") and not arg.startswith("--") and re.match(r"-[A-Za-z]*i", arg):
            return True
    return False


def _awk_writes(args: Sequence[str]) -> bool:
    script = " ".join(args)
    return any(marker in script for marker in ("print >", "printf >", "system("))


class _Classifier:
    def __init__(self, strict: bool, extra_read: Collection[str], extra_write: Collection[str]) -> None:
        self.strict = strict
        self.readonly = READONLY_COMMANDS | {c.lower() for c in extra_read}
        self.write = WRITE_COMMANDS | {c.lower() for c in extra_write}
        self.extra_write = {c.lower() for c in extra_write}

    def segment(self, segment: str) -> bool:
        try:
            parts = shlex.split(segment)
        except ValueError:
            # Unbalanced quotes
            return not self.strict
        return self.tokens(parts)

    def tokens(self, parts: Sequence[str]) -> bool:
        parts = list(parts)
        while parts and _ASSIGNMENT.match(parts[0]):
            parts.pop(0)
        if not parts:
            return True

        cmd = _command_name(parts[0])
        args = parts[1:]

        if cmd in self.extra_write:
            return False
        if cmd == "cd":
            return True
        if cmd in _WRAPPERS:
            return self._wrapped(cmd, args)
        if cmd in ("pip", "pip3"):
            return bool(args) and args[0].lower() in PIP_READ_SUBCOMMANDS
        if cmd in ("npm", "yarn", "pnpm"):
            return bool(args) and args[0].lower() in NODE_READ_SUBCOMMANDS
        if cmd in ("python", "python3"):
            return bool(args) and args[0] in ("-c", "-m")
        if cmd in self.write:
            return False
        if not self._arguments_safe(cmd, args):
            return False
        if self.strict and cmd not in self.readonly:
            return False
        return True

    def _wrapped(self, cmd: str, args: List[str]) -> bool:
        rest = list(args)
        while rest and rest[0].startswith("-"):
            option = rest.pop(0)
            if option in _WRAPPERS[cmd] and rest:
                rest.pop(0)
        if cmd == "env":
            while rest and _ASSIGNMENT.match(rest[0]):
                rest.pop(0)
        elif cmd == "timeout" and rest:
            rest.pop(0)
        if not rest:
            return cmd == "env" or not self.strict
        return self.tokens(rest)

    def _arguments_safe(self, cmd: str, args: List[str]) -> bool:
        if cmd in ("sed", "gsed"):
            return not _sed_in_place(args)
        if cmd in ("awk", "gawk", "mawk"):
            return not _awk_writes(args)
        if cmd == "find":
            return self._find_safe(args)
        if cmd == "xargs":
            return self._xargs_safe(args)
        if cmd == "git":
            return self._git_safe(args)
        return True

    def _find_safe(self, args: List[str]) -> bool:
        for i, arg in enumerate(args):
            if arg in _FIND_WRITE_ACTIONS:
                return False
            if arg in _FIND_EXEC_ACTIONS:
                if i + 1 >= len(args):
                    continue
                # Evaluate the executed command up to its terminator
                tail = []
                for token in args[i + 1:]:
                    if token in (";", "+"):
                        break
                    tail.append(token)
                target = _command_name(tail[0]) if tail else ""
                if target in self.write:
                    return False
                if not self.tokens(tail):
                    return False
        return True

    def _xargs_safe(self, args: List[str]) -> bool:
        if any(_command_name(a) in self.write for a in args):
            return False
        rest = list(args)
        while rest and rest[0].startswith("-"):
            option = rest.pop(0)
            if option in _XARGS_OPTIONS_WITH_VALUE and rest:
                rest.pop(0)
        if not rest:
            # xargs defaults to echo
            return True
        return self.tokens(rest)

    def _git_safe(self, args: List[str]) -> bool:
        rest = list(args)
        while rest and rest[0].startswith("-"):
            option = rest.pop(0)
            if option in _GIT_OPTIONS_WITH_VALUE and rest:
                rest.pop(0)
        if not rest:
            return True
        return rest[0].lower() not in GIT_WRITE_SUBCOMMANDS


def is_read_only(
    command: str,
    strict: bool = True,
    *,
    extra_read: Collection[str] = (),
    extra_write: Collection[str] = (),
) -> bool:
    """Return True if ``command`` cannot mutate files or external state.

    Args:
        command: Shell command line as the agent would run it
        strict: Treat commands missing from the read-only allow-list as write-like
        extra_read: Additional command names to allow
        extra_write: Additional command names that always veto

    Returns:
        True for read-only, False for write-like
    """
    s = (command or "").strip()
    if not s:
        return True

    if has_redirection(s):
        return False
    if strict and _SUBSTITUTION.search(s):
        return False

    classifier = _Classifier(strict, extra_read, extra_write)
    return all(classifier.segment(segment) for segment in split_segments(s))


__all__ = [
    "READONLY_COMMANDS",
    "WRITE_COMMANDS",
    "GIT_WRITE_SUBCOMMANDS",
    "has_redirection",
    "split_segments",
    "is_read_only",
]
