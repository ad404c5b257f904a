"""Table-driven tests for the read-only shell command classifier."""

from __future__ import annotations

import pytest

from specgate.bash_classifier import is_read_only, split_segments

READ_ONLY = [
    "",
    "   ",
    "ls -la",
    "git status",
    "echo hi | grep h",
    "git -C repo log --oneline",
    "git --no-pager diff",
    "git",
    "cat README.md | head -n 5 | wc -l",
    "cd /tmp && ls",
    "FOO=bar ls",
    "/usr/bin/ls -l",
    "env FOO=1 cat notes.txt",
    "env",
    "nice -n 5 ls",
    "command -v git",
    "find . -name '*.py'",
    "find . -exec grep -l foo {} +",
    "ls | xargs grep foo",
    "xargs -n 1 cat",
    "awk '{print $1}' data.csv",
    "sed -n '1,5p' notes.txt",
    "sed 's/i/x/' notes.txt",
    "pip list",
    "pip3 show requests",
    "npm ls",
    "pnpm view react",
    "python -c 'print(1)'",
    "python3 -m json.tool",
    "echo 'a | rm -rf x'",
    "jq .name package.json",
]

WRITE_LIKE = [
    "rm -rf /tmp/x",
    "git commit -m x",
    "git -C repo push",
    "git -c user.name=x commit",
    "sed -i 's/a/b/' f.txt",
    "sed -ni 's/a/b/p' f.txt",
    "sed --in-place 's/a/b/' f.txt",
    "echo hi > out.txt",
    "ls; rm x",
    "ls & rm x",
    "ls || rm x",
    "ls\nrm x",
    "ls | tee out.txt",
    "find . -delete",
    "find . -fprint out.txt",
    "find . -exec rm {} \\;",
    "find . -execdir touch {} +",
    "ls | xargs rm",
    "awk 'BEGIN{system(\"rm x\")}'",
    "pip install requests",
    "pip",
    "npm install",
    "python script.py",
    "python",
    "sudo ls",
    "timeout 5 rm x",
    "time make",
    "frobnicate --now",
    "echo $(rm x)",
    "echo `rm x`",
    "echo 'unterminated",
]


@pytest.mark.parametrize("command", READ_ONLY)
def test_read_only_commands(command):
    assert is_read_only(command) is True


@pytest.mark.parametrize("command", WRITE_LIKE)
def test_write_like_commands(command):
    assert is_read_only(command) is False


@pytest.mark.parametrize("operator", [">", ">>", "<<<", "2>&1", "&>", "<", "<<"])
@pytest.mark.parametrize("name", ["ls", "cat", "echo", "git"])
def test_redirection_always_vetoes(name, operator):
    assert is_read_only(f"{name} x {operator} y") is False
    assert is_read_only(f"{name} x {operator} y", strict=False) is False


class TestLenientMode:
    def test_unknown_commands_pass(self):
        assert is_read_only("frobnicate --now", strict=False) is True

    def test_write_set_still_vetoes(self):
        assert is_read_only("rm x", strict=False) is False
        assert is_read_only("git push", strict=False) is False

    def test_unbalanced_quotes_pass(self):
        assert is_read_only("echo 'unterminated", strict=False) is True


class TestConfiguredLists:
    def test_extra_read_extends_allow_list(self):
        assert is_read_only("mytool --report") is False
        assert is_read_only("mytool --report", extra_read=["mytool"]) is True

    def test_extra_write_always_vetoes(self):
        assert is_read_only("cat notes.txt", extra_write=["cat"]) is False
        assert is_read_only("ls | xargs deploy", strict=False, extra_write=["deploy"]) is False


def test_split_segments_respects_quotes():
    assert split_segments("echo 'a && b' && ls | wc -l") == ["echo 'a && b'", "ls", "wc -l"]
    assert split_segments('grep "x;y" f; pwd') == ['grep "x;y" f', "pwd"]
