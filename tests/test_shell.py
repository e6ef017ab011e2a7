"""
Tests for scotty.shell — shell name parsing and script interpolation.
"""

import sys

import pytest

from scotty.errors import UnknownShell
from scotty.shell import (
    BASH_INIT,
    PLACEHOLDER,
    ZSH_INIT,
    Shell,
    init_script,
    interpolate,
    scotty_command,
)


class TestShellParse:
    def test_lowercase(self):
        assert Shell.parse("zsh") is Shell.ZSH

    def test_mixed_case(self):
        assert Shell.parse("Zsh") is Shell.ZSH
        assert Shell.parse("BASH") is Shell.BASH

    def test_whitespace(self):
        assert Shell.parse("zsh ") is Shell.ZSH

    def test_unknown(self):
        with pytest.raises(UnknownShell) as exc:
            Shell.parse("foo")
        assert exc.value.name == "foo"
        assert "bash, zsh" in str(exc.value)


class TestInterpolate:
    def test_only_replaces_placeholder(self):
        script = "I am just a normal string"
        assert interpolate(script, ["/bin/scotty"]) == script

    def test_replaces_with_quoted_value(self):
        assert interpolate("__SCOTTY__ init zsh", ["/bin/scotty"]) == '"/bin/scotty" init zsh'

    def test_whitespace_in_path(self):
        result = interpolate("__SCOTTY__ add", ["/opt/my tools/scotty"])
        assert result == '"/opt/my tools/scotty" add'

    def test_multiple_words(self):
        result = interpolate("__SCOTTY__ list", ["/usr/bin/python3", "-m", "scotty.cli"])
        assert result == '"/usr/bin/python3" "-m" "scotty.cli" list'

    def test_escapes_shell_specials(self):
        result = interpolate("__SCOTTY__", ['/odd/$HOME/"q"/`x`'])
        assert result == '"/odd/\\$HOME/\\"q\\"/\\`x\\`"'

    def test_multiline(self):
        script = "echo hello\necho __SCOTTY__"
        assert interpolate(script, ["/bin/scotty"]) == 'echo hello\necho "/bin/scotty"'


class TestInitScript:
    @pytest.mark.parametrize("shell", list(Shell))
    def test_no_placeholder_left(self, shell):
        script = init_script(shell, ["/bin/scotty"])
        assert PLACEHOLDER not in script
        assert '"/bin/scotty" add "$(pwd)"' in script
        assert '"/bin/scotty" search --all' in script

    def test_bash_hooks_prompt_command(self):
        assert "PROMPT_COMMAND" in BASH_INIT
        assert "complete -F _scotty s" in BASH_INIT

    def test_zsh_hooks_chpwd(self):
        assert "chpwd_functions+=(scotty_chpwd)" in ZSH_INIT
        assert "compdef _scotty s" in ZSH_INIT

    def test_default_command_under_python_m(self, monkeypatch):
        monkeypatch.setattr(sys, "argv", ["/site-packages/scotty/cli.py", "init", "zsh"])
        assert list(scotty_command()) == [sys.executable, "-m", "scotty.cli"]

    def test_default_command_console_script(self, monkeypatch):
        monkeypatch.setattr(sys, "argv", ["/usr/local/bin/scotty", "init", "zsh"])
        assert list(scotty_command()) == ["/usr/local/bin/scotty"]
