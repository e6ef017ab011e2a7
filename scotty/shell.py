"""
Shell integration scripts.

``scotty init <shell>`` prints a script to be sourced from the shell's rc
file. It registers a directory-change hook that records every visited
directory, an ``s`` function that jumps to the best match, and completion
over all matches. ``__SCOTTY__`` in a script is replaced by the quoted
command that runs this installation.
"""

from __future__ import annotations

import enum
import logging
import os
import shlex
import sys
from typing import Optional, Sequence

from scotty.errors import UnknownShell

logger = logging.getLogger(__name__)

PLACEHOLDER = "__SCOTTY__"

BASH_INIT = """\
# chpwd hook
scotty_chpwd() {
    __SCOTTY__ add "$(pwd)" > /dev/null
}

case $PROMPT_COMMAND in
    *scotty*)
        ;;
    *)
        PROMPT_COMMAND="${PROMPT_COMMAND:+$(echo "${PROMPT_COMMAND}" | awk '{gsub(/; *$/,"")}1') ; }scotty_chpwd"
        ;;
esac

s() {
    local output="$(__SCOTTY__ search "${1}")"
    if [[ -d "${output}" ]]; then
        if [[ -t 1 ]]; then # Use color if stdout is a terminal
            echo -e "\\033[31m${output}\\033[0m"
        else
            echo "${output}"
        fi
        cd "${output}"
    else
        false
    fi
}

_scotty() {
    local OLDIFS=$IFS
    IFS=$'\\n'
    COMPREPLY=( $(__SCOTTY__ search --all "$2") )
    IFS=$OLDIFS
}

complete -F _scotty s
"""

ZSH_INIT = """\
# chpwd hook
scotty_chpwd() {
    __SCOTTY__ add "$(pwd)" > /dev/null
}

typeset -gaU chpwd_functions
chpwd_functions+=(scotty_chpwd)

s() {
    local output="$(__SCOTTY__ search "${1}")"
    if [[ -d "${output}" ]]; then
        if [[ -t 1 ]]; then # Use color if stdout is a terminal
            echo -e "\\033[31m${output}\\033[0m"
        else
            echo "${output}"
        fi
        cd "${output}"
    else
        false
    fi
}

_scotty() {
    if (( CURRENT == 2 )); then
        local -a results
        results=("${(@f)$(__SCOTTY__ search --all "${words[2]}")}")
        compadd -U -Q -- "${results[@]}"
    fi
}

compdef _scotty s
"""


class Shell(enum.Enum):
    BASH = "bash"
    ZSH = "zsh"

    @classmethod
    def parse(cls, name: str) -> Shell:
        """Parse a shell name, ignoring case and surrounding whitespace."""
        try:
            return cls(name.strip().lower())
        except ValueError:
            raise UnknownShell(name) from None


_SCRIPTS = {Shell.BASH: BASH_INIT, Shell.ZSH: ZSH_INIT}


def scotty_command() -> Sequence[str]:
    """argv that runs this installation of scotty."""
    argv0 = sys.argv[0] if sys.argv else ""
    if argv0 and os.path.basename(argv0) not in ("__main__.py", "cli.py", "-c"):
        return [os.path.abspath(argv0)]
    return [sys.executable, "-m", "scotty.cli"]


def _escape(word: str) -> str:
    """Escape the characters that stay special inside double quotes."""
    for ch in ("\\", '"', "$", "`"):
        word = word.replace(ch, "\\" + ch)
    return word


def interpolate(script: str, command: Sequence[str]) -> str:
    """Replace the placeholder with the double-quoted command words."""
    quoted = " ".join('"' + _escape(word) + '"' for word in command)
    return script.replace(PLACEHOLDER, quoted)


def init_script(shell: Shell, command: Optional[Sequence[str]] = None) -> str:
    """Bootstrap script for ``shell``."""
    command = list(command) if command is not None else list(scotty_command())
    logger.debug("Detected scotty command: %s", shlex.join(command))
    return interpolate(_SCRIPTS[shell], command)
