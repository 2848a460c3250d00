"""Shell selection for PTY sessions."""

import os
from typing import List, Mapping, NamedTuple, Optional


class ShellSpec(NamedTuple):
    """A shell command line to try."""
    cmd: str
    args: List[str]
    label: str


FALLBACK_SHELLS = [
    ShellSpec("/bin/zsh", [], "/bin/zsh"),
    ShellSpec("/bin/bash", [], "/bin/bash"),
    ShellSpec("/bin/sh", [], "/bin/sh"),
    ShellSpec("/usr/bin/zsh", [], "/usr/bin/zsh"),
    ShellSpec("/usr/bin/bash", [], "/usr/bin/bash"),
    ShellSpec("/usr/bin/env", ["zsh"], "env zsh"),
    ShellSpec("/usr/bin/env", ["bash"], "env bash"),
    ShellSpec("/usr/bin/env", ["sh"], "env sh"),
]


def parse_shell_spec(text: Optional[str]) -> Optional[ShellSpec]:
    """Split a shell command line on whitespace; None for blank input."""
    if not text:
        return None
    trimmed = text.strip()
    if not trimmed:
        return None
    parts = trimmed.split()
    return ShellSpec(parts[0], parts[1:], trimmed)


def build_shell_candidates(
    shell_param: Optional[str],
    env: Optional[Mapping[str, str]] = None,
) -> List[ShellSpec]:
    """Shells to try in order: the requested one, $SHELL, then fallbacks.

    Duplicates (same command and arguments) are dropped.
    """
    env = os.environ if env is None else env
    candidates: List[ShellSpec] = []
    seen = set()

    requested = [parse_shell_spec(shell_param), parse_shell_spec(env.get("SHELL"))]
    for spec in requested + FALLBACK_SHELLS:
        if spec is None:
            continue
        key = (spec.cmd, tuple(spec.args))
        if key in seen:
            continue
        seen.add(key)
        candidates.append(spec)
    return candidates
