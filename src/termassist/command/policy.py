"""Safety checks applied to a normalized command before execution."""

from __future__ import annotations

import re

from termassist.errors import AIError

ADMIN_COMMANDS: frozenset[str] = frozenset(
    {
        "netsh",
        "net",
        "sc",
        "reg",
        "bcdedit",
        "diskpart",
        "dism",
        "sfc",
        "format",
        "chkdsk",
        "taskkill",
        "rd /s",
        "rmdir /s",
        "del /f",
        "takeown",
        "icacls",
        "attrib",
        "runas",
    }
)

_SEGMENT_SEPARATOR = re.compile(r"[&|]")
_REDIRECTION = re.compile(r"(?<!>)>")


def requires_admin_privileges(command: str) -> bool:
    """Return true when any denylisted command appears anywhere in ``command``.

    This is plain substring containment, so ``netstat`` and ``internet`` both
    match ``net``. False positives are accepted at this boundary.
    """
    lowered = command.lower()
    return any(admin_command in lowered for admin_command in ADMIN_COMMANDS)


def redirection_counts(command: str) -> list[int]:
    """Count output redirections per ``&``/``|`` delimited segment."""
    return [len(_REDIRECTION.findall(segment)) for segment in _SEGMENT_SEPARATOR.split(command)]


def validate_command(command: str) -> None:
    if not command:
        raise AIError("Command is empty after cleaning", "EMPTY_COMMAND")

    if requires_admin_privileges(command):
        raise AIError("This command requires administrator privileges", "ADMIN_REQUIRED")

    if any(count > 1 for count in redirection_counts(command)):
        raise AIError(
            "Too many output redirections in a single command segment",
            "INVALID_REDIRECTION",
        )
