"""Rewrite a candidate command into a canonical, deduplicated form."""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from types import MappingProxyType

from termassist.errors import AIError

LOGGER = logging.getLogger(__name__)

KNOWN_COMMAND_FLAGS: Mapping[str, tuple[str, ...]] = MappingProxyType(
    {
        "ipconfig": ("/all", "/release", "/renew", "/flushdns"),
        "dir": ("/a", "/b", "/s", "/w", "/p", "/o", "/ad"),
        "netstat": ("-a", "-n", "-b", "-o"),
        "ping": ("-t", "-a", "-n", "-l"),
        "curl": ("-s", "-o", "-L", "-I", "-H"),
    }
)

_URL_PATTERN = re.compile(r"(https?://\S+)")
_FLAG_PATTERN = re.compile(r"[/-][A-Za-z]+")
_DOUBLE_SLASH_PATTERN = re.compile(r"(?<!http:)(?<!https:)//")
_LEADING_INVALID_PATTERN = re.compile(r"^[^A-Za-z0-9]")


def _split_urls(command: str) -> list[str]:
    """Split into alternating text and URL parts; odd indexes are URLs."""
    return _URL_PATTERN.split(command)


def _outside_urls(command: str) -> str:
    return " ".join(_split_urls(command)[::2])


def _rewrite_separators(command: str) -> str:
    parts = _split_urls(command)
    for index in range(0, len(parts), 2):
        parts[index] = _DOUBLE_SLASH_PATTERN.sub(r"\\", parts[index])
    return "".join(parts)


def _match_flag(token: str, allowed: tuple[str, ...]) -> str | None:
    if token in allowed:
        return token
    lowered = token.lower()
    if lowered in allowed:
        return lowered
    return None


def _rebuild_known_command(base: str, command: str, allowed: tuple[str, ...]) -> str:
    # Only allow-listed flags survive; every other argument is dropped.
    flags: dict[str, None] = {}
    for token in _FLAG_PATTERN.findall(_outside_urls(command)):
        matched = _match_flag(token, allowed)
        if matched is not None:
            flags.setdefault(matched, None)
    if not flags:
        return base
    return f"{base} {' '.join(flags)}"


def _truncate_at_repeat(tokens: list[str]) -> str:
    base = tokens[0]
    kept = [base]
    for token in tokens[1:]:
        if token.lower() == base.lower():
            break
        kept.append(token)
    return " ".join(kept)


def normalize_command(candidate: str) -> str:
    """Return the canonical form of ``candidate``.

    Known commands are rebuilt from their allow-listed flags only. Other
    commands are cut at the first repeat of their own name. URLs are kept
    verbatim while ``//`` elsewhere becomes a Windows path separator.
    """
    command = candidate.strip()
    tokens = command.split()
    if not tokens:
        return ""

    base = tokens[0].lower()
    allowed = KNOWN_COMMAND_FLAGS.get(base)
    if allowed is not None:
        rebuilt = _rebuild_known_command(base, command, allowed)
    else:
        rebuilt = _truncate_at_repeat(tokens)

    normalized = _rewrite_separators(rebuilt)

    if _LEADING_INVALID_PATTERN.match(normalized):
        raise AIError("Invalid command structure", "INVALID_COMMAND")

    LOGGER.debug(
        "command_normalized",
        extra={
            "known_command": allowed is not None,
            "url_count": len(_split_urls(normalized)) // 2,
            "candidate_length": len(candidate),
            "normalized_length": len(normalized),
        },
    )
    return normalized
