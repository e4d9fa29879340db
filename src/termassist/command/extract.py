"""Pull one candidate command line out of a free-text completion."""

from __future__ import annotations

import re

from termassist.errors import AIError

_LINE_BREAK = re.compile(r"\r?\n")


def _first_message_content(payload: dict[str, object]) -> object:
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    first_choice = choices[0]
    if not isinstance(first_choice, dict):
        return None
    message = first_choice.get("message")
    if not isinstance(message, dict):
        return None
    return message.get("content")


def extract_candidate(payload: dict[str, object]) -> str:
    """Return the first non-blank line of ``choices[0].message.content``.

    Models sometimes prepend blank lines before the command, so leading
    empty lines are skipped rather than treated as an empty answer.
    """
    content = _first_message_content(payload)
    if not isinstance(content, str):
        raise AIError("Invalid or empty response from AI", "INVALID_RESPONSE")

    stripped = content.strip()
    if not stripped:
        raise AIError("AI returned an empty command", "EMPTY_COMMAND")

    for line in _LINE_BREAK.split(stripped):
        candidate = line.strip()
        if candidate:
            return candidate
    raise AIError("No valid command found in AI response", "INVALID_RESPONSE")
