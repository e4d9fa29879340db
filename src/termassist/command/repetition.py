"""Collapse a command the model echoed twice with no separator."""

from __future__ import annotations


def collapse_repetition(candidate: str) -> str:
    """Return the first half when ``candidate`` is exactly two equal halves."""
    length = len(candidate)
    if length % 2:
        return candidate
    half = length // 2
    first_half = candidate[:half]
    if first_half == candidate[half:]:
        return first_half
    return candidate
