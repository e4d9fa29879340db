"""Data passed between the command generation stages."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

PipelineStage = Literal[
    "idle",
    "requesting",
    "retrying",
    "extracting",
    "normalizing",
    "validating",
    "done",
    "failed",
]


@dataclass(frozen=True, slots=True)
class GenerationRequest:
    """A single user request plus the directory it should run in."""

    user_input: str
    working_directory: str


@dataclass(frozen=True, slots=True)
class RawCompletion:
    """Decoded response body returned by the completion endpoint."""

    payload: dict[str, object]
    body_bytes: int = 0
    attempts: int = 1
    usage: dict[str, object] = field(default_factory=dict)

    @classmethod
    def from_payload(
        cls,
        payload: dict[str, object],
        *,
        body_bytes: int = 0,
        attempts: int = 1,
    ) -> RawCompletion:
        usage = payload.get("usage")
        return cls(
            payload=payload,
            body_bytes=body_bytes,
            attempts=attempts,
            usage=dict(usage) if isinstance(usage, dict) else {},
        )
