"""End-to-end command generation: request, sanitize, validate."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol

from termassist.command.extract import extract_candidate
from termassist.command.models import GenerationRequest, PipelineStage, RawCompletion
from termassist.command.normalize import normalize_command
from termassist.command.policy import validate_command
from termassist.command.repetition import collapse_repetition
from termassist.errors import AIError

LOGGER = logging.getLogger(__name__)

UNEXPECTED_ERROR_MESSAGE = "An unexpected error occurred during command generation"


class CompletionSource(Protocol):
    def complete(self, generation: GenerationRequest) -> RawCompletion: ...


class CommandGenerator:
    """Turns a natural-language request into one validated CMD command."""

    def __init__(
        self,
        *,
        client: CompletionSource,
        working_directory: str | None = None,
    ) -> None:
        self.client = client
        self.working_directory = working_directory

    def generate_command(self, user_input: str) -> str:
        stage: PipelineStage = "idle"
        try:
            if not user_input or not user_input.strip():
                raise AIError("User input is required", "INVALID_INPUT")

            generation = GenerationRequest(
                user_input=user_input.strip(),
                working_directory=self.working_directory or str(Path.cwd()),
            )

            stage = self._enter("requesting")
            completion = self.client.complete(generation)

            stage = self._enter("extracting")
            candidate = collapse_repetition(extract_candidate(completion.payload))

            stage = self._enter("normalizing")
            command = normalize_command(candidate)

            stage = self._enter("validating")
            validate_command(command)
        except AIError as exc:
            LOGGER.info(
                "command_pipeline_failed",
                extra={"stage": stage, "code": exc.code, "error": exc.message},
            )
            self._enter("failed")
            raise
        except Exception as exc:
            LOGGER.exception("command_pipeline_unexpected_error", extra={"stage": stage})
            self._enter("failed")
            raise AIError(UNEXPECTED_ERROR_MESSAGE, "UNEXPECTED_ERROR") from exc

        self._enter("done")
        return command

    @staticmethod
    def _enter(stage: PipelineStage) -> PipelineStage:
        LOGGER.debug("command_pipeline_stage", extra={"stage": stage})
        return stage


def generate_command(
    user_input: str,
    *,
    client: CompletionSource,
    working_directory: str | None = None,
) -> str:
    """Convenience wrapper around :class:`CommandGenerator`."""
    generator = CommandGenerator(client=client, working_directory=working_directory)
    return generator.generate_command(user_input)
