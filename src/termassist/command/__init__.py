"""Command generation pipeline."""

from .extract import extract_candidate
from .generator import CommandGenerator, generate_command
from .models import GenerationRequest, RawCompletion
from .normalize import KNOWN_COMMAND_FLAGS, normalize_command
from .policy import ADMIN_COMMANDS, requires_admin_privileges, validate_command
from .repetition import collapse_repetition

__all__ = [
    "ADMIN_COMMANDS",
    "KNOWN_COMMAND_FLAGS",
    "CommandGenerator",
    "GenerationRequest",
    "RawCompletion",
    "collapse_repetition",
    "extract_candidate",
    "generate_command",
    "normalize_command",
    "requires_admin_privileges",
    "validate_command",
]
