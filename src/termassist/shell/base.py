"""Base shell adapter primitives for running a validated command."""

from __future__ import annotations

import abc
import locale
import logging
import re
import subprocess
import time
from dataclasses import dataclass

LOGGER = logging.getLogger(__name__)

_SECRET_PATTERNS = [
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"(--?(?:password|token|secret|api[-_]?key)\s+)([^\s]+)",
        r"((?:password|token|secret|api[-_]?key)\s*=\s*)([^\s]+)",
        r"(-H\s+\"?authorization:\s*(?:bearer\s+)?)([^\s\"]+)",
    )
]


@dataclass(slots=True)
class CommandResult:
    """Result of a command execution."""

    command: str
    shell: str
    returncode: int
    stdout: str
    stderr: str
    timed_out: bool = False
    duration_seconds: float = 0.0
    executed: bool = True
    spawn_error: str | None = None

    @property
    def success(self) -> bool:
        return self.spawn_error is None and not self.timed_out and self.returncode == 0

    @property
    def output(self) -> str:
        if not self.success:
            return ""
        return self.stdout or self.stderr

    @property
    def error(self) -> str | None:
        if self.success:
            return None
        if self.spawn_error:
            return self.spawn_error
        if self.timed_out:
            return f"Command timed out: {self.command}"
        detail = self.stderr.strip()
        message = f"Command failed with exit code {self.returncode}: {self.command}"
        return f"{message}\n{detail}" if detail else message

    def to_dict(self) -> dict[str, object]:
        return {"success": self.success, "output": self.output, "error": self.error}


class ShellAdapter(abc.ABC):
    """Abstract adapter for shell-specific command execution."""

    @property
    @abc.abstractmethod
    def name(self) -> str:
        """Friendly shell adapter name."""

    @abc.abstractmethod
    def build_run_args(self, command: str) -> list[str]:
        """Return the argv that hands ``command`` to this shell."""

    def execute(
        self,
        command: str,
        *,
        cwd: str | None = None,
        timeout: float | None = None,
    ) -> CommandResult:
        """Execute a shell command and return a normalized result."""
        self.log_request(command, timeout=timeout)
        run_args = self.build_run_args(command)
        started = self.monotonic_now()
        try:
            process = subprocess.run(
                run_args,
                capture_output=True,
                cwd=cwd,
                timeout=timeout,
                check=False,
                text=False,
            )
            result = CommandResult(
                command=command,
                shell=self.name,
                returncode=process.returncode,
                stdout=normalize_output(process.stdout),
                stderr=normalize_output(process.stderr),
                duration_seconds=self.monotonic_now() - started,
            )
        except subprocess.TimeoutExpired as exc:
            result = CommandResult(
                command=command,
                shell=self.name,
                returncode=124,
                stdout=normalize_output(exc.stdout),
                stderr=normalize_output(exc.stderr),
                timed_out=True,
                duration_seconds=self.monotonic_now() - started,
            )
        except OSError as exc:
            if isinstance(exc, FileNotFoundError):
                spawn_error = f"{self.name} executable not found: {run_args[0]}"
            else:
                spawn_error = f"Failed to start {self.name}: {exc}"
            result = CommandResult(
                command=command,
                shell=self.name,
                returncode=127,
                stdout="",
                stderr=spawn_error,
                executed=False,
                duration_seconds=self.monotonic_now() - started,
                spawn_error=spawn_error,
            )

        self.log_result(result)
        return result

    def log_request(self, command: str, *, timeout: float | None) -> None:
        LOGGER.info(
            "command_request",
            extra={
                "shell": self.name,
                "command": self._sanitize_command(command),
                "timeout": timeout,
            },
        )

    def log_result(self, result: CommandResult) -> None:
        LOGGER.info(
            "command_result",
            extra={
                "shell": result.shell,
                "returncode": result.returncode,
                "timed_out": result.timed_out,
                "duration_seconds": round(result.duration_seconds, 4),
                "executed": result.executed,
                "stdout_length": len(result.stdout),
                "stderr_length": len(result.stderr),
            },
        )

    @staticmethod
    def monotonic_now() -> float:
        return time.monotonic()

    def _sanitize_command(self, command: str) -> str:
        sanitized = command
        for pattern in _SECRET_PATTERNS:
            sanitized = pattern.sub(r"\1***", sanitized)
        return sanitized


def normalize_output(payload: bytes | str | None) -> str:
    if payload is None:
        return ""
    if isinstance(payload, str):
        return payload

    for encoding in ("utf-8-sig", locale.getpreferredencoding(False), "cp1252"):
        try:
            return payload.decode(encoding)
        except (LookupError, UnicodeDecodeError):
            continue
    return payload.decode("utf-8", errors="replace")
