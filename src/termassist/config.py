"""Environment-backed application configuration."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path

from .llm.client import (
    DEFAULT_API_URL,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_RETRY_DELAY_SECONDS,
    DEFAULT_TIMEOUT_SECONDS,
)

DEFAULT_LOG_DIR = str(Path.home() / ".termassist" / "logs")


def _to_bool(value: str | None, default: bool = False) -> bool:
    """Convert common env var truthy/falsy values into booleans."""
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


@dataclass(slots=True)
class AppConfig:
    """Runtime settings loaded from environment variables."""

    api_url: str
    timeout_seconds: float
    max_attempts: int
    retry_delay_seconds: float
    shell: str
    working_directory: str | None
    confirm_before_execute: bool
    history_enabled: bool
    log_dir: str
    command_timeout_seconds: float | None

    @classmethod
    def from_env(cls) -> AppConfig:
        file_config = _load_preferred_file_config()
        api_from_file = file_config.get("api")
        api_config = api_from_file if isinstance(api_from_file, dict) else {}

        return cls(
            api_url=(
                os.getenv("TERMASSIST_API_URL")
                or _to_optional_string(api_config.get("url"))
                or _to_optional_string(file_config.get("api_url"))
                or DEFAULT_API_URL
            ),
            timeout_seconds=_to_positive_float(
                os.getenv("TERMASSIST_TIMEOUT_SECONDS") or api_config.get("timeout_seconds"),
                default=DEFAULT_TIMEOUT_SECONDS,
            ),
            max_attempts=_to_positive_int(
                os.getenv("TERMASSIST_MAX_ATTEMPTS") or api_config.get("max_attempts"),
                default=DEFAULT_MAX_ATTEMPTS,
            ),
            retry_delay_seconds=_to_positive_float(
                os.getenv("TERMASSIST_RETRY_DELAY_SECONDS")
                or api_config.get("retry_delay_seconds"),
                default=DEFAULT_RETRY_DELAY_SECONDS,
            ),
            shell=_resolve_shell(
                os.getenv("TERMASSIST_SHELL")
                or _to_optional_string(file_config.get("shell"))
            ),
            working_directory=(
                os.getenv("TERMASSIST_CWD")
                or _to_optional_string(file_config.get("cwd"))
            ),
            confirm_before_execute=_to_bool(
                os.getenv("TERMASSIST_CONFIRM_BEFORE_EXECUTE"),
                default=bool(file_config.get("confirm_before_execute", False)),
            ),
            history_enabled=_to_bool(
                os.getenv("TERMASSIST_HISTORY_ENABLED"),
                default=bool(file_config.get("history_enabled", True)),
            ),
            log_dir=(
                os.getenv("TERMASSIST_LOG_DIR")
                or _to_optional_string(file_config.get("log_dir"))
                or DEFAULT_LOG_DIR
            ),
            command_timeout_seconds=_to_optional_positive_float(
                os.getenv("TERMASSIST_COMMAND_TIMEOUT_SECONDS")
                or file_config.get("command_timeout_seconds")
            ),
        )


def _to_optional_string(value: object) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _load_file_config(path_value: str) -> dict[str, object]:
    path = Path(path_value)
    if not path.exists() or not path.is_file():
        return {}
    try:
        with path.open("r", encoding="utf-8") as fh:
            parsed = json.load(fh)
    except (OSError, json.JSONDecodeError):
        return {}
    if isinstance(parsed, dict):
        return parsed
    return {}


def _load_preferred_file_config() -> dict[str, object]:
    explicit_path = os.getenv("TERMASSIST_CONFIG_FILE")
    if explicit_path:
        return _load_file_config(explicit_path)

    shared_config = _load_file_config("termassist.config.json")
    local_override = _load_file_config("termassist.config.local.json")
    return _merge_dicts(shared_config, local_override)


def _merge_dicts(base: dict[str, object], override: dict[str, object]) -> dict[str, object]:
    merged: dict[str, object] = dict(base)
    for key, value in override.items():
        base_value = merged.get(key)
        if isinstance(base_value, dict) and isinstance(value, dict):
            merged[key] = _merge_dicts(base_value, value)
        else:
            merged[key] = value
    return merged


def _shell_value(value: str) -> str:
    normalized = value.strip().lower()
    aliases = {
        "cmd": "cmd",
        "cmd.exe": "cmd",
        "bash": "bash",
        "sh": "sh",
        "shell": "bash",
    }
    return aliases.get(normalized, _default_shell_for_platform())


def _default_shell_for_platform(os_name: str | None = None) -> str:
    platform_name = os.name if os_name is None else os_name
    return "cmd" if platform_name == "nt" else "bash"


def _resolve_shell(value: str | None) -> str:
    if value is None:
        return _default_shell_for_platform()
    return _shell_value(value)


def _to_positive_int(value: object, *, default: int) -> int:
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value if value > 0 else default
    if isinstance(value, str):
        try:
            parsed = int(value.strip())
        except ValueError:
            return default
        return parsed if parsed > 0 else default
    return default


def _to_positive_float(value: object, *, default: float) -> float:
    parsed = _to_optional_positive_float(value)
    return default if parsed is None else parsed


def _to_optional_positive_float(value: object) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if value > 0 else None
    if isinstance(value, str):
        try:
            parsed = float(value.strip())
        except ValueError:
            return None
        return parsed if parsed > 0 else None
    return None
