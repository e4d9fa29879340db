"""Command-line interface for termassist."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import cast

from . import history
from .command.generator import CommandGenerator
from .config import AppConfig
from .errors import AIError
from .llm.client import CompletionClient
from .shell import CommandResult, create_shell_adapter

VERSION = "1.0.0"
LOGGER = logging.getLogger(__name__)


class CLIArgs(argparse.Namespace):
    query: list[str]
    working_directory: str | None
    dry_run: bool
    confirm: bool | None
    verbose: bool


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ta", description="AI-powered terminal assistant")
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    parser.add_argument(
        "--cwd",
        dest="working_directory",
        help=(
            "Directory the command is generated for and executed in. "
            "Takes precedence over config/env cwd values."
        ),
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Generate and print the command without executing it.",
    )
    confirm_group = parser.add_mutually_exclusive_group()
    confirm_group.add_argument(
        "--confirm",
        dest="confirm",
        action="store_const",
        const=True,
        default=None,
        help="Ask before executing the generated command.",
    )
    confirm_group.add_argument(
        "-y",
        "--yes",
        dest="confirm",
        action="store_const",
        const=False,
        help="Execute without asking, even if the config enables confirmation.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    parser.add_argument("query", nargs="*", help="What you want to do")
    return parser


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = cast(CLIArgs, parser.parse_args(argv))
    configure_logging(args.verbose)
    config = AppConfig.from_env()

    query = " ".join(args.query).strip() or _ask("Request: ")
    if not query:
        print("No request provided.")
        return 1

    configured_working_directory = (
        args.working_directory if args.working_directory is not None else config.working_directory
    )
    working_directory: str | None = None
    if configured_working_directory is not None:
        resolved_working_directory = Path(configured_working_directory).expanduser().resolve()
        if not resolved_working_directory.exists() or not resolved_working_directory.is_dir():
            print(f"Invalid configured cwd directory: {configured_working_directory}")
            return 1
        working_directory = str(resolved_working_directory)

    adapter = create_shell_adapter(config.shell)
    client = CompletionClient(
        api_url=config.api_url,
        timeout=config.timeout_seconds,
        max_attempts=config.max_attempts,
        retry_delay=config.retry_delay_seconds,
    )
    generator = CommandGenerator(client=client, working_directory=working_directory)

    def record(
        *,
        command: str | None = None,
        error: AIError | None = None,
        result: CommandResult | None = None,
        dry_run: bool = False,
    ) -> None:
        if not config.history_enabled:
            return
        entry = history.build_entry(
            request=query,
            working_directory=working_directory,
            shell=adapter.name,
            command=command,
            error=error,
            result=result,
            dry_run=dry_run,
        )
        history.append_entry(config.log_dir, entry)

    print("Generating command...")
    try:
        command = generator.generate_command(query)
    except AIError as exc:
        print(f"Error [{exc.code}]: {exc.message}", file=sys.stderr)
        record(error=exc)
        return 1

    print(f"Command: {command}")

    if args.dry_run:
        print("Dry run: command not executed.")
        record(command=command, dry_run=True)
        return 0

    confirm = config.confirm_before_execute if args.confirm is None else args.confirm
    if confirm and not _confirm_execution():
        print("Cancelled.")
        record(command=command)
        return 0

    LOGGER.debug("shell_adapter_selected", extra={"shell": adapter.name})
    print("Executing...")
    result = adapter.execute(
        command,
        cwd=working_directory,
        timeout=config.command_timeout_seconds,
    )
    record(command=command, result=result)
    return _report_result(result)


def _ask(prompt: str) -> str:
    """Read one line from the user; a closed stdin reads as an empty answer."""
    try:
        return input(prompt).strip()
    except EOFError:
        print()
        return ""


def _confirm_execution() -> bool:
    return _ask("Execute this command? (y/N): ").lower() in {"y", "yes"}


def _report_result(result: CommandResult) -> int:
    if result.success:
        print("Output:")
        print(result.output.rstrip() or "(No output)")
        return 0
    print(f"Error: {result.error}")
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
