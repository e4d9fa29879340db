"""HTTP client that asks the completion endpoint for a single CMD command."""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable
from http.client import HTTPException
from typing import Any
from urllib import request
from urllib.error import HTTPError, URLError

from termassist.command.models import GenerationRequest, RawCompletion
from termassist.errors import AIError

DEFAULT_API_URL = "https://terminal-ai-api.vercel.app/api"
DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_RETRY_DELAY_SECONDS = 1.0
_READ_CHUNK_BYTES = 8192

PROMPT_REQUIREMENTS = (
    "Provide ONLY ONE single command without explanation or repetition.",
    "Use relative paths where applicable.",
    "No PowerShell commands, only CMD-compatible commands.",
    "The command must be safe and executable in Windows CMD.",
)

LOGGER = logging.getLogger(__name__)

Sleeper = Callable[[float], None]


def build_prompt(user_input: str, working_directory: str) -> str:
    """Render the fixed instruction template for one request."""
    requirements = "\n".join(
        f"{index}. {line}" for index, line in enumerate(PROMPT_REQUIREMENTS, start=1)
    )
    return (
        "Task: Generate a valid Windows Command Prompt command.\n"
        f"Current directory: {working_directory}\n"
        f"User request: {user_input}\n\n"
        "Requirements:\n"
        f"{requirements}\n\n\n"
        "Your response:"
    )


class CompletionClient:
    """Small HTTP client with a per-attempt timeout and linear retry backoff."""

    def __init__(
        self,
        *,
        api_url: str = DEFAULT_API_URL,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        retry_delay: float = DEFAULT_RETRY_DELAY_SECONDS,
        sleep: Sleeper = time.sleep,
    ) -> None:
        self.api_url = api_url
        self.timeout = timeout
        self.max_attempts = max(1, max_attempts)
        self.retry_delay = retry_delay
        self._sleep = sleep

    def complete(self, generation: GenerationRequest) -> RawCompletion:
        body = json.dumps(
            {"prompt": build_prompt(generation.user_input, generation.working_directory)}
        ).encode("utf-8")
        LOGGER.debug(
            "llm_request_prepared",
            extra={
                "api_url": self.api_url,
                "payload_bytes": len(body),
                "timeout_seconds": self.timeout,
                "max_attempts": self.max_attempts,
            },
        )

        last_error: Exception | None = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                raw_body = self._post(body)
            except AIError as exc:
                if exc.code == "TIMEOUT":
                    raise
                last_error = exc
            except (URLError, OSError, HTTPException) as exc:
                LOGGER.error(
                    "llm_request_transport_error",
                    extra={
                        "api_url": self.api_url,
                        "attempt": attempt,
                        "reason": str(getattr(exc, "reason", exc)),
                    },
                )
                last_error = exc
            else:
                return self._decode(raw_body, attempts=attempt)

            if attempt == self.max_attempts:
                break

            delay = self.retry_delay * attempt
            LOGGER.warning(
                "llm_request_retry",
                extra={
                    "stage": "retrying",
                    "api_url": self.api_url,
                    "attempt": attempt,
                    "delay_seconds": delay,
                    "error": _describe(last_error),
                },
            )
            self._sleep(delay)

        raise AIError(
            f"Failed after {self.max_attempts} attempts: {_describe(last_error)}",
            "MAX_RETRIES_EXCEEDED",
        )

    def _post(self, body: bytes) -> bytes:
        req = request.Request(
            self.api_url,
            data=body,
            headers={"Content-Type": "application/json"},
            method="POST",
        )
        deadline = time.monotonic() + self.timeout
        try:
            with request.urlopen(req, timeout=self.timeout) as resp:  # noqa: S310
                status = getattr(resp, "status", 200)
                payload = _read_before(resp, deadline)
        except HTTPError as exc:
            body_text = self._read_error_body(exc)
            LOGGER.error(
                "llm_request_http_error",
                extra={
                    "api_url": self.api_url,
                    "http_status": exc.code,
                    "reason": exc.reason,
                    "response_excerpt": body_text[:500],
                },
            )
            raise AIError(f"API returned {exc.code}: {body_text}", "API_ERROR") from exc
        except URLError as exc:
            if isinstance(exc.reason, TimeoutError):
                raise self._timeout_error() from exc
            raise
        except TimeoutError as exc:
            raise self._timeout_error() from exc

        if not 200 <= status < 300:
            body_text = payload.decode("utf-8", errors="replace")
            raise AIError(f"API returned {status}: {body_text}", "API_ERROR")
        return payload

    def _timeout_error(self) -> AIError:
        LOGGER.error(
            "llm_request_timeout",
            extra={"api_url": self.api_url, "timeout_seconds": self.timeout},
        )
        return AIError("Request timed out", "TIMEOUT")

    def _decode(self, raw_body: bytes, *, attempts: int) -> RawCompletion:
        try:
            parsed = json.loads(raw_body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            LOGGER.error(
                "llm_response_parse_error",
                extra={"api_url": self.api_url, "error": str(exc)},
            )
            raise AIError(f"Response body is not valid JSON: {exc}", "INVALID_RESPONSE") from exc
        if not isinstance(parsed, dict):
            raise AIError("Response body is not a JSON object", "INVALID_RESPONSE")
        LOGGER.debug(
            "llm_response_received",
            extra={"api_url": self.api_url, "body_bytes": len(raw_body), "attempts": attempts},
        )
        return RawCompletion.from_payload(
            {str(key): value for key, value in parsed.items()},
            body_bytes=len(raw_body),
            attempts=attempts,
        )

    @staticmethod
    def _read_error_body(exc: HTTPError) -> str:
        if exc.fp is None:
            return ""
        try:
            raw = exc.read()
        except OSError:
            return ""
        if not raw:
            return ""
        return raw.decode("utf-8", errors="replace").strip()


def _read_before(resp: Any, deadline: float) -> bytes:
    """Read the response body, giving up once ``deadline`` has passed.

    The socket timeout only bounds each individual read, so a server that
    trickles bytes could otherwise hold one attempt open indefinitely.
    """
    read = getattr(resp, "read1", resp.read)
    chunks: list[bytes] = []
    while True:
        if time.monotonic() >= deadline:
            raise TimeoutError("response body not received within the request timeout")
        chunk = read(_READ_CHUNK_BYTES)
        if not chunk:
            return b"".join(chunks)
        chunks.append(chunk)


def _describe(error: Exception | None) -> str:
    if error is None:
        return "unknown error"
    if isinstance(error, AIError):
        return error.message
    if isinstance(error, URLError):
        return str(error.reason)
    return str(error) or error.__class__.__name__
