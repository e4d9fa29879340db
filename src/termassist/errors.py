"""Tagged failures raised by the command generation pipeline."""

from __future__ import annotations

from typing import Literal, get_args

ErrorCode = Literal[
    "INVALID_INPUT",
    "TIMEOUT",
    "API_ERROR",
    "MAX_RETRIES_EXCEEDED",
    "INVALID_RESPONSE",
    "EMPTY_COMMAND",
    "INVALID_COMMAND",
    "ADMIN_REQUIRED",
    "INVALID_REDIRECTION",
    "UNEXPECTED_ERROR",
]

ERROR_CODES: frozenset[str] = frozenset(get_args(ErrorCode))


class AIError(Exception):
    """Pipeline failure carrying a stable machine-readable code."""

    def __init__(self, message: str, code: ErrorCode) -> None:
        super().__init__(message)
        if code not in ERROR_CODES:
            msg = f"Unknown error code: {code}"
            raise ValueError(msg)
        self.message = message
        self.code: ErrorCode = code

    def __repr__(self) -> str:
        return f"AIError(code={self.code!r}, message={self.message!r})"

    def to_dict(self) -> dict[str, str]:
        return {"code": self.code, "message": self.message}
