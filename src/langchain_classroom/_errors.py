from __future__ import annotations
from dataclasses import dataclass
from typing import Any

DEFAULT_ERROR_MESSAGE = "AI error"


class ClassroomError(RuntimeError):
    """Base error of the library."""


@dataclass(slots=True)
class RequestFailed(ClassroomError):
    """
    The endpoint answered with a non-2xx status before any streaming started.

    The serverless functions answer with a flat envelope:
    {"error": "rate limited"}

    The structured form {"error": {"code": "...", "message": "...", "details": {...}}}
    is accepted as well, so upstream provider errors keep their code.
    """
    status_code: int
    message: str = DEFAULT_ERROR_MESSAGE
    body: str | None = None

    error_code: str | None = None
    details: dict[str, Any] | None = None

    def __str__(self) -> str:
        parts = [f"RequestFailed(status_code={self.status_code}"]
        if self.error_code:
            parts.append(f", code={self.error_code!r}")
        parts.append(f", message={self.message!r}")
        if self.body:
            parts.append(f", body={len(self.body)} chars")
        parts.append(")")
        return "".join(parts)

    def to_dict(self) -> dict[str, Any]:
        """Error as a dict for structured logging."""
        return {
            "status_code": self.status_code,
            "message": self.message,
            "error_code": self.error_code,
            "details": self.details,
            "body": self.body,
        }

    @property
    def is_client_error(self) -> bool:
        return 400 <= self.status_code < 500

    @property
    def is_server_error(self) -> bool:
        return 500 <= self.status_code < 600

    @property
    def is_auth_error(self) -> bool:
        return self.status_code in (401, 403)

    @property
    def is_rate_limited(self) -> bool:
        return self.status_code == 429


@dataclass(slots=True)
class EmptyResponse(ClassroomError):
    """The endpoint answered 2xx but sent no body to decode."""
    status_code: int = 200

    def __str__(self) -> str:
        return f"EmptyResponse(status_code={self.status_code})"
