"""Exception hierarchy for commit message generation."""

from __future__ import annotations


class GenieError(Exception):
    """Base exception for all application-specific errors."""


class SchemaExhausted(GenieError):
    """Raised when a model never produced a schema-conformant reply."""

    def __init__(self, request_kind: str, attempts: int, last_error: str) -> None:
        self.request_kind = request_kind
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"No valid '{request_kind}' reply after {attempts} attempts: {last_error}"
        )


class Cancelled(GenieError):
    """Raised when a run is cancelled cooperatively."""

    def __init__(self, message: str = "Commit message generation was cancelled") -> None:
        super().__init__(message)


class UpstreamFailure(GenieError):
    """Raised when the model transport fails (network, auth, rate limit)."""

    def __init__(self, message: str, reason: str = "") -> None:
        self.reason = reason
        super().__init__(message)


class MalformedCommitMessage(GenieError):
    """Raised when the final message still violates the header rules."""

    def __init__(self, problems: list[str]) -> None:
        self.problems = list(problems)
        super().__init__("Generated commit message is malformed: " + "; ".join(problems))
