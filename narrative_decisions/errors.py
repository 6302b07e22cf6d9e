"""Error taxonomy for the decision service.

Every failure that leaves the service client is a DecisionServiceError with
one of three kinds:

    RATE_LIMITED      the local call budget is spent; retry after reset
    AI_SERVICE_ERROR  network, HTTP or response-parsing failure
    UNKNOWN_ERROR     anything else; never retried
"""

from __future__ import annotations

from typing import Literal

ErrorKind = Literal["RATE_LIMITED", "AI_SERVICE_ERROR", "UNKNOWN_ERROR"]


class DecisionServiceError(RuntimeError):
    """Raised when a decision cannot be obtained from the remote service."""

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        *,
        retryable: bool = False,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.kind: ErrorKind = kind
        self.message = message
        self.retryable = retryable
        self.status_code = status_code

    def __repr__(self) -> str:
        return (
            f"DecisionServiceError(kind={self.kind!r}, message={self.message!r}, "
            f"retryable={self.retryable})"
        )


def rate_limited(message: str = "Rate limit exceeded. Try again later.") -> DecisionServiceError:
    return DecisionServiceError("RATE_LIMITED", message, retryable=True)


def service_error(
    message: str, *, retryable: bool = True, status_code: int | None = None
) -> DecisionServiceError:
    return DecisionServiceError(
        "AI_SERVICE_ERROR", message, retryable=retryable, status_code=status_code
    )


def as_service_error(exc: BaseException) -> DecisionServiceError:
    """Return exc unchanged if it is already typed, else wrap it as UNKNOWN_ERROR."""
    if isinstance(exc, DecisionServiceError):
        return exc
    return DecisionServiceError("UNKNOWN_ERROR", f"{type(exc).__name__}: {exc}")
