"""GitLab API exceptions."""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Closed set of failure classes surfaced to tool callers."""

    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"
    VALIDATION_FAILED = "validation_failed"
    RATE_LIMITED = "rate_limited"
    SERVER_ERROR = "server_error"
    UNEXPECTED_STATUS = "unexpected_status"
    TRANSPORT_FAILURE = "transport_failure"
    WRITE_DISABLED = "write_disabled"


class GitLabError(Exception):
    """Base exception for GitLab operations."""

    kind: ErrorKind = ErrorKind.UNEXPECTED_STATUS


class GitLabValidationError(GitLabError):
    """Raised when input is rejected, locally or by GitLab (400/422).

    ``rule`` names the local check that failed; it is ``None`` for
    rejections reported by GitLab itself, which carry ``status_code``.
    """

    kind = ErrorKind.VALIDATION_FAILED

    def __init__(
        self,
        reason: str,
        *,
        rule: str | None = None,
        status_code: int | None = None,
        body: str = "",
    ) -> None:
        self.reason = reason
        self.rule = rule
        self.status_code = status_code
        self.body = body
        super().__init__(reason)


class GitLabApiError(GitLabError):
    """Raised when the GitLab API returns a non-success response."""

    def __init__(self, status_code: int, status_text: str, body: str = "") -> None:
        self.status_code = status_code
        self.status_text = status_text
        self.body = body
        super().__init__(f"GitLab API Error {status_code} {status_text}: {body}")


class GitLabAuthError(GitLabApiError):
    """Raised on 401/403 authentication failures."""

    kind = ErrorKind.UNAUTHORIZED

    def __init__(self, status_code: int, body: str = "") -> None:
        status_text = "Unauthorized" if status_code == 401 else "Forbidden"
        super().__init__(status_code, status_text, body)


class GitLabNotFoundError(GitLabApiError):
    """Raised on 404 responses."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, body: str = "") -> None:
        super().__init__(404, "Not Found", body)


class GitLabRateLimitError(GitLabApiError):
    """Raised on 429 responses. Never retried here."""

    kind = ErrorKind.RATE_LIMITED

    def __init__(self, body: str = "", retry_after: int | None = None) -> None:
        self.retry_after = retry_after
        super().__init__(429, "Too Many Requests", body)


class GitLabServerError(GitLabApiError):
    """Raised on 5xx responses."""

    kind = ErrorKind.SERVER_ERROR


class GitLabTransportError(GitLabError):
    """Raised when no usable response was received.

    Covers connection, TLS and timeout failures, cancelled requests and
    successful responses whose body is not the JSON GitLab promises.
    ``write_may_have_applied`` is set for writes that may have reached
    GitLab before failing.
    """

    kind = ErrorKind.TRANSPORT_FAILURE

    def __init__(
        self,
        message: str,
        cause: BaseException | None = None,
        *,
        write_may_have_applied: bool = False,
    ) -> None:
        self.cause = cause
        self.write_may_have_applied = write_may_have_applied
        if cause is not None:
            message = f"{message}: {cause!r}"
        super().__init__(message)


class GitLabWriteDisabledError(GitLabError):
    """Raised when a write operation is attempted in read-only mode."""

    kind = ErrorKind.WRITE_DISABLED

    def __init__(self) -> None:
        super().__init__("Write operations are disabled (GITLAB_READ_ONLY=true)")


def error_for_status(
    status_code: int,
    body: str = "",
    *,
    message: str = "",
    status_text: str = "",
    retry_after: int | None = None,
) -> GitLabError:
    """Map a non-success HTTP status onto the matching exception.

    *message* is GitLab's own error text; it becomes the reason of a
    validation failure unchanged.
    """
    if status_code in (401, 403):
        return GitLabAuthError(status_code, body)
    if status_code == 404:
        return GitLabNotFoundError(body)
    if status_code in (400, 422):
        reason = message or status_text or f"GitLab rejected the request ({status_code})"
        return GitLabValidationError(reason, status_code=status_code, body=body)
    if status_code == 429:
        return GitLabRateLimitError(body, retry_after)
    if 500 <= status_code <= 599:
        return GitLabServerError(status_code, status_text, body)
    return GitLabApiError(status_code, status_text, body)
