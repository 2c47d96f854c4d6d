"""Domain exceptions mapped to HTTP responses by the global error handler."""

from __future__ import annotations


class QuizifyError(Exception):
    """Base class for errors that carry their own HTTP status."""

    status_code: int = 500
    detail: str = "Internal server error"

    def __init__(self, detail: str | None = None) -> None:
        if detail is not None:
            self.detail = detail
        super().__init__(self.detail)


class UserIdentityRequiredError(QuizifyError):
    """Raised when an attempt is submitted without an authenticated user."""

    status_code = 400
    detail = "User ID is required"


class NotFoundError(QuizifyError):
    status_code = 404
    detail = "Not found"


class LevelUpdateConflictError(QuizifyError):
    """Compare-and-swap on the level record kept losing to concurrent writers."""

    status_code = 409
    detail = "Level record is being updated concurrently, retry the request"
