"""
Error taxonomy for scheduling and review sessions.

Every error carries a machine-readable code, a retry hint and a short
message suitable for showing to a learner.
"""

import errno


class RecallError(Exception):
    """Base class for all expected failures."""

    code = "UNKNOWN_ERROR"
    default_user_message = "Something went wrong. Please try again."

    def __init__(
        self,
        message: str,
        *,
        retryable: bool = True,
        user_message: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.retryable = retryable
        self.user_message = user_message or self.default_user_message


class ValidationError(RecallError):
    """Malformed input, rejected before any state is touched."""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message, retryable=False, user_message=message)
        self.field = field


class CardNotFound(RecallError):
    code = "CARD_NOT_FOUND"
    default_user_message = "That card no longer exists."

    def __init__(self, card_id: str):
        super().__init__(f"Card with ID {card_id} not found", retryable=False)
        self.card_id = card_id


class InvalidSession(RecallError):
    """Operation needs an active session and there is none, or the reverse."""

    code = "INVALID_SESSION"
    default_user_message = "There is no review session in progress."

    def __init__(self, message: str = "No active review session"):
        super().__init__(message, retryable=False)


class NoCardsDue(RecallError):
    code = "NO_CARDS_DUE"
    default_user_message = "Nothing to review right now. Come back later!"

    def __init__(self, message: str = "No cards are due for review at this time"):
        super().__init__(message, retryable=False)


class StorageError(RecallError):
    """
    Persistence failure.

    Quota exhaustion is not retryable without the user freeing space;
    any other I/O failure may be retried as is.
    """

    code = "STORAGE_ERROR"

    def __init__(self, message: str, *, quota_exceeded: bool = False):
        super().__init__(
            message,
            retryable=not quota_exceeded,
            user_message=(
                "Storage quota exceeded. Please delete some cards."
                if quota_exceeded
                else "Failed to save data. Please try again."
            ),
        )
        self.quota_exceeded = quota_exceeded
        if quota_exceeded:
            self.code = "STORAGE_QUOTA_EXCEEDED"

    @classmethod
    def from_os_error(cls, action: str, exc: OSError) -> "StorageError":
        quota = exc.errno in (errno.ENOSPC, getattr(errno, "EDQUOT", errno.ENOSPC))
        return cls(f"Failed to {action}: {exc}", quota_exceeded=quota)


def humanize_error(exc: BaseException) -> str:
    """Short message for display; the UI decides how to show it."""
    if isinstance(exc, RecallError):
        return exc.user_message
    return "An unexpected error occurred. Please try again."
