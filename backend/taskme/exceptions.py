"""Domain exceptions.

Services raise these; the API layer renders them as localized JSON
errors (see ``taskme.main``). Each carries a catalog key rather than a
ready-made message so the text can follow the caller's locale.
"""

from typing import Any

from taskme.i18n import translate


class TaskMeError(Exception):
    """Base exception for user-facing errors."""

    status_code: int = 400
    code: str = "TASKME_ERROR"

    def __init__(self, message_key: str = "internal_error", **params: Any):
        self.message_key = message_key
        self.params = params
        super().__init__(message_key)

    def localized(self, locale: str | None = None) -> str:
        """Render the human-readable message in the requested locale."""
        return translate(self.message_key, locale, **self.params)


class AuthenticationError(TaskMeError):
    """Missing or invalid credentials."""

    status_code = 401
    code = "NOT_AUTHENTICATED"


class PermissionDeniedError(TaskMeError):
    """Acting user is not the owner/participant of the resource."""

    status_code = 403
    code = "PERMISSION_DENIED"


class NotFoundError(TaskMeError):
    """Referenced task, message, user or notification does not exist."""

    status_code = 404
    code = "NOT_FOUND"


class ConflictError(TaskMeError):
    """The write collides with existing state (e.g. e-mail taken)."""

    status_code = 409
    code = "CONFLICT"


class ValidationError(TaskMeError):
    """Input rejected before any write happened."""

    status_code = 422
    code = "VALIDATION_ERROR"


class PushTokenMissingError(TaskMeError):
    """Recipient never registered a push token."""

    status_code = 404
    code = "PUSH_TOKEN_MISSING"

    def __init__(self, message_key: str = "push_token_missing", **params: Any):
        super().__init__(message_key, **params)


class PushDeliveryError(TaskMeError):
    """The push gateway rejected the message or could not be reached."""

    status_code = 502
    code = "PUSH_FAILED"

    def __init__(
        self,
        message_key: str = "push_failed",
        status: int | None = None,
        reason: str | None = None,
    ):
        self.status = status
        self.reason = reason
        super().__init__(message_key)


class TaskStreamError(TaskMeError):
    """A live task query could not produce its initial snapshot."""

    status_code = 503
    code = "TASKS_UNAVAILABLE"

    def __init__(self, source: str, message_key: str = "tasks_unavailable"):
        self.source = source
        super().__init__(message_key)
