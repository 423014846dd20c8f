"""
Error taxonomy for the messaging service.

Each error maps to one HTTP status in main.py:
- ValidationError    -> 422 (malformed input, caller can fix it)
- AuthorizationError -> 403 (action restricted to the recipient)
- NotFoundError      -> 404 (unknown user or message)
- StorageError       -> 503 (persistence failure, caller may retry)
"""


class MessagingError(Exception):
    """Base class for all messaging errors."""

    status_code = 500

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class ValidationError(MessagingError):
    status_code = 422


class AuthorizationError(MessagingError):
    status_code = 403


class NotFoundError(MessagingError):
    status_code = 404


class StorageError(MessagingError):
    status_code = 503
