"""Exceptions raised while serving a drop request.

Each request-scoped error maps to one fixed status line; the driver and the
responder turn them into responses whose bodies never include details.
"""


class PostboxError(Exception):
    status_code = 500
    reason = "Internal Server Error"


class StorageError(PostboxError):
    """Creating the scramble directory or writing the file failed."""


class StorageConflictError(StorageError):
    """The scramble directory for this name already exists."""


class UnsafeNameError(PostboxError):
    """The filename would not land directly inside its scramble directory."""
    status_code = 400
    reason = "Bad Request"


class BodyTooLargeError(PostboxError):
    status_code = 413
    reason = "Payload Too Large"

    def __init__(self, limit: int):
        super().__init__(f"request body exceeds {limit} bytes")
        self.limit = limit


class PathEscapeError(RuntimeError):
    """A storage directory resolved outside the configured root.

    Never expected to happen with the fixed scramble alphabet; it is a broken
    invariant, not a user error, and is not a PostboxError.
    """
