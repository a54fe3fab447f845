"""
Client-side error taxonomy.

Each error carries the message shown to the user; raw error text stays in
``str(exc)`` and the logs.
"""


class ARClientError(Exception):
    message = "Something went wrong. Please try again."

    def __init__(self, detail: str = None, message: str = None):
        super().__init__(detail or message or self.message)
        if message:
            self.message = message


class RetryExhaustedError(ARClientError):
    """Every attempt of a retried operation failed."""

    def __init__(self, attempts: int, last_error: BaseException):
        super().__init__(f"Gave up after {attempts} attempts: {last_error}")
        self.attempts = attempts
        self.last_error = last_error


class SceneLoadError(ARClientError):
    message = "Failed to load AR experience. Please check the URL and try again."


class SceneNotFoundError(SceneLoadError):
    message = "AR experience not found"


class RetryableStatusError(ARClientError):
    """Non-2xx response worth another attempt (408, 425, 429, 5xx)."""

    def __init__(self, status_code: int):
        super().__init__(f"Server responded with status {status_code}")
        self.status_code = status_code


class MalformedSceneError(ARClientError):
    """A 2xx response whose body is not a complete scene."""


class ShareError(ARClientError):
    message = "Failed to save AR experience. Please try again."


class InvalidTransitionError(ARClientError):
    """The composer cannot apply this action in its current phase."""


def user_message(exc: BaseException) -> str:
    """The message to display for an error; never the raw exception text."""
    if isinstance(exc, ARClientError):
        return exc.message
    return ARClientError.message
