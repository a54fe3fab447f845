"""
Error taxonomy for the scene API.

Every exception carries the HTTP status and the user-facing message the API
maps it to; the raw error text is only ever sent in the ``error`` field.
"""


class ARShareError(Exception):
    status_code = 500
    message = "Internal server error"

    def __init__(self, detail: str = None, message: str = None):
        super().__init__(detail or message or self.message)
        if message:
            self.message = message
        self.detail = detail or self.message

    def to_response(self) -> dict:
        body = {"success": False, "message": self.message}
        if self.status_code >= 500:
            body["error"] = self.detail
        return body


class MissingImageError(ARShareError):
    """The request omitted the base or the overlay image."""
    status_code = 400
    message = "Missing required images"


class InvalidSceneError(ARShareError):
    """Transform values the API refuses to persist (non-finite, non-positive scale)."""
    status_code = 400
    message = "Invalid scene transform"


class UploadError(ARShareError):
    """The asset store rejected the image or could not be reached."""
    status_code = 500
    message = "Failed to create AR experience"


class DuplicateIdError(ARShareError):
    """A scene with this id already exists."""
    status_code = 500
    message = "Failed to create AR experience"


class SceneNotFoundError(ARShareError):
    status_code = 404
    message = "AR experience not found"
