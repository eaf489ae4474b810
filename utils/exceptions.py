"""Service exceptions shared by the screening and report pipelines."""
from typing import Optional


class ScreenerError(Exception):
    """Base error rendered as {success: false, message, error?}."""

    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None, detail: Optional[str] = None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.detail = detail
        super().__init__(message)


class InvalidRequestError(ScreenerError):
    status_code = 400


class InvalidImageError(ScreenerError):
    status_code = 400


class SessionNotFoundError(ScreenerError):
    status_code = 404

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__("Session not found or expired")


class ImageNotFoundError(ScreenerError):
    status_code = 404

    def __init__(self, key: str):
        self.key = key
        super().__init__("Image not found")


class ClassificationError(ScreenerError):
    pass


class StorageError(ScreenerError):
    pass


class VisionError(ScreenerError):
    pass


class WordPressError(ScreenerError):
    pass


class ReportError(ScreenerError):
    pass


class SecretError(ScreenerError):
    pass
