from typing import Optional


class PhotoshootError(Exception):
    """Base class for every error raised by the engine."""


class ValidationError(PhotoshootError, ValueError):
    """A required asset, description or selection is missing. Never retried."""


class MalformedInputError(ValidationError):
    """An image field is not a `data:<mime>;base64,<payload>` URL."""


class TransientBackendError(PhotoshootError, ConnectionError):
    """The backend is busy or rate-limited. Retried by the shared policy."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class BackendError(PhotoshootError, RuntimeError):
    """The backend rejected the request or returned an unusable result."""


class UnsupportedOperationError(PhotoshootError, RuntimeError):
    """The operation is not available in the active mode or selection."""


class GenerationCancelled(PhotoshootError):
    """
    Raised at a suspension point once the caller's token is cancelled.
    Workflows swallow it and leave the error field untouched.
    """
