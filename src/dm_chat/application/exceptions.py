from __future__ import annotations


class AppError(Exception):
    """Base application error."""

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__(detail)


class ValidationError(AppError):
    """The request is well-formed but cannot be accepted as-is (400)."""


class NotFoundError(AppError):
    """A referenced user does not exist (404)."""


class UploadError(AppError):
    """The media host rejected the image or did not answer in time."""


class TransportError(AppError):
    """The message store or another backing service is unreachable."""
