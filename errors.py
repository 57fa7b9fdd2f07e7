"""Errors surfaced to API callers."""


class ApiError(Exception):
    """Base class for errors that map onto an HTTP status."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ApiError):
    """A required field is missing or malformed."""

    status_code = 400


class NotFoundError(ApiError):
    """A referenced id is absent from the catalog."""

    status_code = 404
