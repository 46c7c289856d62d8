"""
Domain errors raised by the share page services.

Routes translate these into HTTP responses; services never raise HTTPException.
"""


class ShareError(Exception):
    """Base class for share page domain errors."""


class NotFoundError(ShareError):
    """The page, file or annotation does not exist."""


class ValidationError(ShareError):
    """Malformed input (empty content, bad file index, bad duration)."""


class PermissionDeniedError(ShareError):
    """The caller is identified but not allowed to perform the operation."""
