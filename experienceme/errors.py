"""
Exceptions raised by the service layer and mapped to HTTP responses by the routes.
"""


class ValidationError(ValueError):
    """Input rejected before any platform call. The message is shown to the user."""


class ConflictError(Exception):
    """The same submission is already in flight, or the entry already exists."""


class NotFoundError(LookupError):
    """The row does not exist or is not visible to the caller."""


class ServiceUnavailableError(Exception):
    """A hosted service could not be reached. The message is static and shown to the user."""
