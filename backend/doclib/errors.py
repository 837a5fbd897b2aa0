"""Exceptions raised by the data access core and the backend gateways."""


class LibraryError(Exception):
    """Base class for document library errors."""


class GatewayError(LibraryError):
    """The backend gateway rejected a request (constraint violation, bad column, ...)."""


class BackendUnavailable(GatewayError):
    """The backend service could not be reached or failed while serving a request."""


class NotFound(LibraryError):
    """A point lookup matched no row."""

    def __init__(self, resource: str, resource_id: object):
        super().__init__(f"{resource} not found: {resource_id}")
        self.resource = resource
        self.resource_id = resource_id


class FileTooLarge(LibraryError):
    """A payload exceeds the configured maximum file size."""

    def __init__(self, size: int, max_size: int):
        super().__init__(f"File size exceeds {max_size / 1024 / 1024:g}MB limit")
        self.size = size
        self.max_size = max_size


class ImageDecodeError(LibraryError):
    """An image payload could not be decoded."""


class InvalidPayload(LibraryError, ValueError):
    """A file payload is not valid base64."""


class AuthFailed(LibraryError):
    """
    Credentials were rejected.

    Returned as the error value of a sign-in response, never raised by the
    data service: login rejections surface as ``LoginResult(success=False)``.
    """
