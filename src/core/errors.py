from typing import Optional


class UploaderError(Exception):
    """Base class for every failure raised by the upload core."""


class ValidationError(UploaderError):
    """Bad input caught before anything is sent to the host."""


class TransportError(UploaderError):
    """Reading or encoding a local file failed."""

    def __init__(self, message: str, file_name: Optional[str] = None):
        super().__init__(message)
        self.file_name = file_name


class ReadTimeoutError(TransportError):
    def __init__(self, file_name: str, timeout: float):
        super().__init__(
            f'Reading "{file_name}" timed out after {timeout:.1f}s - file may be too large',
            file_name=file_name,
        )
        self.timeout = timeout


class RemoteApiError(UploaderError):
    """A call to the remote host failed. `status` is the HTTP status when known."""

    default_status: Optional[int] = None

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status if status is not None else self.default_status


class NotFoundError(RemoteApiError):
    default_status = 404


class ForbiddenError(RemoteApiError):
    default_status = 403


class UnauthorizedError(RemoteApiError):
    default_status = 401


class ConcurrentUpdateError(RemoteApiError):
    """The branch moved between reading its tip and updating it."""

    default_status = 409


_BY_STATUS = {
    401: UnauthorizedError,
    403: ForbiddenError,
    404: NotFoundError,
    409: ConcurrentUpdateError,
}


def remote_error(status: Optional[int], message: str) -> RemoteApiError:
    """Build the RemoteApiError subclass matching an HTTP status."""
    cls = _BY_STATUS.get(status, RemoteApiError)
    return cls(message, status=status)


class SessionRequiredError(UploaderError):
    """The operation needs a logged-in session or a selected repository."""
