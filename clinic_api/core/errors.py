"""Error taxonomy shared by the stores and the HTTP layer."""

from fastapi import status


class ClinicError(Exception):
    """Base class for failures that map onto an HTTP error response."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class BadRequestError(ClinicError):
    status_code = status.HTTP_400_BAD_REQUEST


class UnauthorizedError(ClinicError):
    status_code = status.HTTP_401_UNAUTHORIZED


class NotFoundError(ClinicError):
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(ClinicError):
    status_code = status.HTTP_409_CONFLICT


class InternalError(ClinicError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
