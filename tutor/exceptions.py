# tutor/exceptions.py
# Error taxonomy shared by the stores, services and routes.
from fastapi import status


class TutorError(Exception):
    """Base class for errors that routes translate into HTTP responses."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, detail: str = ""):
        super().__init__(detail)
        self.detail = detail or self.__class__.__name__


class NotFound(TutorError):
    status_code = status.HTTP_404_NOT_FOUND


class AlreadyExists(TutorError):
    status_code = status.HTTP_409_CONFLICT


class InvalidCredentials(TutorError):
    status_code = status.HTTP_401_UNAUTHORIZED


class Forbidden(TutorError):
    status_code = status.HTTP_403_FORBIDDEN


class UpstreamUnavailable(TutorError):
    status_code = status.HTTP_502_BAD_GATEWAY


class BadRequest(TutorError):
    status_code = status.HTTP_400_BAD_REQUEST
