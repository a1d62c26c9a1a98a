"""
Domain errors raised by the service layer.

Views catch ServiceError and answer ``{'error': str(exc)}`` with the
exception's status code, so messages here are shown to users verbatim.
"""
from rest_framework import status


class ServiceError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message):
        super().__init__(message)
        self.message = message

    def __str__(self):
        return self.message


class ValidationFailed(ServiceError):
    status_code = status.HTTP_400_BAD_REQUEST


class PermissionDenied(ServiceError):
    status_code = status.HTTP_403_FORBIDDEN


class NotFound(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND
