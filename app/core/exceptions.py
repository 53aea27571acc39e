from fastapi import status


class ServiceError(Exception):
    """Base exception for service layer errors."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, status_code: int = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class NotFound(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND


class InvalidRole(ServiceError):
    """Target user lacks the role the operation requires (e.g. enrolling a non-student)."""

    status_code = status.HTTP_403_FORBIDDEN


class DuplicateEnrollment(ServiceError):
    """Student already holds an active enrollment in this academic year."""

    status_code = status.HTTP_409_CONFLICT


class ClassFull(ServiceError):
    """Active enrollments already reached the class max_students."""

    status_code = status.HTTP_409_CONFLICT


class InvalidState(ServiceError):
    """Operation not allowed in the current lifecycle state."""

    status_code = status.HTTP_409_CONFLICT


class InvalidArgument(ServiceError):
    status_code = status.HTTP_400_BAD_REQUEST
