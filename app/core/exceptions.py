"""API-level errors rendered as ``{"success": false, "error": ...}``."""

from fastapi import status


class ApiError(Exception):
    """An error with an HTTP status, raised by routes and domain services."""

    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


class NotFoundError(ApiError):
    def __init__(self, message: str = "Not found"):
        super().__init__(status.HTTP_404_NOT_FOUND, message)


class BadRequestError(ApiError):
    def __init__(self, message: str):
        super().__init__(status.HTTP_400_BAD_REQUEST, message)
