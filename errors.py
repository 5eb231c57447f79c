"""
Error taxonomy for the API.

Every error is an HTTPException so the same exception handler renders it as
the JSON envelope ``{"success": false, "message": ..., "error"?: ...}``.
"""

from typing import Optional

from fastapi import HTTPException


class AppError(HTTPException):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None, error: Optional[str] = None,
                 status_code: Optional[int] = None):
        super().__init__(
            status_code=status_code or self.status_code,
            detail=message or self.default_message,
        )
        self.error = error


class ValidationError(AppError):
    status_code = 400
    default_message = "Required fields are missing."


class NotFound(AppError):
    status_code = 404
    default_message = "Not found"


class Conflict(AppError):
    status_code = 400
    default_message = "Duplicate value"


class UploadError(AppError):
    status_code = 400
    default_message = "Only image files are allowed!"


class StoreError(AppError):
    status_code = 500
    default_message = "Database error"


class UpstreamError(AppError):
    status_code = 500
    default_message = "Failed to upload image"
