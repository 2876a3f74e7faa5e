"""Error taxonomy shared by the service layer and the HTTP surface.

Every error carries the status code the API answers with; the FastAPI
handler in ``main`` turns them into ``{"detail": message}`` bodies.
"""
from fastapi import Request
from fastapi.responses import JSONResponse


class OrderDropError(Exception):
    status_code = 500

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict:
        return {"detail": self.message}


class ValidationError(OrderDropError):
    """Malformed input: empty order number, missing upload part."""
    status_code = 400


class FileTooLarge(ValidationError):
    status_code = 413


class AuthenticationFailed(OrderDropError):
    status_code = 401


class Forbidden(OrderDropError):
    """No session, or a session whose user is not a seller."""
    status_code = 403


class NotFound(OrderDropError):
    status_code = 404


class Conflict(OrderDropError):
    """Duplicate order number, repeated upload, or delete before upload."""
    status_code = 400


class StorageFailure(OrderDropError):
    status_code = 500


async def orderdrop_exception_handler(request: Request, exc: OrderDropError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())
