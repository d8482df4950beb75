from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
import structlog

logger = structlog.get_logger(__name__)


class AuditionError(Exception):
    """Base class for every error raised by the audition package."""


class DeviceError(AuditionError):
    """The recording device could not be acquired or used."""

    title = "Microphone Unavailable"


class DevicePermissionError(DeviceError):
    title = "Microphone Permission Denied"


class DeviceNotFoundError(DeviceError):
    title = "No Microphone Found"


class DeviceUnsupportedError(DeviceError):
    title = "Recording Not Supported"


class DeviceReleasedError(DeviceError):
    """The device was released when the session ended and cannot be reopened."""


class RecorderBusyError(AuditionError):
    """A captured answer is still held and must be reset before recording again."""


class SessionStateError(AuditionError):
    """An operation was requested in a session state that does not allow it."""


class BackendError(AuditionError):
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ConflictError(BackendError):
    """A submission already exists for this candidate and opportunity."""


class NotFoundError(BackendError):
    pass


def _error_body(message: str) -> dict:
    return {"success": False, "message": message}


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ConflictError)
    async def conflict_handler(request: Request, exc: ConflictError):
        logger.warning("request_conflict", path=request.url.path, message=exc.message)
        return JSONResponse(status_code=409, content=_error_body(exc.message))

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        return JSONResponse(status_code=404, content=_error_body(exc.message))

    @app.exception_handler(RequestValidationError)
    async def validation_handler(request: Request, exc: RequestValidationError):
        fields = sorted({str(err["loc"][-1]) for err in exc.errors() if err.get("loc")})
        message = f"Invalid or missing fields: {', '.join(fields)}" if fields else "Invalid request"
        logger.warning("request_invalid", path=request.url.path, fields=fields)
        return JSONResponse(status_code=400, content=_error_body(message))
