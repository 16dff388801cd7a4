"""Error taxonomy for the file store and the handlers that map it onto HTTP."""

import logging

import pydantic
from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class FileStoreError(Exception):
    """Base class for every error the file store surfaces to callers."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidCategory(FileStoreError):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, category: str):
        super().__init__(f"Invalid category: {category}")
        self.category = category


class UnsupportedType(FileStoreError):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, media_type: str):
        super().__init__(
            f"Unsupported file type: {media_type}. "
            "Only PDF, images, Excel, Word and PowerPoint files are accepted"
        )
        self.media_type = media_type


class TooLarge(FileStoreError):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, size_bytes: int, max_size_bytes: int):
        super().__init__(
            f"File too large: {size_bytes} bytes exceeds the limit of {max_size_bytes} bytes"
        )
        self.size_bytes = size_bytes
        self.max_size_bytes = max_size_bytes


class NotFound(FileStoreError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, category: str, stored_name: str):
        super().__init__(f"File not found: {category}/{stored_name}")
        self.category = category
        self.stored_name = stored_name


class StorageIOError(FileStoreError):
    """A filesystem write, rename or removal failed."""


class CodecError(FileStoreError):
    """The image or archive codec failed while encoding."""


async def handle_domain_error(request: Request, exc: Exception) -> JSONResponse:
    """Render any error carrying ``status_code`` and ``message`` as ``{"error": ...}``."""
    status_code = getattr(exc, "status_code", status.HTTP_500_INTERNAL_SERVER_ERROR)
    message = getattr(exc, "message", str(exc))
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {message}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected ({status_code}): {message}")
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


async def handle_pydantic_validation_errors(request: Request, exc: pydantic.ValidationError) -> JSONResponse:
    errors = exc.errors()
    return JSONResponse(
        status_code=422,
        content={
            "success": False,
            "error": "Request validation failed",
            "detail": jsonable_encoder(
                [{"msg": error["msg"], "input": error.get("input")} for error in errors]
            ),
        },
    )


async def handle_request_validation_errors(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request bodies, forms and parameters are client errors: 400."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = f"Invalid request: {location + ' ' if location else ''}{first.get('msg', 'malformed input')}"
    logger.info(f"{request.method} {request.url.path} rejected (400): {message}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "success": False,
            "error": message,
            "detail": jsonable_encoder([{"loc": error.get("loc"), "msg": error["msg"]} for error in errors]),
        },
    )


async def handle_broad_exceptions(request: Request, call_next):
    """Last line of defense: log anything that escaped the routers and return a 500."""
    try:
        return await call_next(request)
    except Exception:
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"success": False, "error": "Internal server error"},
        )
