"""Map service exceptions to JSON error responses."""
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from storefront.services.errors import AuthError, ValidationError
from storefront.utils.logger import log

INVALID_BODY_MESSAGE = "Invalid request body"


async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    if exc.status_code >= 500:
        log.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Missing, non-JSON or wrongly typed bodies are a plain 400."""
    log.debug(f"Rejected body on {request.method} {request.url.path}: {exc.errors()}")
    return await auth_error_handler(request, ValidationError(INVALID_BODY_MESSAGE))


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    # Database and network failures: log with context, leak nothing
    log.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AuthError, auth_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
