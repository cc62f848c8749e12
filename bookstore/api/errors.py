"""Maps exceptions to ``{"error_code", "error_message"}`` responses."""

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from bookstore.errors import BookstoreError, EntryInvalidJSON, IdInvalidFormat, InfrastructureError

logger = structlog.get_logger(__name__)


def _respond(err: BookstoreError) -> JSONResponse:
    return JSONResponse(status_code=err.status_code, content=err.to_dict())

async def bookstore_error_handler(request: Request, exc: BookstoreError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("Request failed", path=request.url.path, error_code=exc.code, error=str(exc))
    return _respond(exc)

async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if any(e.get('loc', ())[:1] == ('path',) for e in errors):
        return _respond(IdInvalidFormat())
    first = errors[0] if errors else {}
    return _respond(EntryInvalidJSON(first.get('msg')))

async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error", path=request.url.path)
    return _respond(InfrastructureError())


def register(app: FastAPI) -> None:
    app.add_exception_handler(BookstoreError, bookstore_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
