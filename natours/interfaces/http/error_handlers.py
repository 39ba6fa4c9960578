"""
Error classification.

Every fault surfaced while handling a request ends up in ``render_error``:
pipeline failures, application errors raised by handlers, framework HTTP and
validation errors, and unexpected exceptions. Operational faults keep their
message; programming faults are logged and, outside development, answered
with a generic message.
"""

import re
import traceback
from dataclasses import dataclass

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from fastapi.templating import Jinja2Templates
from jose import ExpiredSignatureError, JWTError
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from natours.application.errors import AppError
from natours.config import Settings
from natours.infrastructure.logging import get_logger
from natours.interfaces.http.pipeline import RequestContext

logger = get_logger(__name__)

GENERIC_API_MESSAGE = "Something went very wrong!"
GENERIC_PAGE_MESSAGE = "Please try again later."
PAGE_TITLE = "Something went wrong!"

_KEY_VALUE_DETAIL = re.compile(r"\((?P<field>[^)]+)\)=\((?P<value>[^)]*)\)")
_SQLITE_UNIQUE_DETAIL = re.compile(r"UNIQUE constraint failed: (?P<columns>[\w., ]+)")


@dataclass(frozen=True)
class ClassifiedError:
    status_code: int
    message: str
    is_operational: bool

    @property
    def status(self) -> str:
        return "fail" if 400 <= self.status_code < 500 else "error"


def _validation_message(exc: RequestValidationError) -> str:
    details = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path"))
        details.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return f"Invalid input data. {'. '.join(details)}".strip()


def _integrity_message(exc: IntegrityError) -> str | None:
    detail = str(exc.orig)
    match = _KEY_VALUE_DETAIL.search(detail)
    if match is not None:
        return f"Duplicate field value: {match.group('value')}. Please use another value!"
    match = _SQLITE_UNIQUE_DETAIL.search(detail)
    if match is not None:
        fields = ", ".join(column.split(".")[-1] for column in match.group("columns").split(","))
        return f"Duplicate field value: {fields.strip()}. Please use another value!"
    return None


def classify_error(exc: Exception) -> ClassifiedError:
    if isinstance(exc, AppError):
        return ClassifiedError(exc.status_code, exc.message, exc.is_operational)
    if isinstance(exc, RequestValidationError):
        return ClassifiedError(400, _validation_message(exc), True)
    if isinstance(exc, StarletteHTTPException):
        return ClassifiedError(exc.status_code, str(exc.detail), True)
    if isinstance(exc, IntegrityError):
        message = _integrity_message(exc)
        if message is not None:
            return ClassifiedError(400, message, True)
        return ClassifiedError(400, "Invalid input data.", True)
    if isinstance(exc, ExpiredSignatureError):
        return ClassifiedError(401, "Your token has expired! Please log in again.", True)
    if isinstance(exc, JWTError):
        return ClassifiedError(401, "Invalid token. Please log in again!", True)
    return ClassifiedError(500, str(exc) or type(exc).__name__, False)


def render_error(exc: Exception, request: Request, settings: Settings, templates: Jinja2Templates) -> Response:
    error = classify_error(exc)
    path = request.url.path
    if not error.is_operational:
        logger.error("unexpected_error", path=path, error=type(exc).__name__, exc_info=exc)
    else:
        logger.info("request_failed", path=path, status_code=error.status_code, detail=error.message)

    if path.startswith("/api"):
        if settings.is_development:
            return JSONResponse(
                status_code=error.status_code,
                content={
                    "status": error.status,
                    "error": {
                        "name": type(exc).__name__,
                        "statusCode": error.status_code,
                        "isOperational": error.is_operational,
                    },
                    "message": error.message,
                    "stack": "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
                },
            )
        if error.is_operational:
            return JSONResponse(status_code=error.status_code, content={"status": error.status, "message": error.message})
        return JSONResponse(status_code=500, content={"status": "error", "message": GENERIC_API_MESSAGE})

    status_code = error.status_code if error.is_operational or settings.is_development else 500
    message = error.message if error.is_operational or settings.is_development else GENERIC_PAGE_MESSAGE
    return templates.TemplateResponse(
        request,
        "error.html",
        {"title": PAGE_TITLE, "msg": message, "user": None, "alert": None},
        status_code=status_code,
    )


def build_error_responder(settings: Settings, templates: Jinja2Templates):
    def respond(exc: Exception, context: RequestContext) -> Response:
        return render_error(exc, Request(context.scope), settings, templates)

    return respond


def register_error_handlers(app: FastAPI, settings: Settings, templates: Jinja2Templates) -> None:
    async def handle_error(request: Request, exc: Exception) -> Response:
        return render_error(exc, request, settings, templates)

    for exc_class in (AppError, StarletteHTTPException, RequestValidationError, IntegrityError, JWTError):
        app.add_exception_handler(exc_class, handle_error)
