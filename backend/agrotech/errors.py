"""Error taxonomy shared by services and routes, rendered as ``{"error": ...}``."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class AgroTechError(Exception):
    status_code = 500

    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def payload(self) -> dict:
        return {"error": self.message}


class ConfigurationError(AgroTechError):
    """Required backend credentials are absent."""

    def __init__(self, message: str, *, hint: str | None = None):
        super().__init__(message)
        self.hint = hint

    def __str__(self) -> str:
        if self.hint:
            return f"{self.message} {self.hint}"
        return self.message

    def payload(self) -> dict:
        body = {"error": self.message}
        if self.hint:
            body["hint"] = self.hint
        return body


class ValidationError(AgroTechError):
    status_code = 400

    def __init__(self, message: str, *, field: str | None = None):
        super().__init__(message)
        self.field = field

    def payload(self) -> dict:
        body = {"error": self.message}
        if self.field:
            body["details"] = [{"field": self.field, "message": self.message}]
        return body


class AuthError(AgroTechError):
    """Invalid, expired or already-used credential or link."""

    status_code = 401


class PermissionDeniedError(AgroTechError):
    status_code = 403


class NotFoundError(AgroTechError):
    status_code = 404


class TransitionError(AgroTechError):
    status_code = 409


class BackendUnavailableError(AgroTechError):
    """The hosted database/auth service could not be reached."""

    status_code = 500


class BackendError(AgroTechError):
    """The hosted backend answered but rejected the request."""

    status_code = 502

    def __init__(self, message: str, *, upstream_status: int | None = None):
        super().__init__(message)
        self.upstream_status = upstream_status


class PartialFailureError(AgroTechError):
    """A multi-step write failed after an earlier step succeeded."""

    status_code = 500


def _field_name(loc: tuple | list) -> str:
    parts = [str(p) for p in loc if p not in ("body", "query", "path")]
    return ".".join(parts)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AgroTechError)
    async def agrotech_error_handler(request: Request, exc: AgroTechError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(exc.payload(), status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        details = [
            {
                "field": _field_name(err.get("loc", ())),
                "message": err.get("msg", ""),
                "loc": [str(p) for p in err.get("loc", ())],
            }
            for err in exc.errors()
        ]
        return JSONResponse({"error": "Validation failed", "details": details}, status_code=400)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
        return JSONResponse({"error": detail}, status_code=exc.status_code, headers=exc.headers)
