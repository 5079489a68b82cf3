"""
Mapping of relay errors to HTTP responses.

Every failure leaves the boundary as ``{"success": false, "error": ...}``
with a status derived from the error kind. Server-side failures carry a
trace outside production.
"""

import logging
import traceback
import uuid
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ..core.exceptions import RelayError, UnknownServerError
from ..mcp.exceptions import (
    MCPError,
    MCPInvalidRequestError,
    MCPNotConfiguredError,
    MCPProvisioningError,
    MCPTimeoutError,
    MCPTransportError,
)

logger = logging.getLogger(__name__)


def status_for(error: Exception) -> int:
    """HTTP status for an error raised while serving a request."""
    if isinstance(error, MCPNotConfiguredError):
        return 503
    if isinstance(error, MCPInvalidRequestError):
        return 400
    if isinstance(error, UnknownServerError):
        return 404
    if isinstance(error, (MCPTransportError, MCPProvisioningError)):
        return 502
    if isinstance(error, MCPTimeoutError):
        return 504
    return 500


class ErrorResponse:
    """Standard error response format."""

    def __init__(
        self,
        status_code: int,
        message: str,
        kind: str,
        error_id: str | None = None,
        extra: dict[str, Any] | None = None,
        trace: str | None = None,
    ) -> None:
        self.status_code = status_code
        self.message = message
        self.kind = kind
        self.error_id = error_id or str(uuid.uuid4())
        self.extra = extra or {}
        self.trace = trace

    def to_dict(self) -> dict[str, Any]:
        content: dict[str, Any] = {
            "success": False,
            "error": self.message,
            "kind": self.kind,
            "errorId": self.error_id,
            **self.extra,
        }
        if self.trace:
            content["details"] = self.trace
        return content

    def to_response(self) -> JSONResponse:
        return JSONResponse(status_code=self.status_code, content=self.to_dict())


def error_response(error: Exception, production: bool = False) -> ErrorResponse:
    """Build the response for ``error``."""
    status = status_for(error)
    kind = getattr(error, "kind", "internal_error")
    extra: dict[str, Any] = {}

    if isinstance(error, MCPNotConfiguredError):
        extra = {
            "message": f"Please set {' and '.join(error.missing)} environment variables",
            "missing": error.missing,
        }
    elif isinstance(error, MCPInvalidRequestError) and error.field:
        extra = {"field": error.field}
    elif isinstance(error, UnknownServerError):
        kind = "unknown_server"
        extra = {"available": error.available}

    trace = None
    if status >= 500 and not production:
        trace = "".join(traceback.format_exception(type(error), error, error.__traceback__))

    return ErrorResponse(status, str(error), kind, extra=extra, trace=trace)


def configure_exception_handlers(app: FastAPI, production: bool = False) -> None:
    """Register handlers that turn relay errors into JSON responses."""

    async def relay_error_handler(request: Request, exc: RelayError) -> JSONResponse:
        response = error_response(exc, production)
        log = logger.error if response.status_code >= 500 else logger.warning
        log(
            "%s %s failed (%s): %s - error_id=%s",
            request.method,
            request.url.path,
            response.kind,
            exc,
            response.error_id,
        )
        return response.to_response()

    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        response = error_response(exc, production)
        logger.exception(
            "Unhandled error on %s %s - error_id=%s",
            request.method,
            request.url.path,
            response.error_id,
        )
        return response.to_response()

    app.add_exception_handler(MCPError, relay_error_handler)
    app.add_exception_handler(RelayError, relay_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
