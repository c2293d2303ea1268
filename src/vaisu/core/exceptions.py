"""
Exception hierarchy and FastAPI exception handlers.

Every error response body has the shape `{"error": "<message>", ...}` so the
frontend can read failures the same way across routes.
"""

from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from vaisu.core.logging import get_logger

logger = get_logger()


class VaisuError(Exception):
    """Base class for application errors."""


class NotFoundError(VaisuError):
    """A record or stored object does not exist."""


class StorageError(VaisuError):
    """The key-value or object store failed."""


class LLMError(VaisuError):
    """The LLM provider call failed."""


class InvalidJSONResponseError(LLMError):
    """The LLM answer could not be parsed as JSON."""

    def __init__(self, message: str = "Invalid JSON response from LLM"):
        super().__init__(message)


class UnknownVisualizationTypeError(VaisuError, ValueError):
    """The visualization type has no repository or generator."""

    def __init__(self, visualization_type: str):
        self.visualization_type = visualization_type
        super().__init__(f"Unknown visualization type: {visualization_type}")


class AnalysisRequiredError(VaisuError):
    """The visualization needs an analysis the document does not have yet."""

    def __init__(self, message: str = "Document not analyzed yet. Analysis required for this visualization."):
        super().__init__(message)


class BillingError(VaisuError):
    """Stripe request or webhook verification failed."""


class EmailError(VaisuError):
    """Sending an email failed."""


class AgentError(VaisuError):
    """An orchestration agent could not run or did not produce output."""


class ApiError(Exception):
    """
    Error raised by routes and dependencies to produce a JSON error response.

    Args:
        status_code: HTTP status code
        error: message placed under the `error` key
        **extra: additional top-level keys (e.g. `details`, `retryAfter`)
    """

    def __init__(self, status_code: int, error: str, **extra: Any):
        super().__init__(error)
        self.status_code = status_code
        self.error = error
        self.extra = extra

    def to_body(self) -> dict[str, Any]:
        return {"error": self.error, **self.extra}


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.error}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    if exc.status_code == 401:
        client = request.client.host if request.client else "unknown"
        logger.warning(f"401 on {request.method} {request.url.path} from {client}: {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    details = [
        {
            "loc": list(error.get("loc", [])),
            "msg": error.get("msg", ""),
            "type": error.get("type", ""),
        }
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={"error": "Validation failed", "details": details},
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.opt(exception=exc).error(
        f"Unhandled error on {request.method} {request.url.path}: {exc}"
    )
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


def register_exception_handlers(app: FastAPI) -> None:
    """Install the JSON error handlers on the application."""
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
