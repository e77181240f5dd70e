"""Custom middleware for API request/response processing."""

from typing import Callable, Optional

from fastapi import FastAPI, Request, Response, status
from fastapi.exceptions import HTTPException, RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from ..core.errors import NotFoundError, StorageFailure, TrackerError, ValidationError
from ..utils.logging_config import get_logger, log_exception

logger = get_logger('api')

# Domain error -> (status, title)
ERROR_STATUS = (
    (NotFoundError, status.HTTP_404_NOT_FOUND, "Not Found"),
    (ValidationError, status.HTTP_409_CONFLICT, "Conflict"),
    (StorageFailure, status.HTTP_503_SERVICE_UNAVAILABLE, "Storage Unavailable"),
)


def problem_response(
    status_code: int,
    title: str,
    detail: Optional[str] = None,
    type_uri: Optional[str] = None,
    instance: Optional[str] = None,
    **extra_fields,
) -> JSONResponse:
    """Create a JSON response in RFC 9457 Problem Details format."""
    problem = {
        "type": type_uri or f"https://httpstatuses.com/{status_code}",
        "title": title,
        "status": status_code,
    }

    if detail:
        problem["detail"] = detail
    if instance:
        problem["instance"] = instance

    problem.update(extra_fields)

    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(problem),
        media_type="application/problem+json",
    )


def tracker_error_response(exc: TrackerError, instance: Optional[str] = None) -> JSONResponse:
    """Map a domain error onto its problem response."""
    for error_type, status_code, title in ERROR_STATUS:
        if isinstance(exc, error_type):
            break
    else:
        status_code, title = status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal Server Error"

    fields = exc.to_dict()
    detail = fields.pop("message")
    return problem_response(
        status_code=status_code,
        title=title,
        detail=detail,
        instance=instance,
        **fields,
    )


class ProblemDetailsMiddleware(BaseHTTPMiddleware):
    """Middleware to convert tracker and HTTP exceptions to RFC 9457 Problem Details."""

    def __init__(self, app: ASGIApp):
        super().__init__(app)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            response = await call_next(request)
            return response
        except TrackerError as exc:
            if isinstance(exc, StorageFailure):
                log_exception('api', exc, {"path": request.url.path, "method": request.method})
            else:
                logger.info(f"{request.method} {request.url.path} rejected: {exc.message}")
            return tracker_error_response(exc, instance=str(request.url))
        except HTTPException as exc:
            return problem_response(
                status_code=exc.status_code,
                title=self._get_default_title(exc.status_code),
                detail=exc.detail,
                instance=str(request.url),
            )
        except Exception as exc:
            log_exception('api', exc, {"path": request.url.path, "method": request.method})
            return problem_response(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                title="Internal Server Error",
                detail="An unexpected error occurred",
                instance=str(request.url),
            )

    def _get_default_title(self, status_code: int) -> str:
        """Get default title for HTTP status codes."""
        titles = {
            400: "Bad Request",
            404: "Not Found",
            405: "Method Not Allowed",
            409: "Conflict",
            422: "Unprocessable Entity",
            500: "Internal Server Error",
            503: "Service Unavailable",
        }
        return titles.get(status_code, "HTTP Error")


def register_problem_handlers(app: FastAPI) -> None:
    """Render FastAPI's own request validation failures as problem details.

    FastAPI answers these before any middleware sees them, so they need a
    handler rather than an ``except`` clause.
    """

    async def validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return problem_response(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            title="Validation Error",
            detail="Request validation failed",
            instance=str(request.url),
            errors=exc.errors(),
        )

    app.add_exception_handler(RequestValidationError, validation_handler)
