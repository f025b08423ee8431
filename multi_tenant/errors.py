"""Error envelope responses and FastAPI exception handlers."""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from multi_tenant.exceptions import AppException
from multi_tenant.schemas.responses import ErrorBody, ErrorDetail, ErrorResponse

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


def request_id_of(request: Request) -> str | None:
    """The caller-supplied request ID, echoed back in error bodies."""
    return request.headers.get(REQUEST_ID_HEADER)


def error_response(
    status_code: int,
    code: str,
    message: str,
    request_id: str | None = None,
    details: list[dict] | None = None,
) -> JSONResponse:
    """Build a structured error JSONResponse."""
    body = ErrorResponse(
        error=ErrorBody(
            code=code,
            message=message,
            details=[ErrorDetail(field=d.get("field"), message=d["message"]) for d in details or []],
            request_id=request_id,
        )
    )
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(by_alias=True, exclude_none=True),
    )


def install_error_handlers(application: FastAPI) -> None:
    """Render AppException (tenant errors included) and unexpected failures as error envelopes."""

    @application.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
        return error_response(
            status_code=exc.status_code,
            code=exc.code,
            message=exc.message,
            request_id=request_id_of(request),
            details=exc.details,
        )

    @application.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        details = [
            {"field": ".".join(str(loc) for loc in err.get("loc", [])), "message": err.get("msg", "")}
            for err in exc.errors()
        ]
        return error_response(
            status_code=422,
            code="VALIDATION_ERROR",
            message="Validation failed",
            request_id=request_id_of(request),
            details=details,
        )

    @application.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled exception: %s", exc)
        return error_response(
            status_code=500,
            code="INTERNAL_ERROR",
            message="An unexpected error occurred.",
            request_id=request_id_of(request),
        )
