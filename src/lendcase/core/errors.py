from __future__ import annotations

import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from lendcase.core.request_id import REQUEST_ID_HEADER, request_id_from
from lendcase.domain.underwriting.reconciler import CaseNotFoundError

logger = logging.getLogger(__name__)


def error_response(
    request: Request, *, status_code: int, code: str, message: str
) -> JSONResponse:
    request_id = request_id_from(request)
    response = JSONResponse(
        status_code=status_code,
        content={
            "error": {
                "code": code,
                "message": message,
                "status": status_code,
                "request_id": request_id,
            }
        },
    )
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(HTTPException)
    async def http_exception_handler(
        request: Request, exc: HTTPException
    ) -> JSONResponse:
        logger.info(
            "http_exception",
            extra={
                "request_id": request_id_from(request),
                "method": request.method,
                "path": request.url.path,
                "status_code": exc.status_code,
            },
        )
        return error_response(
            request,
            status_code=exc.status_code,
            code="http_error",
            message=str(exc.detail),
        )

    @app.exception_handler(CaseNotFoundError)
    async def case_not_found_handler(
        request: Request, exc: CaseNotFoundError
    ) -> JSONResponse:
        logger.info(
            "case_not_found",
            extra={
                "event": "case_not_found",
                "request_id": request_id_from(request),
                "method": request.method,
                "path": request.url.path,
                "status_code": 404,
            },
        )
        return error_response(
            request, status_code=404, code="case_not_found", message=str(exc)
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        logger.error(
            "unhandled_exception",
            exc_info=True,
            extra={
                "request_id": request_id_from(request),
                "method": request.method,
                "path": request.url.path,
                "error_type": exc.__class__.__name__,
            },
        )
        return error_response(
            request,
            status_code=500,
            code="internal_error",
            message="Internal Server Error",
        )
