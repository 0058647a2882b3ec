from __future__ import annotations

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from intraop.core.errors import IntraopError, NotFoundError, StoreFailure, ValidationError


def _status_for(exc: IntraopError) -> int:
    """예외 종류별 HTTP 상태 코드"""
    if isinstance(exc, NotFoundError):
        return status.HTTP_404_NOT_FOUND
    if isinstance(exc, ValidationError):
        return status.HTTP_400_BAD_REQUEST
    if isinstance(exc, StoreFailure):
        return status.HTTP_503_SERVICE_UNAVAILABLE
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def register_error_handlers(app: FastAPI) -> None:
    """도메인 예외를 HTTP 응답으로 변환하는 핸들러 등록

    Args:
        app: FastAPI 애플리케이션
    """

    @app.exception_handler(IntraopError)
    async def _handle_intraop_error(request: Request, exc: IntraopError) -> JSONResponse:
        return JSONResponse(
            status_code=_status_for(exc),
            content={"error_code": exc.code, "message": exc.message},
        )

    @app.exception_handler(RequestValidationError)
    async def _handle_request_validation(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = exc.errors()
        first = errors[0] if errors else {"loc": ("body",), "msg": "요청 형식 오류"}
        field = ".".join(str(part) for part in first.get("loc", ("body",)))
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error_code": "INTRAOP_VALIDATION", "message": f"{field}: {first.get('msg')}"},
        )
