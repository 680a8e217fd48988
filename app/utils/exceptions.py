"""커스텀 예외 클래스 및 전역 예외 핸들러 모듈.

Custom exception classes and global exception handlers.
Every error reaching the client has a fixed-shape body: ``{"status": code}``
or, for request validation failures, ``{"errors": [...]}``. No internal
detail is ever exposed.

Usage:
    from app.utils.exceptions import UnauthorizedError
    raise UnauthorizedError()
"""

import logging
from typing import Any

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class UnauthorizedError(HTTPException):
    """401 Unauthorized 예외 — 인증 실패 시 사용.

    401 Unauthorized exception.
    Raised when no identity was resolved for a route that needs one
    (credential absent, expired, revoked or tampered). The cause is never
    revealed to the client.
    """

    def __init__(self, detail: str = "Authentication required") -> None:
        super().__init__(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


class BadRequestError(HTTPException):
    """400 Bad Request 예외 — 잘못된 요청 데이터 시 사용.

    400 Bad Request exception.
    Raised for failed logins and business-rule validation failures.
    ``errors`` carries field messages for the ``{"errors": [...]}`` body;
    without it the body is ``{"status": 400}``.
    """

    def __init__(
        self,
        detail: str = "Bad request",
        errors: list[dict[str, str]] | None = None,
    ) -> None:
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)
        self.errors: list[dict[str, str]] | None = errors


class StoreUnavailableError(Exception):
    """토큰/사용자 저장소 장애 — 500으로 전파됩니다.

    Persistence failure during a session lookup, insert or delete.
    Unlike credential failures this is never downgraded to "no identity".
    """


def status_response(status_code: int, headers: dict[str, str] | None = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"status": status_code}, headers=headers)


def _format_validation_errors(exc: RequestValidationError) -> list[dict[str, Any]]:
    """pydantic 오류를 {field, msg} 목록으로 변환합니다."""
    formatted: list[dict[str, Any]] = []
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ()) if part != "body"]
        msg: str = error.get("msg", "Invalid value")
        # pydantic 커스텀 검증 메시지 접두어 제거 — Strip pydantic's "Value error, " prefix
        if msg.startswith("Value error, "):
            msg = msg[len("Value error, "):]
        formatted.append({"field": ".".join(loc), "msg": msg})
    return formatted


def register_exception_handlers(app: FastAPI) -> None:
    """전역 예외 핸들러를 등록합니다.

    Register handlers that map exceptions to the fixed response shapes.
    """

    @app.exception_handler(BadRequestError)
    async def handle_bad_request(request: Request, exc: BadRequestError) -> JSONResponse:
        if exc.errors:
            return JSONResponse(status_code=400, content={"errors": exc.errors})
        return status_response(400)

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return status_response(exc.status_code, headers=getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"errors": _format_validation_errors(exc)})

    @app.exception_handler(StoreUnavailableError)
    async def handle_store_unavailable(request: Request, exc: StoreUnavailableError) -> JSONResponse:
        logger.error("Session store unavailable on %s %s", request.method, request.url.path, exc_info=exc)
        return status_response(500)

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path, exc_info=exc)
        return status_response(500)
