"""세션 미들웨어 — 모든 라우트보다 먼저 요청 신원을 확인.

Session middleware — Resolves the request identity ahead of every route.

Flow:
    1. 만료 토큰 정리 (선택) — optional expired-token sweep pre-pass
    2. 쿠키에서 access/refresh 값을 읽어 신원 확인, 교체 시 커밋
       (Resolve identity from cookies, commit when rotated)
    3. 공개 경로가 아니고 신원이 없으면 401 — 401 on non-public paths without identity
    4. 교체가 일어났다면 응답에 새 쿠키 추가, 라우트 오류(500) 시에도
       (Append rotated cookies to the response, including unhandled-error 500s)
"""

import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from app.services.session_authority import (
    Anonymous,
    Authenticated,
    IdentityResult,
    SessionAuthority,
)
from app.utils.cookies import set_session_cookies
from app.utils.exceptions import StoreUnavailableError, status_response

logger = logging.getLogger(__name__)

# 인증 없이 접근 가능한 경로 — Paths reachable without identity
PUBLIC_PATHS: frozenset[str] = frozenset({
    "/register",
    "/login",
    "/health",
    "/docs",
    "/redoc",
    "/openapi.json",
})


@dataclass
class SessionContext:
    """요청 단위 세션 상태 (Per-request session state).

    Attributes:
        result: 신원 확인 결과 (Identity resolution outcome)
        refresh_value: 이 요청의 현재 리프레시 토큰, 교체됐다면 새 값
                       (Current refresh value; the new one when rotated)
        cookies_handled: 라우트가 세션 쿠키를 직접 기록/삭제했는지
                         (Route already wrote or cleared the session cookies)
    """

    result: IdentityResult
    refresh_value: str | None = None
    cookies_handled: bool = False


class SessionMiddleware(BaseHTTPMiddleware):
    """요청마다 SessionAuthority를 실행하는 미들웨어.

    Middleware running the session authority once per request and
    exposing the outcome as ``request.state.session``.
    """

    def __init__(
        self,
        app: Any,
        authority: SessionAuthority,
        session_factory: async_sessionmaker[AsyncSession],
        sweep_on_request: bool = True,
        public_paths: frozenset[str] = PUBLIC_PATHS,
    ) -> None:
        super().__init__(app)
        self.authority: SessionAuthority = authority
        self.session_factory: async_sessionmaker[AsyncSession] = session_factory
        self.sweep_on_request: bool = sweep_on_request
        self.public_paths: frozenset[str] = public_paths

    def _is_public(self, path: str) -> bool:
        return (path.rstrip("/") or "/") in self.public_paths

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        config = self.authority.config

        if self.sweep_on_request:
            await self.authority.safe_sweep(self.session_factory)

        refresh_value: str | None = request.cookies.get(config.refresh_cookie)
        try:
            async with self.session_factory() as db:
                result: IdentityResult = await self.authority.resolve_identity(
                    db,
                    access_value=request.cookies.get(config.access_cookie),
                    refresh_value=refresh_value,
                )
                if isinstance(result, Authenticated) and result.rotated:
                    await db.commit()
        except (StoreUnavailableError, SQLAlchemyError):
            logger.exception("Identity resolution failed on %s %s", request.method, request.url.path)
            return status_response(500)

        if isinstance(result, Authenticated) and result.issued is not None:
            refresh_value = result.issued.refresh_token

        context = SessionContext(result=result, refresh_value=refresh_value)
        request.state.session = context

        if isinstance(result, Anonymous) and not self._is_public(request.url.path):
            return status_response(401)

        try:
            response: Response = await call_next(request)
        except Exception:
            # 교체는 이미 커밋됨 — rotation is already committed, the 500 keeps the new cookies
            logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
            response = status_response(500)

        if isinstance(result, Authenticated) and result.issued is not None and not context.cookies_handled:
            set_session_cookies(response, result.issued, config)
        return response
