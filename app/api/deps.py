"""FastAPI 의존성 주입 모듈 — 세션 및 인증 검사.

FastAPI dependency injection module — Session access and authentication.
Identity is resolved once by ``SessionMiddleware``; these dependencies only
read the outcome from ``request.state`` and apply the 401 gate.
"""

from typing import Annotated

from fastapi import Depends, Request

from app.middleware.session import SessionContext
from app.models.user import User
from app.services.session_authority import Anonymous, SessionAuthority


def get_authority(request: Request) -> SessionAuthority:
    """앱에 등록된 SessionAuthority를 반환합니다."""
    return request.app.state.authority


def get_session_context(request: Request) -> SessionContext:
    """미들웨어가 저장한 세션 컨텍스트를 반환합니다.

    Return the session context stored by the middleware. Requests that
    bypassed the middleware get an anonymous context.
    """
    context: SessionContext | None = getattr(request.state, "session", None)
    if context is None:
        context = SessionContext(result=Anonymous())
        request.state.session = context
    return context


async def get_current_user(
    context: Annotated[SessionContext, Depends(get_session_context)],
    authority: Annotated[SessionAuthority, Depends(get_authority)],
) -> User:
    """현재 인증된 사용자를 반환합니다.

    Return the authenticated user for the request.

    Raises:
        UnauthorizedError(401): 신원이 확인되지 않음 (No identity resolved)
    """
    return authority.require_identity(context.result)
