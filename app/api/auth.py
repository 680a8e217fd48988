"""인증 라우터 — 회원가입, 로그인, 로그아웃, 토큰 폐기, 프로필 조회.

Auth Router — Registration, login, logout, token revocation and profile.
Credentials travel only in cookies; every body is ``{"status": code}``
except ``/me``.
"""

from typing import Annotated

from fastapi import APIRouter, Body, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_authority, get_current_user, get_session_context
from app.database import get_db
from app.middleware.session import SessionContext
from app.models.user import User
from app.schemas.auth import LoginRequest, RegisterRequest, UserMeResponse
from app.schemas.common import StatusResponse
from app.services.auth_service import auth_service
from app.services.session_authority import Authenticated, RevokeScope, SessionAuthority
from app.utils.cookies import IssuedSession, clear_session_cookies, set_session_cookies

router: APIRouter = APIRouter()


async def _discard_rotated_session(
    db: AsyncSession,
    context: SessionContext,
    authority: SessionAuthority,
) -> None:
    """이 요청에서 교체된 세션이 새 로그인으로 대체되면 폐기합니다.

    A session rotated by the middleware in this very request is superseded
    by the freshly issued one; drop it so it does not linger undelivered.
    """
    result = context.result
    if isinstance(result, Authenticated) and result.rotated:
        await authority.revoke_session(db, result.user, RevokeScope.SINGLE, context.refresh_value)


@router.post("/register", response_model=StatusResponse, status_code=201)
async def register(
    data: RegisterRequest,
    response: Response,
    db: Annotated[AsyncSession, Depends(get_db)],
    context: Annotated[SessionContext, Depends(get_session_context)],
    authority: Annotated[SessionAuthority, Depends(get_authority)],
) -> StatusResponse:
    """회원가입 — 사용자/프로필 생성 후 세션 쿠키 발급.

    Register a user and start a session. User creation and session
    issuance share one commit.
    """
    issued: IssuedSession = await auth_service.register(db, data, authority)
    await _discard_rotated_session(db, context, authority)
    await db.commit()
    set_session_cookies(response, issued, authority.config)
    context.cookies_handled = True
    return StatusResponse(status=201)


@router.post("/login", response_model=StatusResponse)
async def login(
    response: Response,
    db: Annotated[AsyncSession, Depends(get_db)],
    context: Annotated[SessionContext, Depends(get_session_context)],
    authority: Annotated[SessionAuthority, Depends(get_authority)],
    data: Annotated[LoginRequest | None, Body()] = None,
) -> StatusResponse:
    """로그인 — 인증 정보 확인 후 세션 쿠키 발급.

    Log in. Missing fields or bad credentials give 400 without cookies.
    """
    issued: IssuedSession = await auth_service.login(db, data or LoginRequest(), authority)
    await _discard_rotated_session(db, context, authority)
    await db.commit()
    set_session_cookies(response, issued, authority.config)
    context.cookies_handled = True
    return StatusResponse(status=200)


@router.delete("/tokens", response_model=StatusResponse)
async def delete_tokens(
    response: Response,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
    context: Annotated[SessionContext, Depends(get_session_context)],
    authority: Annotated[SessionAuthority, Depends(get_authority)],
) -> StatusResponse:
    """모든 기기에서 로그아웃 — 사용자의 모든 리프레시 토큰 삭제.

    Log out everywhere: delete every refresh token of the user.
    """
    await authority.revoke_session(db, current_user, RevokeScope.ALL)
    await db.commit()
    clear_session_cookies(response, authority.config)
    context.cookies_handled = True
    return StatusResponse(status=200)


@router.delete("/logout", response_model=StatusResponse)
async def logout(
    response: Response,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
    context: Annotated[SessionContext, Depends(get_session_context)],
    authority: Annotated[SessionAuthority, Depends(get_authority)],
) -> StatusResponse:
    """로그아웃 — 현재 요청의 리프레시 토큰만 삭제.

    Log out this client: delete only the refresh token presented (or
    rotated) in this request.
    """
    await authority.revoke_session(db, current_user, RevokeScope.SINGLE, context.refresh_value)
    await db.commit()
    clear_session_cookies(response, authority.config)
    context.cookies_handled = True
    return StatusResponse(status=200)


@router.get("/me", response_model=UserMeResponse)
async def get_me(
    current_user: Annotated[User, Depends(get_current_user)],
) -> UserMeResponse:
    """현재 사용자 프로필 조회."""
    return auth_service.get_me(current_user)
