"""세션 쿠키 전송 유틸리티.

Session cookie transport helpers.
Clients rely on the header order: whenever both cookies are written or
cleared together, ``refresh`` comes first, then ``access``.
"""

from dataclasses import dataclass

from starlette.responses import Response

from app.config import SessionConfig


@dataclass(frozen=True)
class IssuedSession:
    """새로 발급된 자격 증명 쌍 (Freshly minted credential pair)."""

    refresh_token: str
    access_token: str


def set_session_cookies(response: Response, issued: IssuedSession, config: SessionConfig) -> None:
    """리프레시/액세스 쿠키를 순서대로 설정합니다.

    Write both credentials as cookies, refresh first.
    Max-age matches each credential's lifetime.
    """
    response.set_cookie(
        config.refresh_cookie,
        issued.refresh_token,
        max_age=int(config.refresh_ttl.total_seconds()),
        path="/",
        secure=config.cookie_secure,
        httponly=config.cookie_httponly,
        samesite=config.cookie_samesite,
    )
    response.set_cookie(
        config.access_cookie,
        issued.access_token,
        max_age=int(config.access_ttl.total_seconds()),
        path="/",
        secure=config.cookie_secure,
        httponly=config.cookie_httponly,
        samesite=config.cookie_samesite,
    )


def clear_session_cookies(response: Response, config: SessionConfig) -> None:
    """두 쿠키를 모두 삭제합니다 (refresh, access 순서).

    Emit exactly two cookie-clearing headers, refresh then access.
    """
    for name in (config.refresh_cookie, config.access_cookie):
        response.delete_cookie(
            name,
            path="/",
            secure=config.cookie_secure,
            httponly=config.cookie_httponly,
            samesite=config.cookie_samesite,
        )
