"""JWT 액세스 토큰 생성 및 검증 유틸리티 모듈.

JWT access credential creation and verification utility module.
Only the short-lived access credential is a JWT; refresh credentials are
opaque database ids and never pass through this module.

JWT Payload Structure:
    {
        "sub": "42",          # 사용자 ID 문자열 (User id as string)
        "exp": 1234567890,    # 만료 시간 UNIX timestamp (Expiration)
        "type": "access"      # 토큰 유형 (Token type discriminator)
    }
"""

from datetime import datetime, timezone
from typing import Any
import jwt

from app.config import SessionConfig


def create_access_token(user_id: int, config: SessionConfig, now: datetime | None = None) -> str:
    """JWT 액세스 토큰을 생성합니다.

    Generate a signed access token for the given user.
    Token expires after ``config.access_ttl`` (default: 30 min).

    Args:
        user_id: 토큰 주체 사용자 ID (Subject user id)
        config: 서명 키와 만료 시간을 담은 세션 설정 (Session config with secret and TTL)
        now: 발급 기준 시각, 테스트용 (Issuance time, overridable for tests)

    Returns:
        str: 인코딩된 JWT 문자열 (Encoded JWT token string)
    """
    issued_at: datetime = now or datetime.now(timezone.utc)
    payload: dict[str, Any] = {
        "sub": str(user_id),
        "exp": issued_at + config.access_ttl,
        "type": "access",
    }
    return jwt.encode(payload, config.secret_key, algorithm=config.algorithm)


def decode_token(token: str, config: SessionConfig) -> dict[str, Any]:
    """JWT 토큰을 디코딩하고 검증합니다.

    Decode and verify a JWT token string.

    Raises:
        jwt.ExpiredSignatureError: 토큰 만료 시 (When token has expired)
        jwt.InvalidTokenError: 서명 불일치 또는 형식 오류 (Bad signature or malformed token)
        jwt.MissingRequiredClaimError: exp 또는 sub 누락 (Missing exp or sub claim)
    """
    return jwt.decode(
        token,
        config.secret_key,
        algorithms=[config.algorithm],
        options={"require": ["exp", "sub"]},
    )
