"""세션 권한 서비스 — 자격 증명 발급, 검증, 교체, 폐기.

Session Authority — Issues, validates, rotates and revokes the credential
pair bound to a user: a short-lived signed access credential and a
long-lived, single-use refresh credential stored server-side.

Resolution Flow (per request):
    1. 액세스 토큰 검증 → 유효하면 해당 사용자로 인증
       (Valid access credential → that user, no rotation)
    2. 실패 시 리프레시 토큰을 원자적으로 소비 → 새 토큰 쌍 발급
       (Otherwise consume the refresh credential atomically → mint a new pair)
    3. 둘 다 실패 → 익명 (Neither → anonymous; the route gate decides on 401)

Soft failures (bad signature, malformed, expired, unknown refresh) become
``Anonymous``. Store failures raise ``StoreUnavailableError``.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Union

import jwt
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import SessionConfig
from app.models.user import User
from app.repositories.auth_repository import AuthRepository, auth_repository
from app.repositories.user_repository import UserRepository, user_repository
from app.utils.cookies import IssuedSession
from app.utils.exceptions import StoreUnavailableError, UnauthorizedError
from app.utils.jwt import create_access_token, decode_token

logger = logging.getLogger(__name__)


class RevokeScope(str, Enum):
    """로그아웃 범위 (Logout scope)."""

    SINGLE = "single"  # 현재 요청의 리프레시 토큰만 (Only the presented refresh token)
    ALL = "all"  # 사용자의 모든 리프레시 토큰 (Every refresh token of the user)


@dataclass(frozen=True)
class Authenticated:
    """인증 성공 결과.

    Attributes:
        user: 인증된 사용자 (Resolved user)
        rotated: 리프레시 토큰으로 교체했는지 (Whether this request rotated the session)
        issued: 교체 시 새로 발급된 자격 증명 (New credentials when rotated)
    """

    user: User
    rotated: bool = False
    issued: IssuedSession | None = None


@dataclass(frozen=True)
class Anonymous:
    """인증된 사용자 없음 (No identity resolved)."""


IdentityResult = Union[Authenticated, Anonymous]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionAuthority:
    """요청 단위 세션 인증을 담당하는 서비스.

    Service resolving the identity attached to each request. Holds no
    mutable state of its own; the refresh token table is the single source
    of truth and arbitrates concurrent rotations.

    Attributes:
        config: 서명 키, 만료 시간, 쿠키 설정 (Signing key, TTLs, cookie flags)
    """

    def __init__(
        self,
        config: SessionConfig,
        tokens: AuthRepository = auth_repository,
        users: UserRepository = user_repository,
    ) -> None:
        self.config: SessionConfig = config
        self._tokens: AuthRepository = tokens
        self._users: UserRepository = users

    async def resolve_identity(
        self,
        db: AsyncSession,
        access_value: str | None = None,
        refresh_value: str | None = None,
    ) -> IdentityResult:
        """요청의 자격 증명으로 사용자를 확인합니다.

        Resolve the request identity from the access and refresh values.
        Rotation writes are left uncommitted; the caller commits.

        Args:
            db: 비동기 데이터베이스 세션 (Async database session)
            access_value: 액세스 쿠키 값 (Access cookie value, may be None)
            refresh_value: 리프레시 쿠키 값 (Refresh cookie value, may be None)

        Returns:
            IdentityResult: Authenticated 또는 Anonymous

        Raises:
            StoreUnavailableError: DB 조회/삭제/생성 실패 (Store failure)
        """
        try:
            if access_value:
                user: User | None = await self._user_from_access(db, access_value)
                if user is not None:
                    return Authenticated(user=user)
            if refresh_value:
                return await self._rotate(db, refresh_value)
        except SQLAlchemyError as exc:
            raise StoreUnavailableError("Session store failure during identity resolution") from exc
        return Anonymous()

    async def _user_from_access(self, db: AsyncSession, access_value: str) -> User | None:
        try:
            payload: dict = decode_token(access_value, self.config)
        except jwt.InvalidTokenError:
            # 위조/만료/형식 오류는 "없음"으로 취급 — tampered, expired or malformed counts as absent
            return None
        if payload.get("type") != "access":
            return None
        try:
            user_id: int = int(payload["sub"])
        except (KeyError, TypeError, ValueError):
            return None
        # 삭제된 사용자의 토큰은 리프레시 경로로 넘어감 — Deleted user falls through to refresh
        return await self._users.get_by_id(db, user_id)

    async def _rotate(self, db: AsyncSession, refresh_value: str) -> IdentityResult:
        owner_id: int | None = await self._tokens.consume_refresh_token(db, refresh_value, utcnow())
        if owner_id is None:
            return Anonymous()
        user: User | None = await self._users.get_by_id(db, owner_id)
        if user is None:
            return Anonymous()
        issued: IssuedSession = await self.issue_session(db, user)
        logger.info("Rotated refresh token for user %s", user.id)
        return Authenticated(user=user, rotated=True, issued=issued)

    async def issue_session(self, db: AsyncSession, user: User) -> IssuedSession:
        """새 리프레시 토큰 레코드와 액세스 토큰을 발급합니다.

        Create one refresh token row (now + 7 days) and one access token
        (now + 30 minutes). Runs in the caller's transaction so a failed
        registration never leaves a session behind.

        Args:
            db: 비동기 데이터베이스 세션 (Async database session)
            user: 세션 소유자 (Session owner)

        Returns:
            IssuedSession: 쿠키로 전달할 자격 증명 쌍 (Credential pair for the cookies)
        """
        now: datetime = utcnow()
        try:
            record = await self._tokens.create_refresh_token(
                db, user_id=user.id, expires=now + self.config.refresh_ttl
            )
        except SQLAlchemyError as exc:
            raise StoreUnavailableError("Could not persist refresh token") from exc
        return IssuedSession(
            refresh_token=record.id,
            access_token=create_access_token(user.id, self.config, now=now),
        )

    def require_identity(self, result: IdentityResult | None) -> User:
        """인증이 필요한 라우트의 게이트.

        Gate for routes that need a user. Anything but ``Authenticated``
        is rejected with 401.
        """
        if isinstance(result, Authenticated):
            return result.user
        raise UnauthorizedError()

    async def revoke_session(
        self,
        db: AsyncSession,
        user: User,
        scope: RevokeScope,
        refresh_value: str | None = None,
    ) -> int:
        """세션을 폐기합니다.

        Revoke sessions of ``user``. SINGLE removes only the row matching
        ``refresh_value`` (and only if the user owns it); ALL removes every
        row the user owns. Cookie clearing is the caller's job and happens
        whether or not anything was deleted.

        Returns:
            int: 삭제된 행 수 (Number of rows deleted)
        """
        try:
            if scope is RevokeScope.ALL:
                deleted: int = await self._tokens.delete_user_refresh_tokens(db, user.id)
            elif refresh_value:
                removed: bool = await self._tokens.delete_refresh_token(db, refresh_value, user_id=user.id)
                deleted = int(removed)
            else:
                deleted = 0
        except SQLAlchemyError as exc:
            raise StoreUnavailableError("Session store failure during revocation") from exc
        logger.info("Revoked %d refresh token(s) for user %s (scope=%s)", deleted, user.id, scope.value)
        return deleted

    async def sweep_expired(self, db: AsyncSession) -> int:
        """만료된 리프레시 토큰을 삭제합니다 (expires <= now UTC).

        Delete every expired refresh token. Idempotent.

        Returns:
            int: 삭제된 행 수 (Number of rows deleted)
        """
        try:
            return await self._tokens.delete_expired_refresh_tokens(db, utcnow())
        except SQLAlchemyError as exc:
            raise StoreUnavailableError("Session store failure during sweep") from exc

    async def safe_sweep(self, session_factory: async_sessionmaker[AsyncSession]) -> int:
        """자체 세션에서 정리를 실행하고, 실패는 기록만 합니다.

        Run ``sweep_expired`` in its own session and commit. Failures are
        logged and reported as zero rows.
        """
        try:
            async with session_factory() as db:
                count: int = await self.sweep_expired(db)
                await db.commit()
        except Exception:
            logger.exception("Expired refresh token sweep failed")
            return 0
        if count:
            logger.info("Swept %d expired refresh token(s)", count)
        return count
