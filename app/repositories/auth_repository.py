"""인증 레포지토리 — 리프레시 토큰 저장소.

Auth Repository — Refresh token store.
Every mutation is a single SQL statement so concurrent requests can race
on the same row without a multi-step transaction.
"""

from datetime import datetime

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.token import RefreshToken
from app.repositories.base import BaseRepository


class AuthRepository(BaseRepository[RefreshToken]):
    """리프레시 토큰 수명 주기를 담당하는 레포지토리.

    Repository handling the refresh token lifecycle: creation, single-use
    consumption, revocation and expiry sweeps.
    """

    def __init__(self) -> None:
        super().__init__(RefreshToken)

    async def create_refresh_token(
        self,
        db: AsyncSession,
        user_id: int,
        expires: datetime,
    ) -> RefreshToken:
        """새 리프레시 토큰을 생성합니다.

        Create a new refresh token record. The id is generated randomly
        by the model default.

        Args:
            db: 비동기 데이터베이스 세션 (Async database session)
            user_id: 토큰 소유자 사용자 ID (Token owner user id)
            expires: 토큰 만료 일시 (Token expiration timestamp)

        Returns:
            RefreshToken: 생성된 리프레시 토큰 레코드 (Created refresh token record)
        """
        return await self.create(db, {"user_id": user_id, "expires": expires})

    async def get_refresh_token(
        self,
        db: AsyncSession,
        token_id: str,
    ) -> RefreshToken | None:
        """토큰 값으로 레코드를 조회합니다 (만료 여부 무관).

        Retrieve a refresh token record by its value, expired or not.
        """
        return await self.get_by_id(db, token_id)

    async def consume_refresh_token(
        self,
        db: AsyncSession,
        token_id: str,
        now: datetime,
    ) -> int | None:
        """유효한 토큰을 원자적으로 삭제하고 소유자 ID를 반환합니다.

        Atomically delete a still-valid refresh token and return its owner.
        Of several concurrent calls with the same value, only the one whose
        DELETE removed the row gets an owner back.

        Args:
            db: 비동기 데이터베이스 세션 (Async database session)
            token_id: 클라이언트가 보낸 토큰 값 (Token value presented by the client)
            now: 기준 시각 UTC (Reference time, UTC)

        Returns:
            int | None: 삭제된 토큰의 소유자 ID, 없거나 만료면 None
                        (Owner id of the deleted token; None if unknown or expired)
        """
        stmt = (
            delete(RefreshToken)
            .where(RefreshToken.id == token_id, RefreshToken.expires > now)
            .returning(RefreshToken.user_id)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    async def delete_refresh_token(
        self,
        db: AsyncSession,
        token_id: str,
        user_id: int | None = None,
    ) -> bool:
        """리프레시 토큰을 삭제합니다.

        Delete a specific refresh token by its value, optionally only when
        it belongs to ``user_id``.

        Returns:
            bool: 삭제 여부 (Whether a row was deleted)
        """
        stmt = delete(RefreshToken).where(RefreshToken.id == token_id)
        if user_id is not None:
            stmt = stmt.where(RefreshToken.user_id == user_id)
        stmt = stmt.execution_options(synchronize_session=False)
        result = await db.execute(stmt)
        return result.rowcount > 0

    async def delete_user_refresh_tokens(
        self,
        db: AsyncSession,
        user_id: int,
    ) -> int:
        """특정 사용자의 모든 리프레시 토큰을 삭제합니다.

        Delete all refresh tokens for a specific user (logout from all devices).

        Returns:
            int: 삭제된 행 수 (Number of rows deleted)
        """
        stmt = (
            delete(RefreshToken)
            .where(RefreshToken.user_id == user_id)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        return result.rowcount

    async def delete_expired_refresh_tokens(
        self,
        db: AsyncSession,
        now: datetime,
    ) -> int:
        """만료된 리프레시 토큰을 모두 삭제합니다 (expires <= now).

        Delete every refresh token whose expiry has passed.

        Returns:
            int: 삭제된 행 수 (Number of rows deleted)
        """
        stmt = (
            delete(RefreshToken)
            .where(RefreshToken.expires <= now)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        return result.rowcount


# 싱글턴 인스턴스 — Singleton instance
auth_repository: AuthRepository = AuthRepository()
