"""사용자 레포지토리 — 사용자/프로필 조회 및 생성.

User Repository — User and profile lookup and creation.
Extends BaseRepository with User-specific database operations.
"""

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models.user import Profile, User
from app.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """사용자 테이블에 대한 데이터베이스 쿼리를 담당하는 레포지토리.

    Repository handling database queries for the users table.
    """

    def __init__(self) -> None:
        super().__init__(User)

    async def get_by_id(self, db: AsyncSession, record_id: int) -> User | None:
        """프로필을 함께 로드하여 사용자를 조회합니다.

        Retrieve a user by id with the profile eager-loaded.
        """
        query: Select = (
            select(User)
            .options(selectinload(User.profile))
            .where(User.id == record_id)
        )
        result = await db.execute(query)
        return result.scalar_one_or_none()

    async def get_by_username(self, db: AsyncSession, username: str) -> User | None:
        """사용자명으로 사용자를 조회합니다.

        Retrieve a user by username.
        """
        query: Select = (
            select(User)
            .options(selectinload(User.profile))
            .where(User.username == username)
        )
        result = await db.execute(query)
        return result.scalar_one_or_none()

    async def display_name_exists(self, db: AsyncSession, display_name: str) -> bool:
        result = await db.execute(
            select(Profile.id).where(Profile.display_name == display_name)
        )
        return result.first() is not None

    async def create_with_profile(
        self,
        db: AsyncSession,
        username: str,
        password_hash: str,
        display_name: str,
    ) -> User:
        """사용자와 프로필을 같은 트랜잭션에서 생성합니다.

        Create a user and its profile in the caller's transaction.
        Nothing is committed here; the route commits once the session
        has been issued as well.

        Args:
            db: 비동기 데이터베이스 세션 (Async database session)
            username: 로그인 아이디 (Login username)
            password_hash: bcrypt 해시 (bcrypt hash)
            display_name: 표시 이름 (Profile display name)

        Returns:
            User: 생성된 사용자 (Created user with profile attached)
        """
        user: User = User(
            username=username,
            password_hash=password_hash,
            profile=Profile(display_name=display_name),
        )
        db.add(user)
        await db.flush()
        return user


# 싱글턴 인스턴스 — Singleton instance
user_repository: UserRepository = UserRepository()
