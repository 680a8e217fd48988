"""인증 서비스 — 회원가입, 로그인, 프로필 조회 비즈니스 로직.

Auth Service — Business logic for registration, login and the current
user profile. Session issuance itself is delegated to the SessionAuthority.
"""

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user import User
from app.repositories.user_repository import user_repository
from app.schemas.auth import LoginRequest, RegisterRequest, UserMeResponse
from app.services.session_authority import SessionAuthority
from app.utils.cookies import IssuedSession
from app.utils.exceptions import BadRequestError
from app.utils.password import hash_password, verify_password


def _duplicate_error(exc: IntegrityError) -> dict[str, str]:
    """위반된 유니크 제약에서 오류 필드를 고릅니다 (users.username or profiles.display_name)."""
    if "display_name" in str(exc.orig):
        return {"field": "displayName", "msg": "Display name already exists."}
    return {"field": "username", "msg": "Username already exists."}


class AuthService:
    """인증 관련 비즈니스 로직을 처리하는 서비스.

    Service handling credential checks and account creation.
    Neither method commits; the route commits after the session cookies
    are prepared so user creation and session issuance succeed together.
    """

    async def register(
        self,
        db: AsyncSession,
        data: RegisterRequest,
        authority: SessionAuthority,
    ) -> IssuedSession:
        """회원가입을 처리합니다.

        Create a user with a profile and issue a session in one transaction.

        Args:
            db: 비동기 데이터베이스 세션 (Async database session)
            data: 검증된 회원가입 데이터 (Validated registration data)
            authority: 세션 발급자 (Session authority)

        Returns:
            IssuedSession: 새 자격 증명 쌍 (New credential pair)

        Raises:
            BadRequestError: 사용자명/표시 이름 중복 (Username or display name taken)
        """
        errors: list[dict[str, str]] = []
        if await user_repository.exists(db, {"username": data.username}):
            errors.append({"field": "username", "msg": "Username already exists."})
        if await user_repository.display_name_exists(db, data.display_name):
            errors.append({"field": "displayName", "msg": "Display name already exists."})
        if errors:
            raise BadRequestError("Registration failed", errors=errors)

        try:
            user: User = await user_repository.create_with_profile(
                db,
                username=data.username,
                password_hash=hash_password(data.password),
                display_name=data.display_name,
            )
        except IntegrityError as exc:
            # 동시 가입이 중복 검사를 통과한 경우 — a concurrent registration won the unique constraint
            await db.rollback()
            raise BadRequestError("Registration failed", errors=[_duplicate_error(exc)]) from exc
        return await authority.issue_session(db, user)

    async def login(
        self,
        db: AsyncSession,
        data: LoginRequest,
        authority: SessionAuthority,
    ) -> IssuedSession:
        """로그인을 처리합니다.

        Verify username and password, then issue a session.

        Raises:
            BadRequestError: 필드 누락 또는 잘못된 인증 정보 (Missing fields or bad credentials)
        """
        if not data.username or not data.password:
            raise BadRequestError("Username and password are required")

        user: User | None = await user_repository.get_by_username(db, data.username)
        if user is None or not verify_password(data.password, user.password_hash):
            raise BadRequestError("Invalid username or password")

        return await authority.issue_session(db, user)

    def get_me(self, user: User) -> UserMeResponse:
        return UserMeResponse(
            id=user.id,
            username=user.username,
            display_name=user.profile.display_name if user.profile else None,
        )


# 싱글턴 인스턴스 — Singleton instance
auth_service: AuthService = AuthService()
