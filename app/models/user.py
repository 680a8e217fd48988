"""사용자 및 프로필 관련 SQLAlchemy ORM 모델 정의.

User and Profile SQLAlchemy ORM model definitions.

Tables:
    - users: 사용자 계정 (User accounts, login credentials)
    - profiles: 공개 프로필 (Public profile, created together with the user)
"""

from datetime import datetime, timezone
from sqlalchemy import String, DateTime, Integer, ForeignKey, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base


class User(Base):
    """사용자 모델 — 로그인 계정 정보.

    User model — Login account information.
    The session authority only reads users; it never mutates them.

    Attributes:
        id: 정수 기본키 (Integer primary key)
        username: 로그인 아이디, 전역 고유 (Login username, globally unique)
        password_hash: bcrypt 해시된 비밀번호 (bcrypt-hashed password)
        created_at: 생성 일시 UTC (Creation timestamp)

    Relationships:
        profile: 공개 프로필 (One-to-one public profile)
        refresh_tokens: 리프레시 토큰 목록 (Live refresh tokens, cascade delete)
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # 로그인 아이디 — Login username (1-20자, 영문/숫자/./_)
    username: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    # 비밀번호 해시 — bcrypt hashed password (평문 저장 금지, never store plaintext)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    # 관계 — Relationships
    profile = relationship("Profile", back_populates="user", uselist=False, cascade="all, delete-orphan")
    refresh_tokens = relationship("RefreshToken", back_populates="user", cascade="all, delete-orphan")


class Profile(Base):
    """프로필 모델 — 다른 사용자에게 보이는 정보.

    Profile model — Information visible to other users.
    Created in the same transaction as the owning user at registration.
    """

    __tablename__ = "profiles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    # 표시 이름 — Display name (전역 고유, globally unique)
    display_name: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    bio: Mapped[str | None] = mapped_column(Text, nullable=True)

    user = relationship("User", back_populates="profile")
