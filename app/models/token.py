"""리프레시 토큰 모델 — 서버에 저장되는 세션 레코드.

Refresh Token model — Server-persisted session record.
The row id itself is the opaque credential handed to the client.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base


def generate_token_id() -> str:
    """추측 불가능한 토큰 값을 생성합니다 (UUID4, 122비트 난수).

    Generate an unguessable token value (UUID4, 122 random bits).
    """
    return str(uuid.uuid4())


class RefreshToken(Base):
    """리프레시 토큰 테이블.

    Refresh token table. One row is one live "remember me" session.
    A row is valid while ``now < expires`` and is deleted exactly once
    when it is used for rotation.

    Attributes:
        id: 토큰 값이자 기본키 (Token value, also the primary key)
        user_id: 소유 사용자 ID (Owner user id)
        expires: 만료 일시, 발급 시 고정 (Expiration timestamp, fixed at issuance)
    """

    __tablename__ = "refresh_tokens"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_token_id)
    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    expires: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)

    # Relationships
    user = relationship("User", back_populates="refresh_tokens")
