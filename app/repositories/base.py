"""공통 레포지토리 — 사용자/토큰 레포지토리의 부모 클래스.

Shared repository base for the user and refresh token repositories.
Only the lookups both of them need live here; anything with session
semantics (consume, sweep) belongs to the concrete repository.

Usage:
    class AuthRepository(BaseRepository[RefreshToken]):
        def __init__(self) -> None:
            super().__init__(RefreshToken)
"""

from typing import Any, Generic, TypeVar

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """모델 하나에 묶인 레포지토리.

    Repository bound to one mapped model. Users are keyed by integer ids,
    refresh tokens by their opaque string value.

    Attributes:
        model: SQLAlchemy 모델 클래스 (Mapped model class)
    """

    def __init__(self, model: type[ModelType]) -> None:
        self.model: type[ModelType] = model

    async def get_by_id(self, db: AsyncSession, record_id: int | str) -> ModelType | None:
        """기본 키로 레코드를 조회합니다 (None if absent)."""
        query: Select = select(self.model).where(self.model.id == record_id)
        return (await db.execute(query)).scalar_one_or_none()

    async def create(self, db: AsyncSession, obj_data: dict[str, Any]) -> ModelType:
        """레코드를 추가하고 flush합니다.

        Add and flush a new row so generated defaults (ids) are populated.
        Commit is left to the caller so several writes share one transaction.

        Args:
            db: 비동기 데이터베이스 세션 (Async database session)
            obj_data: 컬럼 값 딕셔너리 (Column values)

        Returns:
            ModelType: 저장된 레코드 (Persisted, not yet committed, record)
        """
        record: ModelType = self.model(**obj_data)
        db.add(record)
        await db.flush()
        await db.refresh(record)
        return record

    async def exists(self, db: AsyncSession, filters: dict[str, Any]) -> bool:
        """컬럼 값이 모두 일치하는 레코드가 있는지 확인합니다.

        Unknown column names raise ``AttributeError`` rather than being
        silently ignored.
        """
        query: Select = select(self.model.id)
        for column_name, value in filters.items():
            query = query.where(getattr(self.model, column_name) == value)
        found = (await db.execute(query.limit(1))).first()
        return found is not None
