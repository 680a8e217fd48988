"""테스트 인프라 — 임시 SQLite DB, 세션, httpx 클라이언트 픽스처.

Test infrastructure — Temporary SQLite DB, session, and httpx client fixtures.
Each test gets its own database file so sessions opened by the middleware
and by the routes see the same committed data.
"""

from collections.abc import AsyncGenerator
from datetime import datetime, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient, Response
from sqlalchemy import event, func, select
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from app.config import SessionConfig, Settings
from app.database import Base
from app.main import create_app
from app.models import *  # noqa: F401,F403 — register all models with metadata
from app.models.token import RefreshToken
from app.models.user import Profile, User
from app.services.session_authority import SessionAuthority
from app.utils.password import hash_password

# ---------------------------------------------------------------------------
# 테스트 설정
# ---------------------------------------------------------------------------
TEST_SETTINGS = Settings(
    _env_file=None,
    DATABASE_URL="sqlite+aiosqlite://",
    JWT_SECRET_KEY="test-secret-key",
    SWEEP_ON_REQUEST=True,
    SWEEP_INTERVAL_SECONDS=0,
    AXIOM_API_TOKEN="",
    AXIOM_DATASET="",
)
TEST_CONFIG: SessionConfig = SessionConfig.from_settings(TEST_SETTINGS)

PENNY_PASSWORD = "pen@5Apple"
SAM_PASSWORD = "guitar$69Sam"


# ---------------------------------------------------------------------------
# Function-scoped: 엔진, 세션, 앱, 클라이언트
# ---------------------------------------------------------------------------
@pytest_asyncio.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """테스트용 async 엔진. 테스트마다 새 DB 파일에 스키마를 생성합니다."""
    eng = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")

    # SQLite는 FK(ON DELETE CASCADE)를 기본으로 끔 — enable FK enforcement
    @event.listens_for(eng.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """각 테스트에 격리된 DB 세션을 제공합니다."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def authority() -> SessionAuthority:
    return SessionAuthority(TEST_CONFIG)


@pytest_asyncio.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """FastAPI 테스트 클라이언트 — 테스트 DB 세션 팩토리로 앱을 생성합니다.

    HTTPS base URL so that Secure cookies are accepted by the cookie jar.
    """
    app = create_app(TEST_SETTINGS, session_factory)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="https://test") as ac:
        yield ac


# ---------------------------------------------------------------------------
# 헬퍼 픽스처: 테스트용 데이터 생성
# ---------------------------------------------------------------------------
async def _create_user(db: AsyncSession, username: str, password: str, display_name: str) -> User:
    user = User(
        username=username,
        password_hash=hash_password(password),
        profile=Profile(display_name=display_name),
    )
    db.add(user)
    await db.commit()
    return user


@pytest_asyncio.fixture
async def penny(db: AsyncSession) -> User:
    return await _create_user(db, "penny", PENNY_PASSWORD, "Penny")


@pytest_asyncio.fixture
async def sam(db: AsyncSession) -> User:
    return await _create_user(db, "sam1", SAM_PASSWORD, "Sam")


# ---------------------------------------------------------------------------
# 헬퍼 함수
# ---------------------------------------------------------------------------
def set_cookie_names(res: Response) -> list[str]:
    """응답의 Set-Cookie 헤더 이름을 순서대로 반환합니다."""
    return [header.split(";")[0].split("=")[0] for header in res.headers.get_list("set-cookie")]


def set_cookie_values(res: Response) -> dict[str, str]:
    """응답의 Set-Cookie 이름/값 딕셔너리."""
    values: dict[str, str] = {}
    for header in res.headers.get_list("set-cookie"):
        name, _, value = header.split(";")[0].partition("=")
        values[name] = value.strip('"')
    return values


def cookie_header(**cookies: str) -> dict[str, str]:
    return {"Cookie": "; ".join(f"{name}={value}" for name, value in cookies.items())}


async def login(client: AsyncClient, username: str = "penny", password: str = PENNY_PASSWORD) -> dict[str, str]:
    """로그인 후 발급된 쿠키 값을 반환하고 쿠키 저장소를 비웁니다.

    Log in and return the issued cookie values. The client's cookie jar is
    cleared so each test sends exactly the cookies it chooses.
    """
    res = await client.post("/login", json={"username": username, "password": password})
    assert res.status_code == 200
    client.cookies.clear()
    return set_cookie_values(res)


async def count_tokens(session_factory, user_id: int | None = None) -> int:
    """리프레시 토큰 행 수를 새 세션으로 조회합니다."""
    async with session_factory() as session:
        query = select(func.count()).select_from(RefreshToken)
        if user_id is not None:
            query = query.where(RefreshToken.user_id == user_id)
        return (await session.execute(query)).scalar() or 0


async def token_exists(session_factory, token_id: str) -> bool:
    async with session_factory() as session:
        return await session.get(RefreshToken, token_id) is not None


def as_utc(value: datetime) -> datetime:
    """SQLite는 tz 정보를 저장하지 않음 — SQLite drops tzinfo; values are stored as UTC."""
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
