"""FastAPI 애플리케이션 엔트리포인트 — 미들웨어 및 라우터 등록.

FastAPI application entry point — Middleware and router registration.
Configures CORS, request logging, the session middleware and the routers.
"""

import asyncio
import contextlib
from collections.abc import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.api.auth import router as auth_router
from app.config import SessionConfig, Settings, settings as default_settings
from app.database import async_session
from app.middleware.axiom_logging import AxiomLoggingMiddleware
from app.middleware.session import SessionMiddleware
from app.schemas.common import HealthResponse
from app.services.session_authority import SessionAuthority
from app.tasks.cleanup import run_periodic_sweep
from app.utils.exceptions import register_exception_handlers


def create_app(
    settings: Settings | None = None,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> FastAPI:
    """애플리케이션 팩토리.

    Application factory. Tests pass their own settings and session factory;
    production uses the module-level defaults.

    Args:
        settings: 애플리케이션 설정 (Application settings)
        session_factory: DB 세션 팩토리 (Database session factory)

    Returns:
        FastAPI: 구성된 애플리케이션 (Configured application)
    """
    settings = settings or default_settings
    session_factory = session_factory or async_session
    authority: SessionAuthority = SessionAuthority(SessionConfig.from_settings(settings))

    @contextlib.asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        sweeper: asyncio.Task | None = None
        if settings.SWEEP_INTERVAL_SECONDS > 0:
            sweeper = asyncio.create_task(
                run_periodic_sweep(session_factory, authority, settings.SWEEP_INTERVAL_SECONDS)
            )
        try:
            yield
        finally:
            if sweeper is not None:
                sweeper.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await sweeper

    app: FastAPI = FastAPI(
        title=settings.APP_NAME,
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.authority = authority
    app.state.session_factory = session_factory

    register_exception_handlers(app)

    # 세션 미들웨어 — 가장 안쪽, 모든 라우트보다 먼저 신원 확인
    # Session middleware — innermost, resolves identity before any route
    app.add_middleware(
        SessionMiddleware,
        authority=authority,
        session_factory=session_factory,
        sweep_on_request=settings.SWEEP_ON_REQUEST,
    )

    # Axiom API 로깅 미들웨어 — Axiom API request/response logging
    app.add_middleware(AxiomLoggingMiddleware, settings=settings)

    # CORS 미들웨어 — 쿠키 전송을 위해 credentials 허용 (Credentials needed for cookies)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.FRONTEND_URL],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health", response_model=HealthResponse)
    async def health_check() -> HealthResponse:
        """서버 상태 확인 엔드포인트.

        Health check endpoint for load balancers and monitoring.
        """
        return HealthResponse()

    app.include_router(auth_router, tags=["Auth"])
    return app


app: FastAPI = create_app()
