"""만료 리프레시 토큰 주기적 정리 작업.

Periodic expired refresh token cleanup.
Started from the application lifespan when SWEEP_INTERVAL_SECONDS > 0.
"""

import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.services.session_authority import SessionAuthority

logger = logging.getLogger(__name__)


async def run_periodic_sweep(
    session_factory: async_sessionmaker[AsyncSession],
    authority: SessionAuthority,
    interval_seconds: float,
) -> None:
    """interval_seconds 마다 만료 토큰을 정리합니다. 취소될 때까지 실행.

    Sweep expired refresh tokens every ``interval_seconds`` until cancelled.
    Sweep failures are logged by ``safe_sweep`` and never stop the loop.
    """
    logger.info("Expired refresh token sweep scheduled every %ss", interval_seconds)
    while True:
        await authority.safe_sweep(session_factory)
        await asyncio.sleep(interval_seconds)
