"""세션 권한 서비스 테스트 — 발급, 확인, 교체, 폐기, 정리.

SessionAuthority tests — issuance, resolution, rotation, revocation, sweep.
Exercises the service directly against the test database.
"""

import asyncio
import contextlib
import logging
from datetime import datetime, timedelta, timezone

import jwt
import pytest
from sqlalchemy.exc import OperationalError

from app.repositories.auth_repository import AuthRepository, auth_repository
from app.services.session_authority import (
    Anonymous,
    Authenticated,
    RevokeScope,
    SessionAuthority,
)
from app.tasks.cleanup import run_periodic_sweep
from app.utils.exceptions import StoreUnavailableError, UnauthorizedError
from app.utils.jwt import create_access_token, decode_token

from tests.conftest import TEST_CONFIG, as_utc, count_tokens, token_exists


def _past(**delta) -> datetime:
    return datetime.now(timezone.utc) - timedelta(**delta)


class _BrokenTokenStore(AuthRepository):
    """모든 토큰 조회가 실패하는 저장소 (Token store that is always down)."""

    async def consume_refresh_token(self, db, token_id, now):
        raise OperationalError("DELETE FROM refresh_tokens", {}, Exception("connection refused"))

    async def delete_expired_refresh_tokens(self, db, now):
        raise OperationalError("DELETE FROM refresh_tokens", {}, Exception("connection refused"))


# ===== issue_session =====

class TestIssueSession:
    """세션 발급 테스트."""

    async def test_creates_exactly_one_row(self, db, session_factory, authority, penny):
        """발급 시 해당 사용자의 리프레시 토큰이 정확히 하나 생성."""
        issued = await authority.issue_session(db, penny)
        await db.commit()

        assert await count_tokens(session_factory, penny.id) == 1
        assert await token_exists(session_factory, issued.refresh_token)

    async def test_access_token_claims(self, db, authority, penny):
        """액세스 토큰의 sub 클레임이 사용자 ID와 일치."""
        issued = await authority.issue_session(db, penny)
        payload = decode_token(issued.access_token, TEST_CONFIG)
        assert payload["sub"] == str(penny.id)
        assert payload["type"] == "access"

    async def test_refresh_expiry_is_seven_days(self, db, authority, penny):
        """리프레시 토큰 만료는 발급 시점 + 7일."""
        before = datetime.now(timezone.utc)
        issued = await authority.issue_session(db, penny)
        await db.commit()

        record = await auth_repository.get_refresh_token(db, issued.refresh_token)
        expires = as_utc(record.expires)
        assert before + timedelta(days=7) - timedelta(seconds=5) <= expires
        assert expires <= datetime.now(timezone.utc) + timedelta(days=7)

    async def test_tokens_are_unique_per_issue(self, db, authority, penny):
        first = await authority.issue_session(db, penny)
        second = await authority.issue_session(db, penny)
        assert first.refresh_token != second.refresh_token


# ===== resolve_identity =====

class TestResolveIdentity:
    """신원 확인 테스트."""

    async def test_no_credentials(self, db, authority):
        """자격 증명 없음 → 익명."""
        assert isinstance(await authority.resolve_identity(db), Anonymous)

    async def test_valid_access(self, db, session_factory, authority, penny):
        """유효한 액세스 토큰 → 교체 없이 인증."""
        issued = await authority.issue_session(db, penny)
        await db.commit()

        result = await authority.resolve_identity(db, issued.access_token, issued.refresh_token)
        assert isinstance(result, Authenticated)
        assert result.user.id == penny.id
        assert result.rotated is False
        assert result.issued is None
        # 리프레시 토큰은 소비되지 않음 — refresh token untouched
        assert await token_exists(session_factory, issued.refresh_token)

    async def test_tampered_access_without_refresh(self, db, authority, penny):
        """서명이 틀린 액세스 토큰 → 오류가 아닌 익명."""
        forged = jwt.encode({"sub": str(penny.id), "type": "access"}, "other-secret", algorithm="HS256")
        assert isinstance(await authority.resolve_identity(db, forged), Anonymous)

    async def test_garbage_access(self, db, authority):
        assert isinstance(await authority.resolve_identity(db, "blah"), Anonymous)

    async def test_expired_access_without_refresh(self, db, authority, penny):
        expired = create_access_token(penny.id, TEST_CONFIG, now=_past(hours=1))
        assert isinstance(await authority.resolve_identity(db, expired), Anonymous)

    async def test_access_for_missing_user(self, db, authority):
        """삭제된 사용자를 가리키는 액세스 토큰 → 익명으로 처리."""
        orphan = create_access_token(9999, TEST_CONFIG)
        assert isinstance(await authority.resolve_identity(db, orphan), Anonymous)

    async def test_wrong_token_type(self, db, authority, penny):
        token = jwt.encode(
            {"sub": str(penny.id), "type": "refresh", "exp": datetime.now(timezone.utc) + timedelta(minutes=5)},
            TEST_CONFIG.secret_key,
            algorithm=TEST_CONFIG.algorithm,
        )
        assert isinstance(await authority.resolve_identity(db, token), Anonymous)

    async def test_access_without_expiry(self, db, authority, penny):
        """exp 클레임이 없는 토큰은 서명이 맞아도 익명."""
        token = jwt.encode(
            {"sub": str(penny.id), "type": "access"},
            TEST_CONFIG.secret_key,
            algorithm=TEST_CONFIG.algorithm,
        )
        assert isinstance(await authority.resolve_identity(db, token), Anonymous)

    async def test_access_without_subject(self, db, authority):
        token = jwt.encode(
            {"type": "access", "exp": datetime.now(timezone.utc) + timedelta(minutes=5)},
            TEST_CONFIG.secret_key,
            algorithm=TEST_CONFIG.algorithm,
        )
        assert isinstance(await authority.resolve_identity(db, token), Anonymous)

    async def test_expired_access_rotates_with_refresh(self, db, session_factory, authority, penny):
        """만료된 액세스 + 유효한 리프레시 → 교체 후 인증."""
        issued = await authority.issue_session(db, penny)
        await db.commit()
        expired = create_access_token(penny.id, TEST_CONFIG, now=_past(hours=1))

        result = await authority.resolve_identity(db, expired, issued.refresh_token)
        await db.commit()

        assert isinstance(result, Authenticated)
        assert result.rotated is True
        assert result.user.id == penny.id
        assert result.issued.refresh_token != issued.refresh_token
        assert not await token_exists(session_factory, issued.refresh_token)
        assert await token_exists(session_factory, result.issued.refresh_token)
        assert await count_tokens(session_factory, penny.id) == 1
        assert decode_token(result.issued.access_token, TEST_CONFIG)["sub"] == str(penny.id)

    async def test_refresh_is_single_use(self, db, authority, penny):
        """같은 리프레시 토큰으로 두 번째 교체는 불가."""
        issued = await authority.issue_session(db, penny)
        await db.commit()

        first = await authority.resolve_identity(db, None, issued.refresh_token)
        await db.commit()
        second = await authority.resolve_identity(db, None, issued.refresh_token)

        assert isinstance(first, Authenticated)
        assert isinstance(second, Anonymous)

    async def test_concurrent_replay_rotates_once(self, db, session_factory, authority, penny):
        """동시에 같은 리프레시 토큰 사용 → 정확히 한 번만 교체."""
        issued = await authority.issue_session(db, penny)
        await db.commit()

        async def attempt():
            async with session_factory() as session:
                result = await authority.resolve_identity(session, None, issued.refresh_token)
                await session.commit()
                return result

        results = await asyncio.gather(attempt(), attempt())

        assert sorted(type(r).__name__ for r in results) == ["Anonymous", "Authenticated"]
        assert await count_tokens(session_factory, penny.id) == 1

    async def test_unknown_refresh(self, db, authority, penny):
        assert isinstance(await authority.resolve_identity(db, None, "fakeToken"), Anonymous)

    async def test_tampered_refresh(self, db, authority, penny):
        """리프레시 토큰 한 글자 변조 → 익명."""
        issued = await authority.issue_session(db, penny)
        await db.commit()
        value = issued.refresh_token
        tampered = value[:-1] + ("0" if value[-1] != "0" else "1")

        assert isinstance(await authority.resolve_identity(db, None, tampered), Anonymous)

    async def test_expired_refresh(self, db, session_factory, authority, penny):
        """만료된 리프레시 토큰 → 교체 없이 익명."""
        record = await auth_repository.create_refresh_token(db, penny.id, _past(minutes=1))
        await db.commit()

        assert isinstance(await authority.resolve_identity(db, None, record.id), Anonymous)

    async def test_store_failure_propagates(self, db, penny):
        """저장소 장애는 익명으로 바뀌지 않고 StoreUnavailableError로 전파."""
        broken = SessionAuthority(TEST_CONFIG, tokens=_BrokenTokenStore())
        with pytest.raises(StoreUnavailableError):
            await broken.resolve_identity(db, None, "any-refresh-value")


# ===== require_identity =====

class TestRequireIdentity:
    """인증 게이트 테스트."""

    def test_anonymous_rejected(self, authority):
        with pytest.raises(UnauthorizedError) as exc_info:
            authority.require_identity(Anonymous())
        assert exc_info.value.status_code == 401

    def test_none_rejected(self, authority):
        with pytest.raises(UnauthorizedError):
            authority.require_identity(None)

    def test_authenticated_passes(self, authority, penny):
        assert authority.require_identity(Authenticated(user=penny)) is penny


# ===== revoke_session =====

class TestRevokeSession:
    """세션 폐기 테스트."""

    async def test_all_scope_deletes_every_user_row(self, db, session_factory, authority, penny, sam):
        """전체 로그아웃 — 제시되지 않은 토큰까지 사용자 토큰 모두 삭제."""
        for _ in range(3):
            await authority.issue_session(db, penny)
        await authority.issue_session(db, sam)
        await db.commit()

        deleted = await authority.revoke_session(db, penny, RevokeScope.ALL)
        await db.commit()

        assert deleted == 3
        assert await count_tokens(session_factory, penny.id) == 0
        assert await count_tokens(session_factory, sam.id) == 1

    async def test_single_scope_deletes_presented_row(self, db, session_factory, authority, penny):
        """단일 로그아웃 — 제시된 토큰만 삭제."""
        current = await authority.issue_session(db, penny)
        other = await authority.issue_session(db, penny)
        await db.commit()

        deleted = await authority.revoke_session(db, penny, RevokeScope.SINGLE, current.refresh_token)
        await db.commit()

        assert deleted == 1
        assert not await token_exists(session_factory, current.refresh_token)
        assert await token_exists(session_factory, other.refresh_token)

    async def test_single_scope_without_refresh(self, db, session_factory, authority, penny):
        await authority.issue_session(db, penny)
        await db.commit()

        assert await authority.revoke_session(db, penny, RevokeScope.SINGLE, None) == 0
        assert await count_tokens(session_factory, penny.id) == 1

    async def test_single_scope_ignores_foreign_token(self, db, session_factory, authority, penny, sam):
        """다른 사용자의 토큰은 삭제하지 않음."""
        sams = await authority.issue_session(db, sam)
        await db.commit()

        assert await authority.revoke_session(db, penny, RevokeScope.SINGLE, sams.refresh_token) == 0
        assert await token_exists(session_factory, sams.refresh_token)


# ===== sweep_expired =====

class TestSweepExpired:
    """만료 토큰 정리 테스트."""

    async def test_sweep_is_idempotent(self, db, session_factory, authority, penny):
        """두 번째 정리는 0건."""
        await auth_repository.create_refresh_token(db, penny.id, _past(days=1))
        await auth_repository.create_refresh_token(db, penny.id, _past(seconds=1))
        live = await authority.issue_session(db, penny)
        await db.commit()

        assert await authority.sweep_expired(db) == 2
        await db.commit()
        assert await authority.sweep_expired(db) == 0
        await db.commit()

        assert await token_exists(session_factory, live.refresh_token)
        assert await count_tokens(session_factory) == 1

    async def test_safe_sweep_commits(self, db, session_factory, authority, penny):
        await auth_repository.create_refresh_token(db, penny.id, _past(hours=2))
        await db.commit()

        assert await authority.safe_sweep(session_factory) == 1
        assert await count_tokens(session_factory) == 0

    async def test_safe_sweep_swallows_failures(self, session_factory, caplog):
        """정리 실패는 기록만 하고 전파하지 않음."""
        broken = SessionAuthority(TEST_CONFIG, tokens=_BrokenTokenStore())
        with caplog.at_level(logging.ERROR, logger="app.services.session_authority"):
            assert await broken.safe_sweep(session_factory) == 0
        assert "sweep failed" in caplog.text


# ===== run_periodic_sweep =====

class TestPeriodicSweep:
    """주기적 정리 작업 테스트."""

    async def test_periodic_sweep_removes_expired(self, db, session_factory, authority, penny):
        await auth_repository.create_refresh_token(db, penny.id, _past(minutes=10))
        await db.commit()

        task = asyncio.create_task(run_periodic_sweep(session_factory, authority, 0.01))
        try:
            for _ in range(100):
                if await count_tokens(session_factory) == 0:
                    break
                await asyncio.sleep(0.01)
        finally:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        assert await count_tokens(session_factory) == 0
