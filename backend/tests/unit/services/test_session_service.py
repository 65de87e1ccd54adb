"""Tests for session creation, refresh rotation and logout."""

import asyncio

import pytest

from idbroker.core.exceptions import ApiError, ErrorKind
from idbroker.core.tokens import AccessClaims, RefreshClaims, TokenPurpose, now_timestamp
from idbroker.models.session import UserSession
from idbroker.services import session_service as session_service_module
from idbroker.services.session_service import SessionService, TokenPair
from tests.helpers.factories import create_user


@pytest.fixture
def service(unit_db, codec, id_generator) -> SessionService:
    return SessionService(unit_db, codec, id_generator)


async def _login(service: SessionService, user):
    raw_secret, session = await service.create(user.id, "cred-1")
    return session, service.issue_tokens(user, session, raw_secret)


class TestSessionService:
    @pytest.mark.asyncio
    async def test_create_stores_hash_not_secret(self, service, unit_db) -> None:
        user = create_user(unit_db)

        raw_secret, session = await service.create(user.id, "cred-1")

        stored = unit_db.get(UserSession, session.session_id)
        assert stored is not None
        assert stored.refresh_hash != raw_secret
        assert stored.refresh_hash.startswith("$argon2")
        assert stored.webauthn_id == "cred-1"

    @pytest.mark.asyncio
    async def test_issued_access_claims(self, service, unit_db, codec) -> None:
        user = create_user(unit_db, username="ada", is_admin=True)
        session, pair = await _login(service, user)

        claims = codec.decode_claims(pair.access_token, TokenPurpose.ACCESS_SESSION, AccessClaims)

        assert claims is not None
        assert claims.session_id == str(session.session_id)
        assert claims.username == "ada"
        assert claims.is_admin is True
        assert claims.method == "passkey"
        assert claims.exp - claims.iat == 3600

    @pytest.mark.asyncio
    async def test_refresh_rotates_secret(self, service, unit_db, codec) -> None:
        user = create_user(unit_db)
        session, first = await _login(service, user)

        second = await service.refresh(first.refresh_token)

        claims = codec.decode_claims(second.refresh_token, TokenPurpose.REFRESH_SESSION, RefreshClaims)
        assert claims is not None
        assert claims.session_id == str(session.session_id)
        with pytest.raises(ApiError) as exc_info:
            await service.refresh(first.refresh_token)
        assert exc_info.value.kind is ErrorKind.SESSION_EXPIRED

        third = await service.refresh(second.refresh_token)
        assert third.refresh_token != second.refresh_token

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "token",
        ["garbage", ""],
    )
    async def test_refresh_rejects_bad_tokens(self, service, token: str) -> None:
        with pytest.raises(ApiError) as exc_info:
            await service.refresh(token)

        assert exc_info.value.kind is ErrorKind.SESSION_EXPIRED

    @pytest.mark.asyncio
    async def test_refresh_rejects_access_token(self, service, unit_db) -> None:
        user = create_user(unit_db)
        _, pair = await _login(service, user)

        with pytest.raises(ApiError) as exc_info:
            await service.refresh(pair.access_token)

        assert exc_info.value.kind is ErrorKind.SESSION_EXPIRED

    @pytest.mark.asyncio
    async def test_refresh_unknown_session(self, service, codec) -> None:
        token = codec.encode_claims(
            RefreshClaims(session_id="12345", refresh_token="x" * 64), TokenPurpose.REFRESH_SESSION
        )

        with pytest.raises(ApiError) as exc_info:
            await service.refresh(token)

        assert exc_info.value.kind is ErrorKind.SESSION_EXPIRED

    @pytest.mark.asyncio
    async def test_refresh_suspended_user(self, service, unit_db) -> None:
        user = create_user(unit_db)
        _, pair = await _login(service, user)
        user.is_suspended = True
        unit_db.commit()

        with pytest.raises(ApiError) as exc_info:
            await service.refresh(pair.refresh_token)

        assert exc_info.value.kind is ErrorKind.USER_SUSPENDED

    @pytest.mark.asyncio
    async def test_refresh_respects_absolute_max_age(self, service, unit_db, codec, monkeypatch) -> None:
        from idbroker.core.config import settings

        user = create_user(unit_db)
        session, pair = await _login(service, user)
        claims = codec.decode_claims(pair.refresh_token, TokenPurpose.REFRESH_SESSION, RefreshClaims)
        old = codec.encode_claims(
            claims.model_copy(update={"iat": now_timestamp() - 3 * 86400}), TokenPurpose.REFRESH_SESSION
        )
        monkeypatch.setattr(settings, "refresh_token_max_age_days", 2)

        with pytest.raises(ApiError) as exc_info:
            await service.refresh(old)

        assert exc_info.value.kind is ErrorKind.SESSION_EXPIRED

    @pytest.mark.asyncio
    async def test_logout_revokes_and_is_idempotent(self, service, unit_db, codec) -> None:
        user = create_user(unit_db)
        session, pair = await _login(service, user)
        claims = codec.decode_claims(pair.access_token, TokenPurpose.ACCESS_SESSION, AccessClaims)

        service.logout(claims)
        service.logout(claims)

        assert unit_db.get(UserSession, session.session_id) is None
        with pytest.raises(ApiError):
            await service.refresh(pair.refresh_token)


class TestRefreshRace:
    @pytest.mark.asyncio
    async def test_concurrent_refreshes_with_one_token_have_one_winner(
        self, unit_db, session_factory, codec, id_generator
    ) -> None:
        user = create_user(unit_db)
        _, pair = await _login(SessionService(unit_db, codec, id_generator), user)
        first_db, second_db = session_factory(), session_factory()

        try:
            results = await asyncio.gather(
                SessionService(first_db, codec, id_generator).refresh(pair.refresh_token),
                SessionService(second_db, codec, id_generator).refresh(pair.refresh_token),
                return_exceptions=True,
            )
        finally:
            first_db.close()
            second_db.close()

        winners = [result for result in results if isinstance(result, TokenPair)]
        losers = [result for result in results if isinstance(result, ApiError)]
        assert len(winners) == 1
        assert len(losers) == 1
        assert losers[0].kind is ErrorKind.SESSION_EXPIRED

    @pytest.mark.asyncio
    async def test_logout_during_refresh_issues_nothing(
        self, service, unit_db, monkeypatch
    ) -> None:
        user = create_user(unit_db)
        session, pair = await _login(service, user)
        session_id = session.session_id
        verify = session_service_module.verify_refresh_secret_async

        async def verify_then_logout(secret: str, hashed: str) -> bool:
            matched = await verify(secret, hashed)
            service.delete(session_id)
            return matched

        monkeypatch.setattr(session_service_module, "verify_refresh_secret_async", verify_then_logout)

        with pytest.raises(ApiError) as exc_info:
            await service.refresh(pair.refresh_token)

        assert exc_info.value.kind is ErrorKind.SESSION_EXPIRED
        assert unit_db.get(UserSession, session_id) is None

