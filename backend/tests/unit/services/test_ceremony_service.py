"""Tests for the registration and login ceremonies."""

import uuid

import pytest

from idbroker.core.constants import DEFAULT_PASSKEY_NAME
from idbroker.core.exceptions import ApiError, ErrorKind
from idbroker.core.tokens import (
    AccessClaims,
    RegistrationIntentClaims,
    TokenPurpose,
    now_timestamp,
)
from idbroker.models.credential import Credential
from idbroker.services.ceremony_service import CeremonyService
from idbroker.services.registration_service import RegistrationService
from idbroker.services.session_service import SessionService
from tests.helpers.factories import create_user
from tests.helpers.fakes import login_response, registration_response


@pytest.fixture
def ceremonies(unit_db, codec, fake_backend, id_generator) -> CeremonyService:
    return CeremonyService(
        unit_db, codec, fake_backend, SessionService(unit_db, codec, id_generator)
    )


def _intent(unit_db, codec, user) -> str:
    return RegistrationService(unit_db, codec, frontend_base_url="https://id.example.com").mint_link(user).token


async def _register(ceremonies: CeremonyService, token: str, credential_id: str) -> Credential:
    issued = await ceremonies.start_registration(token)
    challenge = issued.challenge_response["publicKey"]["challenge"]
    return await ceremonies.finish_registration(
        issued.challenge_signature, token, registration_response(credential_id, challenge)
    )


class TestRegistration:
    @pytest.mark.asyncio
    async def test_start_describes_user_and_excludes_existing(self, ceremonies, unit_db, codec) -> None:
        user = create_user(unit_db, username="grace", name="Grace Hopper")
        token = _intent(unit_db, codec, user)
        await _register(ceremonies, token, "existing-cred")

        issued = await ceremonies.start_registration(token)

        public = issued.challenge_response["publicKey"]
        assert public["user"]["name"] == "grace"
        assert public["user"]["displayName"] == "Grace Hopper"
        assert [c["id"] for c in public["excludeCredentials"]] == ["existing-cred"]

    @pytest.mark.asyncio
    async def test_finish_stores_credential(self, ceremonies, unit_db, codec) -> None:
        user = create_user(unit_db)

        credential = await _register(ceremonies, _intent(unit_db, codec, user), "cred-abc")

        assert credential.credential_uuid == user.credential_uuid
        assert credential.credential_id == "cred-abc"
        assert credential.name == DEFAULT_PASSKEY_NAME
        stored = unit_db.query(Credential).filter_by(credential_uuid=user.credential_uuid).all()
        assert len(stored) == 1

    @pytest.mark.asyncio
    async def test_duplicate_credential_rejected(self, ceremonies, unit_db, codec) -> None:
        user = create_user(unit_db)
        token = _intent(unit_db, codec, user)
        await _register(ceremonies, token, "cred-dup")

        with pytest.raises(ApiError) as exc_info:
            await _register(ceremonies, token, "cred-dup")

        assert exc_info.value.kind is ErrorKind.CREDENTIAL_ALREADY_REGISTERED

    @pytest.mark.asyncio
    async def test_bad_intent_token(self, ceremonies) -> None:
        with pytest.raises(ApiError) as exc_info:
            await ceremonies.start_registration("not-a-token")

        assert exc_info.value.kind is ErrorKind.EXPIRED_REGISTRATION

    @pytest.mark.asyncio
    async def test_expired_intent_token(self, ceremonies, unit_db, codec) -> None:
        user = create_user(unit_db)
        iat = now_timestamp() - 100000
        token = codec.encode_claims(
            RegistrationIntentClaims(
                user_id=user.id, email=user.email, username=user.username, name=user.name,
                iat=iat, exp=iat + 86400,
            ),
            TokenPurpose.REGISTRATION_INTENT,
        )

        with pytest.raises(ApiError) as exc_info:
            await ceremonies.start_registration(token)

        assert exc_info.value.kind is ErrorKind.EXPIRED_REGISTRATION

    @pytest.mark.asyncio
    async def test_email_change_invalidates_link(self, ceremonies, unit_db, codec) -> None:
        user = create_user(unit_db)
        token = _intent(unit_db, codec, user)
        user.email = "changed@example.com"
        unit_db.commit()

        with pytest.raises(ApiError) as exc_info:
            await ceremonies.start_registration(token)

        assert exc_info.value.kind is ErrorKind.EMAIL_CHANGED

    @pytest.mark.asyncio
    async def test_suspended_user_cannot_register(self, ceremonies, unit_db, codec) -> None:
        user = create_user(unit_db, is_suspended=True)

        with pytest.raises(ApiError) as exc_info:
            await ceremonies.start_registration(_intent(unit_db, codec, user))

        assert exc_info.value.kind is ErrorKind.USER_SUSPENDED

    @pytest.mark.asyncio
    async def test_deleted_user(self, ceremonies, unit_db, codec) -> None:
        user = create_user(unit_db)
        token = _intent(unit_db, codec, user)
        unit_db.delete(user)
        unit_db.commit()

        with pytest.raises(ApiError) as exc_info:
            await ceremonies.start_registration(token)

        assert exc_info.value.kind is ErrorKind.USER_DELETED

    @pytest.mark.asyncio
    async def test_challenge_for_another_user_rejected(self, ceremonies, unit_db, codec) -> None:
        alice = create_user(unit_db)
        bob = create_user(unit_db)
        issued = await ceremonies.start_registration(_intent(unit_db, codec, alice))
        challenge = issued.challenge_response["publicKey"]["challenge"]

        with pytest.raises(ApiError) as exc_info:
            await ceremonies.finish_registration(
                issued.challenge_signature,
                _intent(unit_db, codec, bob),
                registration_response("cred", challenge),
            )

        assert exc_info.value.kind is ErrorKind.INVALID_CHALLENGE

    @pytest.mark.asyncio
    async def test_login_challenge_not_accepted_for_registration(self, ceremonies, unit_db, codec) -> None:
        user = create_user(unit_db)
        login = ceremonies.start_login()

        with pytest.raises(ApiError) as exc_info:
            await ceremonies.finish_registration(
                login.challenge_signature, _intent(unit_db, codec, user), registration_response("c", "x")
            )

        assert exc_info.value.kind is ErrorKind.INVALID_CHALLENGE

    @pytest.mark.asyncio
    async def test_backend_failure_is_webauthn_error(self, ceremonies, unit_db, codec) -> None:
        user = create_user(unit_db)
        token = _intent(unit_db, codec, user)
        issued = await ceremonies.start_registration(token)

        with pytest.raises(ApiError) as exc_info:
            await ceremonies.finish_registration(
                issued.challenge_signature, token, registration_response("cred", "wrong-challenge")
            )

        assert exc_info.value.kind is ErrorKind.WEBAUTHN_ERROR


class TestLogin:
    @pytest.mark.asyncio
    async def test_login_opens_session(self, ceremonies, unit_db, codec) -> None:
        user = create_user(unit_db)
        await _register(ceremonies, _intent(unit_db, codec, user), "cred-login")
        issued = ceremonies.start_login()
        challenge = issued.challenge_response["publicKey"]["challenge"]

        result = await ceremonies.finish_login(
            issued.challenge_signature,
            login_response("cred-login", challenge, user.credential_uuid),
        )

        assert result.user.id == user.id
        assert result.credential.credential_id == "cred-login"
        assert result.session.webauthn_id == "cred-login"
        claims = codec.decode_claims(result.tokens.access_token, TokenPurpose.ACCESS_SESSION, AccessClaims)
        assert claims.user_id == user.id
        assert claims.webauthn_id == "cred-login"

    @pytest.mark.asyncio
    async def test_unknown_user_handle(self, ceremonies) -> None:
        issued = ceremonies.start_login()
        challenge = issued.challenge_response["publicKey"]["challenge"]

        with pytest.raises(ApiError) as exc_info:
            await ceremonies.finish_login(
                issued.challenge_signature, login_response("cred", challenge, str(uuid.uuid4()))
            )

        assert exc_info.value.kind is ErrorKind.USER_DELETED

    @pytest.mark.asyncio
    async def test_missing_user_handle(self, ceremonies) -> None:
        issued = ceremonies.start_login()

        with pytest.raises(ApiError) as exc_info:
            await ceremonies.finish_login(issued.challenge_signature, {"id": "cred", "response": {}})

        assert exc_info.value.kind is ErrorKind.INVALID_CREDENTIAL

    @pytest.mark.asyncio
    async def test_suspended_user_cannot_login(self, ceremonies, unit_db, codec) -> None:
        user = create_user(unit_db)
        await _register(ceremonies, _intent(unit_db, codec, user), "cred-s")
        user.is_suspended = True
        unit_db.commit()
        issued = ceremonies.start_login()
        challenge = issued.challenge_response["publicKey"]["challenge"]

        with pytest.raises(ApiError) as exc_info:
            await ceremonies.finish_login(
                issued.challenge_signature, login_response("cred-s", challenge, user.credential_uuid)
            )

        assert exc_info.value.kind is ErrorKind.USER_SUSPENDED

    @pytest.mark.asyncio
    async def test_passkey_of_another_user_rejected(self, ceremonies, unit_db, codec) -> None:
        alice = create_user(unit_db)
        bob = create_user(unit_db)
        await _register(ceremonies, _intent(unit_db, codec, alice), "alice-cred")
        await _register(ceremonies, _intent(unit_db, codec, bob), "bob-cred")
        issued = ceremonies.start_login()
        challenge = issued.challenge_response["publicKey"]["challenge"]

        with pytest.raises(ApiError) as exc_info:
            await ceremonies.finish_login(
                issued.challenge_signature, login_response("bob-cred", challenge, alice.credential_uuid)
            )

        assert exc_info.value.kind is ErrorKind.WEBAUTHN_ERROR

    @pytest.mark.asyncio
    async def test_invalid_challenge_signature(self, ceremonies, unit_db) -> None:
        with pytest.raises(ApiError) as exc_info:
            await ceremonies.finish_login("bogus", login_response("c", "x", str(uuid.uuid4())))

        assert exc_info.value.kind is ErrorKind.INVALID_CHALLENGE
