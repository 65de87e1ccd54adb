# backend/idbroker/services/ceremony_service.py
"""
Passkey ceremonies.

Registration:
    initiate(registration_token)            -> challenge_response + challenge_signature
    finalize(challenge_signature, registration_token, pk_credential) -> nothing

Login (discoverable):
    initiate()                              -> challenge_response + challenge_signature
    finalize(challenge_signature, pk_credential) -> tokens, session, credential, user

No ceremony state is kept server side: the library's state rides inside the
signed ``challenge_signature`` token, valid for 330 seconds.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.constants import CEREMONY_CHALLENGE_TTL_SECONDS, DEFAULT_PASSKEY_NAME
from ..core.exceptions import ApiError, ErrorKind
from ..core.tokens import (
    LoginChallengeClaims,
    RegistrationChallengeClaims,
    RegistrationIntentClaims,
    TokenCodec,
    TokenPurpose,
    now_timestamp,
)
from ..models.credential import Credential
from ..models.session import UserSession
from ..models.user import User
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.credential_repository import CredentialRepository
from ..repositories.user_repository import UserRepository
from .base import BaseService
from .session_service import SessionService, TokenPair
from .webauthn_backend import (
    CeremonyBackend,
    CeremonyError,
    StoredPasskey,
    response_credential_id,
    response_user_handle,
)


@dataclass(frozen=True)
class ChallengeIssued:
    challenge_signature: str
    challenge_response: Dict[str, Any]


@dataclass(frozen=True)
class LoginResult:
    tokens: TokenPair
    session: UserSession
    credential: Credential
    user: User


class CeremonyService(BaseService):
    def __init__(
        self,
        db: Session,
        codec: TokenCodec,
        backend: CeremonyBackend,
        session_service: SessionService,
    ):
        super().__init__(db)
        self.codec = codec
        self.backend = backend
        self.session_service = session_service
        self.user_repository = UserRepository(db)
        self.credential_repository = CredentialRepository(db)

    # Registration

    def _decode_intent(self, registration_token: str) -> RegistrationIntentClaims:
        intent = self.codec.decode_claims(
            registration_token, TokenPurpose.REGISTRATION_INTENT, RegistrationIntentClaims
        )
        if intent is None:
            raise ApiError(ErrorKind.EXPIRED_REGISTRATION)
        return intent

    def _load_registrant(self, user_id: int) -> Tuple[Optional[User], List[Credential]]:
        user = self.user_repository.get_by_id(user_id)
        if user is None:
            return None, []
        return user, self.credential_repository.list_for_credential_uuid(user.credential_uuid)

    @BaseService.measure_operation("start_registration")
    async def start_registration(self, registration_token: str) -> ChallengeIssued:
        intent = self._decode_intent(registration_token)
        user, credentials = await asyncio.to_thread(self._load_registrant, intent.user_id)
        if user is None:
            raise ApiError(ErrorKind.USER_DELETED)
        if user.is_suspended:
            raise ApiError(ErrorKind.USER_SUSPENDED)
        if user.email != intent.email:
            raise ApiError(ErrorKind.EMAIL_CHANGED)

        public, state = self.backend.start_registration(
            user_handle=user.credential_uuid,
            username=user.username,
            display_name=user.name,
            exclude_credential_ids=[credential.credential_id for credential in credentials],
        )
        iat = now_timestamp()
        claims = RegistrationChallengeClaims(
            credential_uuid=user.credential_uuid,
            reg=state,
            iat=iat,
            exp=iat + CEREMONY_CHALLENGE_TTL_SECONDS,
        )
        return ChallengeIssued(
            challenge_signature=self.codec.encode_claims(
                claims, TokenPurpose.REGISTRATION_CHALLENGE
            ),
            challenge_response={"publicKey": public},
        )

    @BaseService.measure_operation("finish_registration")
    async def finish_registration(
        self,
        challenge_signature: str,
        registration_token: str,
        pk_credential: Dict[str, Any],
    ) -> Credential:
        intent = self._decode_intent(registration_token)
        challenge = self.codec.decode_claims(
            challenge_signature, TokenPurpose.REGISTRATION_CHALLENGE, RegistrationChallengeClaims
        )
        if challenge is None:
            raise ApiError(ErrorKind.INVALID_CHALLENGE)

        user, credentials = await asyncio.to_thread(self._load_registrant, intent.user_id)
        if user is None:
            raise ApiError(ErrorKind.USER_DELETED)
        if user.is_suspended:
            raise ApiError(ErrorKind.USER_SUSPENDED)
        if challenge.credential_uuid != user.credential_uuid:
            raise ApiError(ErrorKind.INVALID_CHALLENGE)
        if user.email != intent.email:
            raise ApiError(ErrorKind.EMAIL_CHANGED)

        presented_id = response_credential_id(pk_credential)
        if any(credential.credential_id == presented_id for credential in credentials):
            raise ApiError(ErrorKind.CREDENTIAL_ALREADY_REGISTERED)

        try:
            passkey = self.backend.finish_registration(pk_credential, challenge.reg)
        except CeremonyError as exc:
            prometheus_metrics.record_ceremony("registration", ErrorKind.WEBAUTHN_ERROR.code)
            raise ApiError(ErrorKind.WEBAUTHN_ERROR) from exc

        credential = await asyncio.to_thread(
            self._store_credential, user.credential_uuid, passkey.credential_id, passkey.serialized
        )
        prometheus_metrics.record_ceremony("registration", "success")
        self.logger.info("Registered passkey %s for user %s", credential.id, user.id)
        return credential

    def _store_credential(
        self, credential_uuid: str, credential_id: str, serialized: str
    ) -> Credential:
        with self.transaction():
            return self.credential_repository.create(
                credential_uuid=credential_uuid,
                name=DEFAULT_PASSKEY_NAME,
                credential_id=credential_id,
                serialized_passkey=serialized,
            )

    # Login

    def start_login(self) -> ChallengeIssued:
        public, state = self.backend.start_authentication()
        iat = now_timestamp()
        claims = LoginChallengeClaims(auth=state, iat=iat, exp=iat + CEREMONY_CHALLENGE_TTL_SECONDS)
        return ChallengeIssued(
            challenge_signature=self.codec.encode_claims(claims, TokenPurpose.LOGIN_CHALLENGE),
            challenge_response={"publicKey": public},
        )

    def _load_login_subject(self, credential_uuid: str) -> Tuple[Optional[User], List[Credential]]:
        credentials = self.credential_repository.list_for_credential_uuid(credential_uuid)
        return self.user_repository.get_by_credential_uuid(credential_uuid), credentials

    @BaseService.measure_operation("finish_login")
    async def finish_login(
        self, challenge_signature: str, pk_credential: Dict[str, Any]
    ) -> LoginResult:
        challenge = self.codec.decode_claims(
            challenge_signature, TokenPurpose.LOGIN_CHALLENGE, LoginChallengeClaims
        )
        if challenge is None:
            raise ApiError(ErrorKind.INVALID_CHALLENGE)

        credential_uuid = response_user_handle(pk_credential)
        if credential_uuid is None:
            prometheus_metrics.record_ceremony("login", ErrorKind.INVALID_CREDENTIAL.code)
            raise ApiError(ErrorKind.INVALID_CREDENTIAL)

        user, credentials = await asyncio.to_thread(self._load_login_subject, credential_uuid)
        if user is None:
            raise ApiError(ErrorKind.USER_DELETED)
        if user.is_suspended:
            prometheus_metrics.record_ceremony("login", ErrorKind.USER_SUSPENDED.code)
            raise ApiError(ErrorKind.USER_SUSPENDED)

        try:
            matched_id = self.backend.finish_authentication(
                pk_credential,
                challenge.auth,
                [StoredPasskey(c.credential_id, c.serialized_passkey) for c in credentials],
            )
        except CeremonyError as exc:
            prometheus_metrics.record_ceremony("login", ErrorKind.WEBAUTHN_ERROR.code)
            raise ApiError(ErrorKind.WEBAUTHN_ERROR) from exc

        credential = next((c for c in credentials if c.credential_id == matched_id), None)
        if credential is None:
            raise ApiError(ErrorKind.WEBAUTHN_ERROR)

        raw_secret, session = await self.session_service.create(user.id, credential.credential_id)
        tokens = self.session_service.issue_tokens(user, session, raw_secret)
        prometheus_metrics.record_ceremony("login", "success")
        self.logger.info("User %s logged in with passkey %s", user.id, credential.id)
        return LoginResult(tokens=tokens, session=session, credential=credential, user=user)
