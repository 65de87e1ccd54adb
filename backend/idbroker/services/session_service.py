# backend/idbroker/services/session_service.py
"""
Session lifecycle: create, refresh (rotate), delete.

A session row stores only the argon2 hash of the current refresh secret. The
caller holds two signed tokens:

- access token: ``AccessClaims`` (1 hour), the identity used on every request
- refresh token: ``RefreshClaims`` {session_id, raw refresh secret}, no expiry

Every refresh replaces the stored hash, so a refresh token is only good until the
next successful refresh. Deleting the session revokes both tokens.
"""

import asyncio
from dataclasses import dataclass
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from ..auth import hash_refresh_secret_async, verify_refresh_secret_async
from ..core.config import settings
from ..core.constants import ACCESS_METHOD_PASSKEY, ACCESS_TOKEN_TTL_SECONDS, REFRESH_SECRET_LENGTH
from ..core.exceptions import ApiError, ErrorKind
from ..core.ids import SnowflakeGenerator, get_session_id_generator, random_alphanumeric
from ..core.tokens import (
    AccessClaims,
    RefreshClaims,
    TokenCodec,
    TokenPurpose,
    now_timestamp,
)
from ..models.session import UserSession
from ..models.user import User
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.session_repository import SessionRepository
from ..repositories.user_repository import UserRepository
from .base import BaseService


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


class SessionService(BaseService):
    def __init__(
        self,
        db: Session,
        codec: TokenCodec,
        id_generator: Optional[SnowflakeGenerator] = None,
    ):
        super().__init__(db)
        self.codec = codec
        self.id_generator = id_generator or get_session_id_generator()
        self.repository = SessionRepository(db)
        self.user_repository = UserRepository(db)

    async def create(self, user_id: int, credential_id: str) -> Tuple[str, UserSession]:
        """Open a session; returns the raw refresh secret and the new row."""
        raw_secret = random_alphanumeric(REFRESH_SECRET_LENGTH)
        refresh_hash = await hash_refresh_secret_async(raw_secret)
        session = await asyncio.to_thread(
            self._insert_session, self.id_generator.next_id(), user_id, credential_id, refresh_hash
        )
        self.logger.info("Created session %s for user %s", session.session_id, user_id)
        return raw_secret, session

    def _insert_session(
        self, session_id: int, user_id: int, credential_id: str, refresh_hash: str
    ) -> UserSession:
        with self.transaction():
            return self.repository.create(
                session_id=session_id,
                user_id=user_id,
                refresh_hash=refresh_hash,
                webauthn_id=credential_id,
            )

    async def rotate(self, session: UserSession) -> str:
        """
        Replace the session's refresh secret; returns the new raw secret.

        Raises ``SessionExpired`` if the session was deleted or rotated since it
        was read.
        """
        raw_secret = random_alphanumeric(REFRESH_SECRET_LENGTH)
        refresh_hash = await hash_refresh_secret_async(raw_secret)
        swapped = await asyncio.to_thread(
            self._replace_hash, session.session_id, session.refresh_hash, refresh_hash
        )
        if not swapped:
            self.logger.warning("Session %s changed during refresh", session.session_id)
            prometheus_metrics.record_ceremony("refresh", ErrorKind.SESSION_EXPIRED.code)
            raise ApiError(ErrorKind.SESSION_EXPIRED)
        session.refresh_hash = refresh_hash
        return raw_secret

    def _replace_hash(self, session_id: int, expected_hash: str, refresh_hash: str) -> bool:
        with self.transaction():
            return self.repository.replace_refresh_hash(session_id, expected_hash, refresh_hash)

    def delete(self, session_id: int) -> bool:
        with self.transaction():
            deleted = self.repository.delete_session(session_id)
        if deleted:
            self.logger.info("Deleted session %s", session_id)
        return deleted

    def issue_tokens(
        self,
        user: User,
        session: UserSession,
        raw_secret: str,
        refresh_issued_at: Optional[int] = None,
    ) -> TokenPair:
        iat = now_timestamp()
        access = AccessClaims(
            user_id=user.id,
            session_id=str(session.session_id),
            method=ACCESS_METHOD_PASSKEY,
            email=user.email,
            username=user.username,
            name=user.name,
            webauthn_id=session.webauthn_id,
            is_admin=user.is_admin,
            iat=iat,
            exp=iat + ACCESS_TOKEN_TTL_SECONDS,
        )
        refresh = RefreshClaims(
            session_id=str(session.session_id),
            refresh_token=raw_secret,
            iat=refresh_issued_at if refresh_issued_at is not None else iat,
        )
        return TokenPair(
            access_token=self.codec.encode_claims(access, TokenPurpose.ACCESS_SESSION),
            refresh_token=self.codec.encode_claims(refresh, TokenPurpose.REFRESH_SESSION),
        )

    def _refresh_too_old(self, claims: RefreshClaims) -> bool:
        max_age_days = settings.refresh_token_max_age_days
        if not max_age_days or claims.iat is None:
            return False
        return now_timestamp() - claims.iat > max_age_days * 86400

    def _load_session_and_user(self, session_id: int) -> Tuple[Optional[UserSession], Optional[User]]:
        session = self.repository.get_by_id(session_id)
        if session is None:
            return None, None
        return session, self.user_repository.get_by_id(session.user_id)

    @BaseService.measure_operation("refresh_session")
    async def refresh(self, refresh_token: str) -> TokenPair:
        """
        Exchange a refresh token for a new token pair on the same session.

        Bad token, unknown session and wrong secret are all ``SessionExpired``.
        """
        claims = self.codec.decode_claims(refresh_token, TokenPurpose.REFRESH_SESSION, RefreshClaims)
        if claims is None or not claims.session_id.isdigit() or self._refresh_too_old(claims):
            prometheus_metrics.record_ceremony("refresh", ErrorKind.SESSION_EXPIRED.code)
            raise ApiError(ErrorKind.SESSION_EXPIRED)

        session, user = await asyncio.to_thread(self._load_session_and_user, int(claims.session_id))
        if session is None:
            prometheus_metrics.record_ceremony("refresh", ErrorKind.SESSION_EXPIRED.code)
            raise ApiError(ErrorKind.SESSION_EXPIRED)

        if not await verify_refresh_secret_async(claims.refresh_token, session.refresh_hash):
            self.logger.warning("Refresh secret mismatch for session %s", session.session_id)
            prometheus_metrics.record_ceremony("refresh", ErrorKind.SESSION_EXPIRED.code)
            raise ApiError(ErrorKind.SESSION_EXPIRED)

        if user is None:
            raise ApiError(ErrorKind.USER_DELETED)
        if user.is_suspended:
            prometheus_metrics.record_ceremony("refresh", ErrorKind.USER_SUSPENDED.code)
            raise ApiError(ErrorKind.USER_SUSPENDED)

        raw_secret = await self.rotate(session)
        prometheus_metrics.record_ceremony("refresh", "success")
        return self.issue_tokens(user, session, raw_secret, refresh_issued_at=claims.iat)

    def logout(self, claims: AccessClaims) -> None:
        """Delete the caller's session; an already-missing session is fine."""
        session_id = claims.session_id_int
        if session_id is None:
            return
        self.delete(session_id)
