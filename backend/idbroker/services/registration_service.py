# backend/idbroker/services/registration_service.py
"""
Registration links.

An admin (or the setup command) mints a registration intent for an existing user;
the user follows the link to enroll a passkey. The intent is a signed token that
pins the user's email at mint time, so changing the email invalidates
outstanding links.
"""

from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlencode

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.constants import BRAND_NAME, REGISTRATION_INTENT_TTL_SECONDS
from ..core.exceptions import ApiError, ErrorKind
from ..core.tokens import RegistrationIntentClaims, TokenCodec, TokenPurpose, now_timestamp
from ..models.user import User
from ..repositories.user_repository import UserRepository
from .base import BaseService
from .email_console import ConsoleEmailService

REGISTRATION_PATH = "/auth/register/passkey"


@dataclass(frozen=True)
class RegistrationLink:
    token: str
    url: str
    expires_at: int


class RegistrationService(BaseService):
    def __init__(
        self,
        db: Session,
        codec: TokenCodec,
        email_service: Optional[ConsoleEmailService] = None,
        frontend_base_url: Optional[str] = None,
    ):
        super().__init__(db)
        self.codec = codec
        self.email_service = email_service
        self.frontend_base_url = (frontend_base_url or settings.frontend_base_url).rstrip("/")
        self.user_repository = UserRepository(db)

    def mint_link(self, user: User) -> RegistrationLink:
        iat = now_timestamp()
        claims = RegistrationIntentClaims(
            user_id=user.id,
            email=user.email,
            username=user.username,
            name=user.name,
            iat=iat,
            exp=iat + REGISTRATION_INTENT_TTL_SECONDS,
        )
        token = self.codec.encode_claims(claims, TokenPurpose.REGISTRATION_INTENT)
        url = f"{self.frontend_base_url}{REGISTRATION_PATH}?{urlencode({'t': token})}"
        return RegistrationLink(token=token, url=url, expires_at=claims.exp)

    @BaseService.measure_operation("send_registration_link")
    def send_link(self, user_id: int) -> RegistrationLink:
        """Mint a link for ``user_id`` and mail it when a mailer is configured."""
        user = self.user_repository.get_by_id(user_id)
        if user is None:
            raise ApiError(ErrorKind.UNKNOWN_USER)
        if user.is_suspended:
            raise ApiError(ErrorKind.USER_SUSPENDED)

        link = self.mint_link(user)
        if self.email_service is not None:
            self.email_service.send_email(
                user.email,
                f"Set up your {BRAND_NAME} passkey",
                f"Hi {user.name},\n\nFollow this link within 24 hours to register a passkey:\n"
                f"{link.url}\n",
            )
        self.logger.info("Issued registration link for user %s", user.id)
        return link
