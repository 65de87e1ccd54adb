# backend/idbroker/routes/v1/auth.py
"""
Authentication routes - API v1

Passkey ceremonies and session management under /v1/auth.

Endpoints:
    POST /register/passkey/initiate      → Start passkey registration from a registration link
    POST /register/passkey/finalize      → Verify and store the new passkey (204)
    POST /login/passkey/initiate         → Start a discoverable passkey login
    POST /login/passkey/finalize         → Verify the assertion and open a session
    POST /refresh                        → Rotate the refresh secret, re-issue both tokens
    POST /logout                         → Delete the caller's session (204)
"""

import asyncio
import logging

from fastapi import APIRouter, Depends, Response, status

from ...api.dependencies.auth import get_access_claims
from ...api.dependencies.services import get_ceremony_service, get_session_service
from ...core.tokens import AccessClaims
from ...schemas.account import CredentialResponse, SessionResponse, UserResponse
from ...schemas.auth import (
    ChallengeResponse,
    LoginFinalizeRequest,
    LoginResponse,
    RefreshRequest,
    RegistrationFinalizeRequest,
    RegistrationInitiateRequest,
    TokenPairResponse,
)
from ...schemas.base import DataResponse
from ...services.ceremony_service import CeremonyService, ChallengeIssued
from ...services.session_service import SessionService

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["auth-v1"])


def _challenge_response(issued: ChallengeIssued) -> DataResponse[ChallengeResponse]:
    return DataResponse(
        data=ChallengeResponse(
            challenge_signature=issued.challenge_signature,
            challenge_response=issued.challenge_response,
        )
    )


@router.post(
    "/register/passkey/initiate", response_model=DataResponse[ChallengeResponse]
)
async def initiate_passkey_registration(
    payload: RegistrationInitiateRequest,
    ceremony_service: CeremonyService = Depends(get_ceremony_service),
) -> DataResponse[ChallengeResponse]:
    issued = await ceremony_service.start_registration(payload.registration_token)
    return _challenge_response(issued)


@router.post(
    "/register/passkey/finalize",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
)
async def finalize_passkey_registration(
    payload: RegistrationFinalizeRequest,
    ceremony_service: CeremonyService = Depends(get_ceremony_service),
) -> Response:
    await ceremony_service.finish_registration(
        payload.challenge_signature, payload.registration_token, payload.pk_credential
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/login/passkey/initiate", response_model=DataResponse[ChallengeResponse])
async def initiate_passkey_login(
    ceremony_service: CeremonyService = Depends(get_ceremony_service),
) -> DataResponse[ChallengeResponse]:
    return _challenge_response(ceremony_service.start_login())


@router.post("/login/passkey/finalize", response_model=DataResponse[LoginResponse])
async def finalize_passkey_login(
    payload: LoginFinalizeRequest,
    ceremony_service: CeremonyService = Depends(get_ceremony_service),
) -> DataResponse[LoginResponse]:
    result = await ceremony_service.finish_login(
        payload.challenge_signature, payload.pk_credential
    )
    return DataResponse(
        data=LoginResponse(
            access_token=result.tokens.access_token,
            refresh_token=result.tokens.refresh_token,
            session=SessionResponse.from_session(result.session),
            credential=CredentialResponse.model_validate(result.credential),
            user=UserResponse.model_validate(result.user),
        )
    )


@router.post("/refresh", response_model=DataResponse[TokenPairResponse])
async def refresh_session(
    payload: RefreshRequest,
    session_service: SessionService = Depends(get_session_service),
) -> DataResponse[TokenPairResponse]:
    tokens = await session_service.refresh(payload.refresh_token)
    return DataResponse(
        data=TokenPairResponse(
            access_token=tokens.access_token, refresh_token=tokens.refresh_token
        )
    )


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
async def logout(
    claims: AccessClaims = Depends(get_access_claims),
    session_service: SessionService = Depends(get_session_service),
) -> Response:
    await asyncio.to_thread(session_service.logout, claims)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
