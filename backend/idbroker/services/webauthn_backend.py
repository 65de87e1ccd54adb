# backend/idbroker/services/webauthn_backend.py
"""
Adapter between the ceremony controller and the WebAuthn library.

The controller only sees JSON-ready dicts: public options to hand to the browser,
an opaque state dict to embed in a signed challenge token, and a serialized
passkey string to persist. Everything library-specific stays in this module.
"""

from dataclasses import dataclass
import json
import logging
from typing import Any, Dict, Optional, Protocol, Sequence, Tuple
import uuid

from webauthn import (
    generate_authentication_options,
    generate_registration_options,
    options_to_json,
    verify_authentication_response,
    verify_registration_response,
)
from webauthn.helpers import base64url_to_bytes, bytes_to_base64url
from webauthn.helpers.exceptions import WebAuthnException
from webauthn.helpers.structs import (
    AuthenticatorSelectionCriteria,
    PublicKeyCredentialDescriptor,
    ResidentKeyRequirement,
    UserVerificationRequirement,
)

logger = logging.getLogger(__name__)


class CeremonyError(Exception):
    """The authenticator response did not verify."""


@dataclass(frozen=True)
class RegisteredPasskey:
    credential_id: str
    serialized: str


@dataclass(frozen=True)
class StoredPasskey:
    credential_id: str
    serialized: str


class CeremonyBackend(Protocol):
    def start_registration(
        self,
        *,
        user_handle: str,
        username: str,
        display_name: str,
        exclude_credential_ids: Sequence[str],
    ) -> Tuple[Dict[str, Any], Dict[str, Any]]:
        """Return (public options, opaque state)."""
        ...

    def finish_registration(
        self, response: Dict[str, Any], state: Dict[str, Any]
    ) -> RegisteredPasskey: ...

    def start_authentication(self) -> Tuple[Dict[str, Any], Dict[str, Any]]: ...

    def finish_authentication(
        self,
        response: Dict[str, Any],
        state: Dict[str, Any],
        passkeys: Sequence[StoredPasskey],
    ) -> str:
        """Return the credential id of the passkey that verified the response."""
        ...


def response_credential_id(response: Dict[str, Any]) -> Optional[str]:
    """The base64url credential id an authenticator response claims to be for."""
    value = response.get("rawId") or response.get("id")
    return value if isinstance(value, str) and value else None


def response_user_handle(response: Dict[str, Any]) -> Optional[str]:
    """
    Credential correlation id carried in a discoverable-login response.

    The user handle is the 16 raw bytes of the user's ``credential_uuid``.
    """
    inner = response.get("response")
    if not isinstance(inner, dict):
        return None
    handle = inner.get("userHandle")
    if not isinstance(handle, str) or not handle:
        return None
    try:
        raw = base64url_to_bytes(handle)
        return str(uuid.UUID(bytes=raw))
    except (ValueError, TypeError):
        return None


def user_handle_bytes(credential_uuid: str) -> bytes:
    return uuid.UUID(credential_uuid).bytes


class PyWebAuthnBackend:
    """``CeremonyBackend`` backed by py_webauthn."""

    def __init__(self, rp_id: str, rp_name: str, origin: str):
        self.rp_id = rp_id
        self.rp_name = rp_name
        self.origin = origin

    def start_registration(
        self,
        *,
        user_handle: str,
        username: str,
        display_name: str,
        exclude_credential_ids: Sequence[str],
    ) -> Tuple[Dict[str, Any], Dict[str, Any]]:
        options = generate_registration_options(
            rp_id=self.rp_id,
            rp_name=self.rp_name,
            user_id=user_handle_bytes(user_handle),
            user_name=username,
            user_display_name=display_name,
            exclude_credentials=[
                PublicKeyCredentialDescriptor(id=base64url_to_bytes(credential_id))
                for credential_id in exclude_credential_ids
            ],
            authenticator_selection=AuthenticatorSelectionCriteria(
                resident_key=ResidentKeyRequirement.REQUIRED,
                user_verification=UserVerificationRequirement.PREFERRED,
            ),
        )
        public = json.loads(options_to_json(options))
        return public, {"challenge": bytes_to_base64url(options.challenge)}

    def finish_registration(
        self, response: Dict[str, Any], state: Dict[str, Any]
    ) -> RegisteredPasskey:
        try:
            verified = verify_registration_response(
                credential=response,
                expected_challenge=base64url_to_bytes(state["challenge"]),
                expected_rp_id=self.rp_id,
                expected_origin=self.origin,
            )
        except (WebAuthnException, KeyError, ValueError, TypeError) as exc:
            logger.info("Passkey registration did not verify: %s", exc)
            raise CeremonyError(str(exc)) from exc

        credential_id = bytes_to_base64url(verified.credential_id)
        transports = (response.get("response") or {}).get("transports") or []
        serialized = json.dumps(
            {
                "credential_id": credential_id,
                "public_key": bytes_to_base64url(verified.credential_public_key),
                "sign_count": verified.sign_count,
                "transports": transports,
            }
        )
        return RegisteredPasskey(credential_id=credential_id, serialized=serialized)

    def start_authentication(self) -> Tuple[Dict[str, Any], Dict[str, Any]]:
        options = generate_authentication_options(
            rp_id=self.rp_id,
            user_verification=UserVerificationRequirement.PREFERRED,
        )
        public = json.loads(options_to_json(options))
        return public, {"challenge": bytes_to_base64url(options.challenge)}

    def finish_authentication(
        self,
        response: Dict[str, Any],
        state: Dict[str, Any],
        passkeys: Sequence[StoredPasskey],
    ) -> str:
        presented = response_credential_id(response)
        match = next((pk for pk in passkeys if pk.credential_id == presented), None)
        if match is None:
            raise CeremonyError("Response does not match any registered passkey")
        try:
            stored = json.loads(match.serialized)
            verify_authentication_response(
                credential=response,
                expected_challenge=base64url_to_bytes(state["challenge"]),
                expected_rp_id=self.rp_id,
                expected_origin=self.origin,
                credential_public_key=base64url_to_bytes(stored["public_key"]),
                credential_current_sign_count=int(stored.get("sign_count", 0)),
            )
        except (WebAuthnException, KeyError, ValueError, TypeError) as exc:
            logger.info("Passkey authentication did not verify: %s", exc)
            raise CeremonyError(str(exc)) from exc
        return match.credential_id
