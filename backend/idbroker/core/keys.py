# backend/idbroker/core/keys.py
"""
Key material for the broker.

Five independent HS256 secrets (one per signed-token purpose) and a set of RSA
signing keys for identity tokens. Keys live under ``KEYS_DIR``::

    passkey_reg.key        registration ceremony challenges
    passkey_auth.key       login ceremony challenges
    identity_access.key    access claim sets
    identity_refresh.key   refresh claim sets
    registration.key       registration intent links
    oidc/<unix_ts>.pem     RSA private keys (PKCS8); the file stem is the key id

Missing files are generated on load.
"""

import base64
from dataclasses import dataclass, field
import logging
from pathlib import Path
import secrets
import time
from typing import Dict, Optional

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from .constants import (
    ACCESS_SESSION_KEY_FILE,
    LOGIN_CHALLENGE_KEY_FILE,
    OIDC_KEY_DIR,
    REFRESH_SESSION_KEY_FILE,
    REGISTRATION_CHALLENGE_KEY_FILE,
    REGISTRATION_INTENT_KEY_FILE,
)
from .tokens import TokenPurpose

logger = logging.getLogger(__name__)

PURPOSE_KEY_FILES: Dict[TokenPurpose, str] = {
    TokenPurpose.REGISTRATION_CHALLENGE: REGISTRATION_CHALLENGE_KEY_FILE,
    TokenPurpose.LOGIN_CHALLENGE: LOGIN_CHALLENGE_KEY_FILE,
    TokenPurpose.ACCESS_SESSION: ACCESS_SESSION_KEY_FILE,
    TokenPurpose.REFRESH_SESSION: REFRESH_SESSION_KEY_FILE,
    TokenPurpose.REGISTRATION_INTENT: REGISTRATION_INTENT_KEY_FILE,
}


def _new_symmetric_key() -> str:
    return base64.urlsafe_b64encode(secrets.token_bytes(32)).decode("ascii")


def generate_rsa_key(bits: int = 4096) -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=bits)


@dataclass
class KeyRing:
    symmetric: Dict[TokenPurpose, bytes]
    signing_keys: Dict[int, rsa.RSAPrivateKey] = field(default_factory=dict)

    def secret_for(self, purpose: TokenPurpose) -> bytes:
        return self.symmetric[purpose]

    @property
    def current_kid(self) -> int:
        if not self.signing_keys:
            raise RuntimeError("No OIDC signing keys are loaded")
        return max(self.signing_keys)

    @property
    def current_signing_key(self) -> rsa.RSAPrivateKey:
        return self.signing_keys[self.current_kid]

    @classmethod
    def generate(cls, rsa_bits: int = 2048, kid: Optional[int] = None) -> "KeyRing":
        """Build an in-memory key ring with fresh keys for every purpose."""
        symmetric = {purpose: _new_symmetric_key().encode("ascii") for purpose in TokenPurpose}
        signing_kid = kid if kid is not None else int(time.time())
        return cls(symmetric=symmetric, signing_keys={signing_kid: generate_rsa_key(rsa_bits)})

    @classmethod
    def load(cls, keys_dir: str, rsa_bits: int = 4096) -> "KeyRing":
        """Load keys from ``keys_dir``, creating any that are missing."""
        root = Path(keys_dir)
        root.mkdir(parents=True, exist_ok=True)

        symmetric: Dict[TokenPurpose, bytes] = {}
        for purpose, filename in PURPOSE_KEY_FILES.items():
            path = root / filename
            if not path.exists():
                logger.warning("Key file %s not found, generating a new key", path)
                path.write_text(_new_symmetric_key())
                path.chmod(0o600)
            symmetric[purpose] = path.read_text().strip().encode("ascii")

        oidc_dir = root / OIDC_KEY_DIR
        oidc_dir.mkdir(exist_ok=True)
        signing_keys: Dict[int, rsa.RSAPrivateKey] = {}
        for pem_path in oidc_dir.glob("*.pem"):
            try:
                kid = int(pem_path.stem)
            except ValueError:
                logger.warning("Skipping OIDC key with non-numeric name: %s", pem_path.name)
                continue
            private_key = serialization.load_pem_private_key(pem_path.read_bytes(), password=None)
            if not isinstance(private_key, rsa.RSAPrivateKey):
                raise ValueError(f"OIDC key {pem_path} is not an RSA private key")
            signing_keys[kid] = private_key

        if not signing_keys:
            kid = int(time.time())
            logger.warning("No OIDC signing keys found, generating %s-bit key %s", rsa_bits, kid)
            private_key = generate_rsa_key(rsa_bits)
            pem_path = oidc_dir / f"{kid}.pem"
            pem_path.write_bytes(
                private_key.private_bytes(
                    encoding=serialization.Encoding.PEM,
                    format=serialization.PrivateFormat.PKCS8,
                    encryption_algorithm=serialization.NoEncryption(),
                )
            )
            pem_path.chmod(0o600)
            signing_keys[kid] = private_key

        logger.info("Loaded %d OIDC signing key(s); current kid=%s", len(signing_keys), max(signing_keys))
        return cls(symmetric=symmetric, signing_keys=signing_keys)


_key_ring: Optional[KeyRing] = None


def get_key_ring() -> KeyRing:
    global _key_ring

    if _key_ring is None:
        from .config import settings

        _key_ring = KeyRing.load(settings.keys_dir, settings.oidc_rsa_key_bits)
    return _key_ring


def set_key_ring(key_ring: Optional[KeyRing]) -> None:
    global _key_ring
    _key_ring = key_ring
