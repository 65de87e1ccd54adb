# backend/idbroker/core/config.py
import logging
import os
from pathlib import Path
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def is_running_tests() -> bool:
    """
    Detect if code is running under pytest.

    PYTEST_CURRENT_TEST is set automatically by pytest during test runs, and is
    not expected to be present in production environments.
    """
    return os.getenv("PYTEST_CURRENT_TEST") is not None


_BACKEND_ROOT = Path(__file__).resolve().parents[2]

logger = logging.getLogger(__name__)

# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = _BACKEND_ROOT / ".env"
    logger.debug("[CONFIG] Looking for .env at: %s (exists=%s)", env_path, env_path.exists())
    load_dotenv(env_path)


class Settings(BaseSettings):
    environment: str = Field(default="development", alias="ENVIRONMENT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Storage
    database_url: str = Field(
        default="sqlite+pysqlite:///./idbroker.db",
        alias="DATABASE_URL",
        description="SQLAlchemy URL of the relational entity store",
    )
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        alias="REDIS_URL",
        description="Redis URL backing the ephemeral grant store",
    )

    # Key material
    keys_dir: str = Field(
        default=str(_BACKEND_ROOT / "keys"),
        alias="KEYS_DIR",
        description="Directory holding the HS256 key files and the oidc/ RSA keys",
    )
    oidc_rsa_key_bits: int = Field(default=4096, alias="OIDC_RSA_KEY_BITS")

    # Public identity of this broker
    oidc_issuer_uri: str = Field(
        default="http://localhost:8000",
        alias="OIDC_ISSUER_URI",
        description="Issuer identifier; also the base of the published endpoints",
    )
    frontend_base_url: str = Field(
        default="http://localhost:3000",
        alias="FRONTEND_BASE_URL",
        description="Base URL used when building registration links",
    )

    # WebAuthn relying party
    webauthn_rp_id: str = Field(default="localhost", alias="WEBAUTHN_RP_ID")
    webauthn_rp_origin: str = Field(default="http://localhost:3000", alias="WEBAUTHN_RP_ORIGIN")
    webauthn_rp_name: str = Field(default="Identity", alias="WEBAUTHN_RP_NAME")

    # Sessions
    instance_id: int = Field(
        default=0,
        alias="INSTANCE_ID",
        description="Worker discriminant baked into generated session ids (0-1023)",
    )
    refresh_hash_workers: int = Field(
        default=4,
        alias="REFRESH_HASH_WORKERS",
        description="Size of the thread pool used for refresh-secret hashing",
    )
    refresh_token_max_age_days: Optional[int] = Field(
        default=None,
        alias="REFRESH_TOKEN_MAX_AGE_DAYS",
        description="Optional absolute lifetime for refresh tokens; unset means no expiry",
    )

    # OAuth grants
    grant_single_use: bool = Field(
        default=False,
        alias="GRANT_SINGLE_USE",
        description="Delete authorization codes when they are redeemed",
    )

    # Mail
    email_provider: Literal["console"] = Field(
        default="console",
        alias="EMAIL_PROVIDER",
        description="Email provider name",
    )
    email_from_address: str = Field(default="identity@localhost", alias="EMAIL_FROM_ADDRESS")

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("instance_id")
    @classmethod
    def _validate_instance_id(cls, value: int) -> int:
        if not 0 <= value < 1024:
            raise ValueError("INSTANCE_ID must be between 0 and 1023")
        return value

    @field_validator("oidc_issuer_uri", "frontend_base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @property
    def is_production(self) -> bool:
        return self.environment.strip().lower() in {"prod", "production"}


settings = Settings()
