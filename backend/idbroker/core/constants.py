"""Application-wide constants for the identity broker."""

from __future__ import annotations

BRAND_NAME = "idbroker"
API_TITLE = f"{BRAND_NAME} API"
API_DESCRIPTION = "Passkey identity and access broker with an OAuth2/OIDC surface"
API_VERSION = "1.0.0"

# Signed ephemeral token lifetimes (seconds)
CEREMONY_CHALLENGE_TTL_SECONDS = 330
ACCESS_TOKEN_TTL_SECONDS = 3600
REGISTRATION_INTENT_TTL_SECONDS = 86400
ID_TOKEN_TTL_SECONDS = 3600

# Ephemeral grant lifetimes (seconds)
OAUTH_CODE_TTL_SECONDS = 300
OAUTH_ACCESS_TOKEN_TTL_SECONDS = 3600
OAUTH_REFRESH_TOKEN_TTL_SECONDS = 14 * 24 * 3600

# Grant store key prefixes
OAUTH_CODE_PREFIX = "oauth_code:"
OAUTH_ACCESS_TOKEN_PREFIX = "oauth_access_token:"
OAUTH_REFRESH_TOKEN_PREFIX = "oauth_refresh_token:"

# Opaque secret lengths
OPAQUE_TOKEN_LENGTH = 64
AUTHORIZATION_SUB_LENGTH = 64
REFRESH_SECRET_LENGTH = 64

ACCESS_METHOD_PASSKEY = "passkey"
DEFAULT_PASSKEY_NAME = "Unnamed Passkey"

OAUTH_SCOPE = "openid profile email"
OAUTH_TOKEN_TYPE = "Bearer"

# Symmetric key files under KEYS_DIR
REGISTRATION_CHALLENGE_KEY_FILE = "passkey_reg.key"
LOGIN_CHALLENGE_KEY_FILE = "passkey_auth.key"
ACCESS_SESSION_KEY_FILE = "identity_access.key"
REFRESH_SESSION_KEY_FILE = "identity_refresh.key"
REGISTRATION_INTENT_KEY_FILE = "registration.key"
OIDC_KEY_DIR = "oidc"
