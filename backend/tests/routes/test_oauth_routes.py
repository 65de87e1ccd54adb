"""End-to-end tests for the authorization flow over HTTP."""

import base64
import json
from urllib.parse import parse_qs, urlsplit

import jwt
from jwt.algorithms import RSAAlgorithm

from tests.helpers.factories import create_client, create_user
from tests.helpers.flows import sign_in

CALLBACK = "https://app.example.com/callback"


def _authorize_body(app, **overrides):
    body = {
        "scope": "openid profile email",
        "response_type": "code",
        "client_id": app.client_id,
        "redirect_uri": CALLBACK,
        "state": "st-1",
        "nonce": "nonce-1",
    }
    body.update(overrides)
    return body


def _basic(client_id: str, secret: str) -> dict:
    raw = base64.b64encode(f"{client_id}:{secret}".encode()).decode()
    return {"Authorization": f"Basic {raw}"}


def _approve_code(client, headers, app) -> str:
    response = client.post("/v1/oauth/authorize/approve", json=_authorize_body(app), headers=headers)
    assert response.status_code == 200, response.text
    redirect_to = response.json()["data"]["redirect_to"]
    params = parse_qs(urlsplit(redirect_to).query)
    assert params["state"] == ["st-1"]
    return params["code"][0]


def _exchange(client, app, code, *, use_basic=True, **form):
    data = {"grant_type": "authorization_code", "code": code, "redirect_uri": CALLBACK}
    data.update(form)
    if use_basic:
        return client.post("/v1/oauth/token", data=data, headers=_basic(app.client_id, app.client_secret))
    data.update({"client_id": app.client_id, "client_secret": app.client_secret})
    return client.post("/v1/oauth/token", data=data)


def _verify_with_jwks(client, token: str, audience: str) -> dict:
    header = jwt.get_unverified_header(token)
    keys = client.get("/.well-known/jwks").json()["keys"]
    [jwk] = [key for key in keys if key["kid"] == header["kid"]]
    public_key = RSAAlgorithm.from_jwk(json.dumps(jwk))
    return jwt.decode(token, public_key, algorithms=["RS256"], audience=audience)


class TestAuthorizationCodeFlow:
    def test_full_flow(self, client, unit_db, codec) -> None:
        user = create_user(unit_db, name="Before Rename")
        app = create_client(unit_db)
        headers = sign_in(client, unit_db, codec, user)

        preview = client.post("/v1/oauth/authorize/preview", json=_authorize_body(app), headers=headers)
        assert preview.status_code == 200
        assert preview.json()["data"]["app_name"] == app.app_name

        code = _approve_code(client, headers, app)
        token_response = _exchange(client, app, code)

        assert token_response.status_code == 200, token_response.text
        assert token_response.headers["cache-control"] == "no-store"
        assert token_response.headers["pragma"] == "no-cache"
        body = token_response.json()
        assert body["token_type"] == "Bearer"
        id_claims = _verify_with_jwks(client, body["id_token"], app.client_id)
        assert id_claims["name"] == "Before Rename"
        assert id_claims["nonce"] == "nonce-1"
        assert id_claims["iss"] == "https://id.example.com"

        user.name = "After Rename"
        unit_db.commit()
        userinfo = client.get(
            "/v1/oauth/userinfo", headers={"Authorization": f"Bearer {body['access_token']}"}
        )

        assert userinfo.status_code == 200
        assert userinfo.headers["content-type"].startswith("application/jwt")
        info_claims = _verify_with_jwks(client, userinfo.text, app.client_id)
        assert info_claims["name"] == "After Rename"
        assert info_claims["sub"] == id_claims["sub"]

    def test_form_credentials(self, client, unit_db, codec) -> None:
        user = create_user(unit_db)
        app = create_client(unit_db)
        headers = sign_in(client, unit_db, codec, user)
        code = _approve_code(client, headers, app)

        response = _exchange(client, app, code, use_basic=False)

        assert response.status_code == 200

    def test_basic_auth_wins_over_form(self, client, unit_db, codec) -> None:
        user = create_user(unit_db)
        app = create_client(unit_db)
        headers = sign_in(client, unit_db, codec, user)
        code = _approve_code(client, headers, app)

        response = _exchange(client, app, code, client_id=app.client_id, client_secret="wrong")

        assert response.status_code == 200

    def test_token_errors_use_oauth_shape(self, client, unit_db, codec) -> None:
        user = create_user(unit_db)
        app = create_client(unit_db)
        headers = sign_in(client, unit_db, codec, user)
        code = _approve_code(client, headers, app)

        wrong_secret = client.post(
            "/v1/oauth/token",
            data={"grant_type": "authorization_code", "code": code, "redirect_uri": CALLBACK},
            headers=_basic(app.client_id, "wrong"),
        )
        wrong_grant = _exchange(client, app, code, grant_type="password")
        wrong_code = _exchange(client, app, "not-a-code")

        assert wrong_secret.status_code == 400
        assert wrong_secret.json() == {
            "error": "invalid_client",
            "error_description": "Client could not be found or has invalid secret",
        }
        assert wrong_grant.json()["error"] == "unsupported_grant_type"
        assert wrong_code.json() == {"error": "invalid_grant", "error_description": "Code not valid"}

    def test_missing_client_credentials(self, client) -> None:
        response = client.post("/v1/oauth/token", data={"grant_type": "authorization_code"})

        assert response.status_code == 400
        assert response.json()["error"] == "invalid_request"


class TestAuthorizeRoutes:
    def test_requires_login(self, client, unit_db) -> None:
        app = create_client(unit_db)

        response = client.post("/v1/oauth/authorize/preview", json=_authorize_body(app))

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "login_required"

    def test_javascript_redirect_rejected(self, client, unit_db, codec) -> None:
        user = create_user(unit_db)
        app = create_client(unit_db, redirect_uris=[CALLBACK, "javascript:alert(1)"])
        headers = sign_in(client, unit_db, codec, user)

        response = client.post(
            "/v1/oauth/authorize/approve",
            json=_authorize_body(app, redirect_uri="javascript:alert(1)"),
            headers=headers,
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "invalid_redirect_uri"

    def test_implicit_flow_uses_fragment(self, client, unit_db, codec) -> None:
        user = create_user(unit_db)
        app = create_client(unit_db, allow_implicit_flow=True)
        headers = sign_in(client, unit_db, codec, user)

        response = client.post(
            "/v1/oauth/authorize/approve",
            json=_authorize_body(app, response_type="id_token token"),
            headers=headers,
        )

        redirect_to = response.json()["data"]["redirect_to"]
        fragment = parse_qs(urlsplit(redirect_to).fragment)
        assert set(fragment) == {"id_token", "access_token", "token_type", "expires_in", "state"}

    def test_acl_denied(self, client, unit_db, codec) -> None:
        user = create_user(unit_db)
        app = create_client(unit_db, default_allowed=False, app_name="Payroll")
        headers = sign_in(client, unit_db, codec, user)

        response = client.post("/v1/oauth/authorize/approve", json=_authorize_body(app), headers=headers)

        assert response.status_code == 400
        assert response.json()["error"] == {
            "code": "oauth_acl_denied",
            "message": "You do not have permission to access Payroll.",
        }

    def test_suspension_blocks_approval(self, client, unit_db, codec) -> None:
        user = create_user(unit_db)
        app = create_client(unit_db)
        headers = sign_in(client, unit_db, codec, user)
        user.is_suspended = True
        unit_db.commit()

        response = client.post("/v1/oauth/authorize/approve", json=_authorize_body(app), headers=headers)

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "user_suspended"


class TestUserinfoRoute:
    def test_missing_token(self, client) -> None:
        response = client.get("/v1/oauth/userinfo")

        assert response.status_code == 401
        assert response.headers["www-authenticate"] == 'Bearer error="invalid_token"'
        assert response.content == b""

    def test_suspended_user(self, client, unit_db, codec) -> None:
        user = create_user(unit_db)
        app = create_client(unit_db)
        headers = sign_in(client, unit_db, codec, user)
        access_token = _exchange(client, app, _approve_code(client, headers, app)).json()["access_token"]
        user.is_suspended = True
        unit_db.commit()

        response = client.get("/v1/oauth/userinfo", headers={"Authorization": f"Bearer {access_token}"})

        assert response.status_code == 401
        assert response.headers["www-authenticate"] == 'Bearer error="invalid_token"'
