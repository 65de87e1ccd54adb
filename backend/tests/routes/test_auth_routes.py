"""HTTP tests for the passkey ceremonies and session endpoints."""

from tests.helpers.factories import create_user
from tests.helpers.fakes import login_response
from tests.helpers.flows import login, register_passkey, registration_token, sign_in


class TestRegistrationRoutes:
    def test_register_and_login(self, client, unit_db, codec) -> None:
        user = create_user(unit_db, username="ada", name="Ada Lovelace")
        register_passkey(client, unit_db, codec, user, "cred-ada")

        data = login(client, user, "cred-ada")

        assert data["user"]["username"] == "ada"
        assert data["credential"]["credential_id"] == "cred-ada"
        assert isinstance(data["session"]["session_id"], str)
        assert data["session"]["credential_id"] == "cred-ada"

    def test_expired_link_envelope(self, client) -> None:
        response = client.post(
            "/v1/auth/register/passkey/initiate", json={"registration_token": "nope"}
        )

        assert response.status_code == 403
        assert response.json() == {
            "error": {
                "code": "expired_registration",
                "message": "This registration link is invalid or has expired.",
            }
        }

    def test_duplicate_credential_envelope(self, client, unit_db, codec) -> None:
        user = create_user(unit_db)
        register_passkey(client, unit_db, codec, user, "cred-x")
        token = registration_token(unit_db, codec, user)
        started = client.post("/v1/auth/register/passkey/initiate", json={"registration_token": token}).json()["data"]

        response = client.post(
            "/v1/auth/register/passkey/finalize",
            json={
                "challenge_signature": started["challenge_signature"],
                "registration_token": token,
                "pk_credential": {"id": "cred-x", "rawId": "cred-x", "response": {}},
            },
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "credential_already_registered"

    def test_validation_envelope(self, client) -> None:
        response = client.post("/v1/auth/register/passkey/initiate", json={"unexpected": 1})

        assert response.status_code == 422
        body = response.json()
        assert body["error"]["code"] == "validation_error"
        assert body["error"]["details"]


class TestLoginRoutes:
    def test_invalid_challenge(self, client) -> None:
        response = client.post(
            "/v1/auth/login/passkey/finalize",
            json={"challenge_signature": "bad", "pk_credential": {"id": "x"}},
        )

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "invalid_challenge"

    def test_suspended_user_cannot_login(self, client, unit_db, codec) -> None:
        user = create_user(unit_db)
        register_passkey(client, unit_db, codec, user, "cred-s")
        user.is_suspended = True
        unit_db.commit()

        started = client.post("/v1/auth/login/passkey/initiate").json()["data"]
        response = client.post(
            "/v1/auth/login/passkey/finalize",
            json={
                "challenge_signature": started["challenge_signature"],
                "pk_credential": login_response(
                    "cred-s", started["challenge_response"]["publicKey"]["challenge"], user.credential_uuid
                ),
            },
        )

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "user_suspended"


class TestSessionRoutes:
    def test_refresh_rotates(self, client, unit_db, codec) -> None:
        user = create_user(unit_db)
        register_passkey(client, unit_db, codec, user, "cred-r")
        first = login(client, user, "cred-r")

        refreshed = client.post("/v1/auth/refresh", json={"refresh_token": first["refresh_token"]})
        replay = client.post("/v1/auth/refresh", json={"refresh_token": first["refresh_token"]})

        assert refreshed.status_code == 200
        assert set(refreshed.json()["data"]) == {"access_token", "refresh_token"}
        assert replay.status_code == 401
        assert replay.json()["error"]["code"] == "session_expired"

    def test_refresh_blocked_for_suspended_user(self, client, unit_db, codec) -> None:
        user = create_user(unit_db)
        register_passkey(client, unit_db, codec, user, "cred-q")
        tokens = login(client, user, "cred-q")
        user.is_suspended = True
        unit_db.commit()

        response = client.post("/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "user_suspended"

    def test_logout_revokes_refresh(self, client, unit_db, codec) -> None:
        user = create_user(unit_db)
        register_passkey(client, unit_db, codec, user, "cred-l")
        tokens = login(client, user, "cred-l")
        headers = {"Authorization": f"Bearer {tokens['access_token']}"}

        assert client.post("/v1/auth/logout", headers=headers).status_code == 204
        assert client.post("/v1/auth/logout", headers=headers).status_code == 204
        response = client.post("/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
        assert response.status_code == 401

    def test_logout_requires_login(self, client) -> None:
        response = client.post("/v1/auth/logout")

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "login_required"

    def test_refresh_token_is_not_an_access_token(self, client, unit_db, codec) -> None:
        user = create_user(unit_db)
        sign_in(client, unit_db, codec, user)
        tokens = login(client, user, "cred-1")

        response = client.get(
            "/v1/user", headers={"Authorization": f"Bearer {tokens['refresh_token']}"}
        )

        assert response.status_code == 401
