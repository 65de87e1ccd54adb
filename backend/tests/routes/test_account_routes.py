"""HTTP tests for the signed-in user's account view."""

from tests.helpers.factories import create_client, create_group, create_user
from tests.helpers.flows import sign_in

CALLBACK = "https://app.example.com/callback"


class TestAccountRoutes:
    def test_me(self, client, unit_db, codec) -> None:
        user = create_user(unit_db, username="linus", email="linus@example.com")
        headers = sign_in(client, unit_db, codec, user)

        response = client.get("/v1/user", headers=headers)

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["username"] == "linus"
        assert data["email"] == "linus@example.com"
        assert data["is_admin"] is False

    def test_groups_and_credentials(self, client, unit_db, codec) -> None:
        user = create_user(unit_db)
        create_group(unit_db, slug="research", members=[user])
        headers = sign_in(client, unit_db, codec, user, credential_id="cred-g")

        groups = client.get("/v1/user/groups", headers=headers).json()["data"]
        credentials = client.get("/v1/user/credentials", headers=headers).json()["data"]

        assert [g["slug"] for g in groups] == ["research"]
        assert [c["credential_id"] for c in credentials] == ["cred-g"]

    def test_deleted_user(self, client, unit_db, codec) -> None:
        user = create_user(unit_db)
        headers = sign_in(client, unit_db, codec, user)
        unit_db.delete(user)
        unit_db.commit()

        response = client.get("/v1/user", headers=headers)

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "user_deleted"

    def test_authorizations_list_and_revoke(self, client, unit_db, codec) -> None:
        user = create_user(unit_db)
        app = create_client(unit_db, app_name="Notes")
        headers = sign_in(client, unit_db, codec, user)
        client.post(
            "/v1/oauth/authorize/approve",
            json={"response_type": "code", "client_id": app.client_id, "redirect_uri": CALLBACK},
            headers=headers,
        )

        listed = client.get("/v1/user/authorizations", headers=headers).json()["data"]
        assert [(a["app_name"], a["revoked"]) for a in listed] == [("Notes", False)]

        revoked = client.delete(f"/v1/user/authorizations/{app.client_id}", headers=headers)
        assert revoked.status_code == 204
        listed = client.get("/v1/user/authorizations", headers=headers).json()["data"]
        assert listed[0]["revoked"] is True

    def test_revoke_unknown_client(self, client, unit_db, codec) -> None:
        user = create_user(unit_db)
        headers = sign_in(client, unit_db, codec, user)

        response = client.delete("/v1/user/authorizations/unknown", headers=headers)

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "unknown_client"
