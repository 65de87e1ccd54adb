"""Tests for the setup command-line entry point."""

from urllib.parse import parse_qs, urlsplit

import pytest

from idbroker.commands import setup as setup_cli_module
from idbroker.commands.setup import SetupCommand, main
from idbroker.core.exceptions import ApiError, ErrorKind
from idbroker.core.keys import set_key_ring
from idbroker.core.tokens import RegistrationIntentClaims, TokenPurpose
from idbroker.models.client import ClientApplication
from tests.helpers.factories import create_user


@pytest.fixture(autouse=True)
def installed_key_ring(key_ring):
    set_key_ring(key_ring)
    yield key_ring
    set_key_ring(None)


@pytest.fixture
def cli_db(monkeypatch, session_factory):
    monkeypatch.setattr(setup_cli_module, "SessionLocal", session_factory)
    return session_factory


class TestSetupCommand:
    def test_create_admin_returns_registration_link(self, unit_db, codec) -> None:
        link = SetupCommand(unit_db).create_admin("root@example.com", "root", "Root")

        token = parse_qs(urlsplit(link.url).query)["t"][0]
        claims = codec.decode_claims(token, TokenPurpose.REGISTRATION_INTENT, RegistrationIntentClaims)
        assert claims.username == "root"
        assert claims.email == "root@example.com"

    @pytest.mark.parametrize(
        "email, username, kind",
        [
            ("new@example.com", "taken", ErrorKind.USERNAME_EXISTS),
            ("taken@example.com", "new", ErrorKind.EMAIL_EXISTS),
        ],
    )
    def test_create_admin_duplicates(self, unit_db, email, username, kind) -> None:
        create_user(unit_db, username="taken", email="taken@example.com")

        with pytest.raises(ApiError) as exc_info:
            SetupCommand(unit_db).create_admin(email, username, "Dup")

        assert exc_info.value.kind is kind

    def test_create_client_generates_credentials(self, unit_db) -> None:
        client = SetupCommand(unit_db).create_client(
            "Wiki", ["https://wiki.example.com/cb"], implicit=True
        )

        assert len(client.client_id) == 26
        assert len(client.client_secret) == 64
        assert client.allow_implicit_flow is True
        assert client.default_allowed is False

    def test_login_link_for_missing_user(self, unit_db) -> None:
        assert SetupCommand(unit_db).login_link("ghost") is None


class TestMain:
    def test_create_client_prints_credentials(self, cli_db, capsys) -> None:
        exit_code = main(
            [
                "create-client",
                "--name",
                "Chat",
                "--redirect-uri",
                "https://chat.example.com/a",
                "--redirect-uri",
                "https://chat.example.com/b",
                "--default-allowed",
            ]
        )

        assert exit_code == 0
        out = capsys.readouterr().out
        assert "client_id:" in out
        db = cli_db()
        try:
            [client] = db.query(ClientApplication).all()
            assert client.redirect_uris == ["https://chat.example.com/a", "https://chat.example.com/b"]
            assert client.default_allowed is True
        finally:
            db.close()

    def test_login_link_unknown_user(self, cli_db, capsys) -> None:
        assert main(["login-link", "--username", "ghost"]) == 1
        assert "ghost" in capsys.readouterr().err

    def test_domain_errors_exit_nonzero(self, cli_db, unit_db, capsys) -> None:
        create_user(unit_db, username="dup", email="dup@example.com")

        exit_code = main(["create-admin", "--email", "dup@example.com", "--username", "other", "--name", "X"])

        assert exit_code == 1
        assert "already exists" in capsys.readouterr().err
